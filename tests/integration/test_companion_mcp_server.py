"""
Integration tests for the Companion MCP server.

Tests cover:
- Server initialization
- MCP tool listing and execution
- Conversation save, search and export round trips
- Resource reading
"""

import json

import pytest

import companion.server as server_module
from companion.config.settings import MemorySettings, Settings
from companion.utils.exceptions import ConfigurationError, NotInitializedError


@pytest.fixture
def initialized_server(test_settings):
    """Initialize server against a temporary memory store."""
    # Save original context
    original_context = server_module._context

    ctx = server_module.initialize(settings=test_settings)

    yield ctx

    # Restore original context
    server_module._context = original_context


async def call(name, arguments=None):
    result = await server_module.call_tool(name, arguments or {})
    assert len(result) == 1
    return json.loads(result[0].text)


async def save_auth_conversation():
    return await call(
        "companion_save_conversation",
        {
            "title": "Auth redesign",
            "summary": "Moved sessions to tokens",
            "decisions": [
                {
                    "decision_point": "token strategy",
                    "decision": "use JWT",
                    "reason": "stateless scaling",
                }
            ],
            "solutions": [{"problem": "clock skew", "solution": "leeway of 30s"}],
            "technologies": [{"name": "PyJWT", "purpose": "token signing"}],
        },
    )


class TestServerInitialization:
    """Tests for server start-up."""

    def test_get_context_before_initialize(self, monkeypatch):
        monkeypatch.setattr(server_module, "_context", None)
        with pytest.raises(NotInitializedError):
            server_module.get_context()

    def test_disabled_memory_rejected(self, store_dir):
        settings = Settings(memory=MemorySettings(storage_path=str(store_dir), enabled=False))
        with pytest.raises(ConfigurationError):
            server_module.initialize(settings=settings)

    def test_initialize_creates_store(self, initialized_server, store_dir):
        assert initialized_server.coordinator.storage_path == store_dir.resolve()
        assert (store_dir / "memory_manifest.json").exists()


class TestMCPServerTools:
    """Tests for MCP server tool functionality."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_list_tools_returns_expected_tools(self):
        """list_tools should return all expected tools."""
        tools = await server_module.list_tools()

        tool_names = [t.name for t in tools]
        assert len(tool_names) == 15
        assert "companion_search_memories" in tool_names
        assert "companion_save_conversation" in tool_names
        assert "companion_cleanup_memories" in tool_names
        assert all(t.inputSchema["type"] == "object" for t in tools)

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_save_then_search(self, initialized_server):
        saved = await save_auth_conversation()
        assert saved["status"] == "saved"
        assert saved["decisions"] == 1

        found = await call("companion_search_memories", {"query": "JWT stateless"})

        assert [c["metadata"]["conversation_id"] for c in found["conversations"]] == [
            saved["conversation_id"]
        ]
        assert found["relevance_score"] == 0.8
        assert found["user_preferences"]["user_id"] == "default-user"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_technology_names_are_searchable(self, initialized_server):
        saved = await save_auth_conversation()
        found = await call("companion_search_memories", {"query": "pyjwt"})
        assert found["conversations"][0]["metadata"]["conversation_id"] == saved["conversation_id"]

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_conversation_lifecycle(self, initialized_server):
        saved = await save_auth_conversation()
        conversation_id = saved["conversation_id"]

        decision = await call(
            "companion_record_decision",
            {
                "conversation_id": conversation_id,
                "decision_point": "storage",
                "decision": "Redis denylist",
                "reason": "revocation",
            },
        )
        assert decision["decisions"] == 2

        todo = await call(
            "companion_add_todo",
            {"conversation_id": conversation_id, "task": "Rotate keys", "priority": "high"},
        )
        todos = await call(
            "companion_complete_todo",
            {"conversation_id": conversation_id, "todo_id": todo["todo"]["id"]},
        )
        assert todos["todos"][0]["completed"] is True

        ended = await call("companion_end_conversation", {"conversation_id": conversation_id})
        assert ended["end_time"]

        exported = await call("companion_export_conversation", {"conversation_id": conversation_id})
        assert "| storage | Redis denylist | revocation |" in exported["markdown"]
        assert "- [x] ! Rotate keys" in exported["markdown"]

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_recent_and_stats(self, initialized_server):
        await save_auth_conversation()

        recent = await call("companion_recent_conversations", {"limit": 5})
        assert recent["count"] == 1

        stats = await call("companion_get_index_stats")
        assert stats["keyword_count"] > 0

        cleaned = await call("companion_cleanup_memories", {"days_to_keep": 1})
        assert cleaned["evicted"] == 0
        assert cleaned["index"] == stats

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_profiles(self, initialized_server):
        prefs = await call(
            "companion_set_preference",
            {"detail_level": "concise", "default_persona": "architect"},
        )
        assert prefs["preferences"]["communication"]["detail_level"] == "concise"
        assert prefs["preferences"]["persona"]["default_mode"] == "architect"

        project = await call(
            "companion_update_project",
            {
                "overview": "Memory service",
                "tech_stack": [{"category": "runtime", "technology": "Python"}],
            },
        )
        assert project["project_context"]["project_overview"] == "Memory service"
        assert project["project_context"]["tech_stack"][0]["technology"] == "Python"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_get_memory(self, initialized_server):
        await save_auth_conversation()
        memory = await call("companion_get_memory")
        assert "Auth redesign" in memory["summary"]

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_unknown_tool(self, initialized_server):
        result = await call("companion_nonexistent")
        assert result == {"error": "Unknown tool: companion_nonexistent"}

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_invalid_arguments_reported(self, initialized_server):
        result = await call("companion_search_memories", {"query": "  "})
        assert "Query cannot be empty" in result["error"]

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_unknown_conversation_reported(self, initialized_server):
        result = await call(
            "companion_update_summary",
            {"conversation_id": "conv_0_missing", "summary": "x"},
        )
        assert result["error"] == "Conversation conv_0_missing not found"


class TestMCPServerResources:
    """Tests for MCP server resources."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_list_resources(self):
        resources = await server_module.list_resources()
        assert [r.name for r in resources] == ["Memory Summary", "User Preferences", "Project Context"]

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_read_resources(self, initialized_server):
        summary = await server_module.read_resource("memory://summary")
        assert "Memory Summary" in summary

        prefs = json.loads(await server_module.read_resource("memory://preferences"))
        assert prefs["user_id"] == "default-user"

        project = json.loads(await server_module.read_resource("memory://project"))
        assert project["project_info"]["project_name"] == "default-project"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_read_unknown_resource(self, initialized_server):
        with pytest.raises(ValueError):
            await server_module.read_resource("memory://nope")

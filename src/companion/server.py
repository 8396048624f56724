"""
Companion MCP Server - conversation memory for coding assistants.

Exposes the memory coordinator over MCP stdio:
- Conversation records with decisions, problem/solution pairs and todos
- Keyword-indexed retrieval of related conversations
- User preference profile and project context
- Age-based eviction of keyword index entries

MCP Tools:
- companion_get_memory: Markdown overview of the memory store
- companion_search_memories: Conversations related to a query
- companion_recent_conversations: Most recent conversations
- companion_save_conversation: Save a conversation in one call
- companion_record_decision / companion_record_solution: Append to a conversation
- companion_add_todo / companion_complete_todo: Manage follow-up tasks
- companion_update_summary / companion_end_conversation: Conversation lifecycle
- companion_set_preference / companion_update_project: Profiles
- companion_cleanup_memories / companion_get_index_stats: Index maintenance
- companion_export_conversation: Markdown export of one conversation
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool
from pydantic import BaseModel

from companion.config.settings import Settings
from companion.core.profiles import TechStackItem
from companion.memory.coordinator import MemoryCoordinator
from companion.tools.tool_definitions import (
    AddTodoInput,
    CleanupMemoriesInput,
    CompleteTodoInput,
    ConversationInput,
    RecentConversationsInput,
    RecordDecisionInput,
    RecordSolutionInput,
    SaveConversationInput,
    SearchMemoriesInput,
    SetPreferenceInput,
    UpdateProjectInput,
    UpdateSummaryInput,
)
from companion.utils.exceptions import ConfigurationError, NotInitializedError


@dataclass
class ServerContext:
    """Container for all server dependencies.

    Attributes:
        coordinator: The ready memory coordinator
        settings: Server configuration settings
    """
    coordinator: MemoryCoordinator
    settings: Settings


# Global context and server (initialized at startup)
_context: Optional[ServerContext] = None
server = Server("companion-memory")

_EMPTY_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}}


def get_context() -> ServerContext:
    """Get the current server context.

    Raises:
        NotInitializedError: If server is not initialized
    """
    if _context is None:
        raise NotInitializedError("Server not initialized. Call initialize() first.")
    return _context


def _schema(model: type[BaseModel]) -> Dict[str, Any]:
    return model.model_json_schema()


@server.list_tools()
async def list_tools() -> List[Tool]:
    """List available MCP tools."""
    return [
        Tool(
            name="companion_get_memory",
            description="Get a memory summary: recent conversations, user preferences, project status and index statistics",
            inputSchema=_EMPTY_SCHEMA,
        ),
        Tool(
            name="companion_search_memories",
            description="Find past conversations related to a free-text query",
            inputSchema=_schema(SearchMemoriesInput),
        ),
        Tool(
            name="companion_recent_conversations",
            description="List the most recent conversations",
            inputSchema=_schema(RecentConversationsInput),
        ),
        Tool(
            name="companion_save_conversation",
            description="Save a conversation record with its summary, decisions, solutions and technologies",
            inputSchema=_schema(SaveConversationInput),
        ),
        Tool(
            name="companion_record_decision",
            description="Record a key decision on an existing conversation",
            inputSchema=_schema(RecordDecisionInput),
        ),
        Tool(
            name="companion_record_solution",
            description="Record a problem and its solution on an existing conversation",
            inputSchema=_schema(RecordSolutionInput),
        ),
        Tool(
            name="companion_add_todo",
            description="Add a follow-up task to a conversation",
            inputSchema=_schema(AddTodoInput),
        ),
        Tool(
            name="companion_complete_todo",
            description="Mark a conversation todo as completed",
            inputSchema=_schema(CompleteTodoInput),
        ),
        Tool(
            name="companion_update_summary",
            description="Replace the summary of a conversation",
            inputSchema=_schema(UpdateSummaryInput),
        ),
        Tool(
            name="companion_end_conversation",
            description="Close a conversation",
            inputSchema=_schema(ConversationInput),
        ),
        Tool(
            name="companion_set_preference",
            description="Update user preferences (detail level, explanation style, default persona)",
            inputSchema=_schema(SetPreferenceInput),
        ),
        Tool(
            name="companion_update_project",
            description="Update the project overview and tech stack",
            inputSchema=_schema(UpdateProjectInput),
        ),
        Tool(
            name="companion_cleanup_memories",
            description="Evict keyword index entries older than the retention window",
            inputSchema=_schema(CleanupMemoriesInput),
        ),
        Tool(
            name="companion_get_index_stats",
            description="Get keyword index statistics",
            inputSchema=_EMPTY_SCHEMA,
        ),
        Tool(
            name="companion_export_conversation",
            description="Export a conversation as Markdown",
            inputSchema=_schema(ConversationInput),
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Handle tool calls."""
    ctx = get_context()

    try:
        handler = _HANDLERS.get(name)
        if handler is None:
            result = {"error": f"Unknown tool: {name}"}
        else:
            result = await handler(ctx, arguments or {})

        return [TextContent(type="text", text=json.dumps(result, indent=2, ensure_ascii=False))]

    except Exception as e:
        logger.exception(f"Tool call failed: {name}")
        return [TextContent(type="text", text=json.dumps({"error": str(e)}, ensure_ascii=False))]


async def _handle_get_memory(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_get_memory tool call."""
    summary = await asyncio.to_thread(ctx.coordinator.get_memory_summary)
    return {"summary": summary}


async def _handle_search_memories(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_search_memories tool call."""
    params = SearchMemoriesInput(**args)
    result = await asyncio.to_thread(
        ctx.coordinator.retrieve_memories, params.query, params.limit
    )
    return {"query": params.query, **result.to_dict()}


async def _handle_recent_conversations(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_recent_conversations tool call."""
    params = RecentConversationsInput(**args)
    records = await asyncio.to_thread(ctx.coordinator.get_recent_conversations, params.limit)
    return {
        "conversations": [r.to_dict() for r in records],
        "count": len(records),
    }


def _save_conversation(coordinator: MemoryCoordinator, params: SaveConversationInput) -> str:
    conversation_id = coordinator.create_conversation(
        params.title, params.user_name, params.project
    )
    for d in params.decisions:
        coordinator.add_decision(conversation_id, d.decision_point or d.decision, d.decision, d.reason)
    for s in params.solutions:
        coordinator.add_problem_solution(conversation_id, s.problem, s.solution, s.result)
    for t in params.technologies:
        coordinator.add_technology(conversation_id, t.name, t.purpose)
    if params.summary:
        coordinator.update_summary(conversation_id, params.summary)
    if params.end:
        coordinator.end_conversation(conversation_id)
    return conversation_id


async def _handle_save_conversation(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_save_conversation tool call."""
    params = SaveConversationInput(**args)
    conversation_id = await asyncio.to_thread(_save_conversation, ctx.coordinator, params)
    logger.info(f"Saved conversation {conversation_id}: {params.title}")
    return {
        "conversation_id": conversation_id,
        "title": params.title,
        "decisions": len(params.decisions),
        "solutions": len(params.solutions),
        "status": "saved",
    }


async def _handle_record_decision(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_record_decision tool call."""
    params = RecordDecisionInput(**args)
    record = await asyncio.to_thread(
        ctx.coordinator.add_decision,
        params.conversation_id,
        params.decision_point,
        params.decision,
        params.reason,
    )
    return {"conversation_id": record.id, "decisions": len(record.decisions)}


async def _handle_record_solution(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_record_solution tool call."""
    params = RecordSolutionInput(**args)
    record = await asyncio.to_thread(
        ctx.coordinator.add_problem_solution,
        params.conversation_id,
        params.problem,
        params.solution,
        params.result,
    )
    return {"conversation_id": record.id, "solutions": len(record.problems)}


async def _handle_add_todo(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_add_todo tool call."""
    params = AddTodoInput(**args)
    todo = await asyncio.to_thread(
        ctx.coordinator.add_todo, params.conversation_id, params.task, params.priority
    )
    return {"conversation_id": params.conversation_id, "todo": todo.to_dict()}


async def _handle_complete_todo(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_complete_todo tool call."""
    params = CompleteTodoInput(**args)
    record = await asyncio.to_thread(
        ctx.coordinator.complete_todo, params.conversation_id, params.todo_id
    )
    return {
        "conversation_id": record.id,
        "todos": [t.to_dict() for t in record.todos],
    }


async def _handle_update_summary(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_update_summary tool call."""
    params = UpdateSummaryInput(**args)
    record = await asyncio.to_thread(
        ctx.coordinator.update_summary, params.conversation_id, params.summary
    )
    return {"conversation_id": record.id, "summary": record.summary}


async def _handle_end_conversation(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_end_conversation tool call."""
    params = ConversationInput(**args)
    record = await asyncio.to_thread(ctx.coordinator.end_conversation, params.conversation_id)
    return {
        "conversation_id": record.id,
        "end_time": record.metadata.end_time.isoformat(),
    }


def _set_preference(coordinator: MemoryCoordinator, params: SetPreferenceInput) -> Dict[str, Any]:
    if params.detail_level or params.explanation_style:
        coordinator.update_communication_preferences(
            detail_level=params.detail_level,
            explanation_style=params.explanation_style,
        )
    if params.default_persona:
        coordinator.update_persona_preference(params.default_persona)
    return coordinator.get_user_preferences().preferences.model_dump(mode="json")


async def _handle_set_preference(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_set_preference tool call."""
    params = SetPreferenceInput(**args)
    preferences = await asyncio.to_thread(_set_preference, ctx.coordinator, params)
    return {"preferences": preferences}


async def _handle_update_project(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_update_project tool call."""
    params = UpdateProjectInput(**args)
    tech_stack = [TechStackItem(**item.model_dump()) for item in params.tech_stack]
    context = await asyncio.to_thread(
        ctx.coordinator.update_project_context, params.overview, tech_stack
    )
    return {"project_context": context.model_dump(mode="json")}


async def _handle_cleanup_memories(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_cleanup_memories tool call."""
    params = CleanupMemoriesInput(**args)
    evicted = await asyncio.to_thread(ctx.coordinator.cleanup_old_memories, params.days_to_keep)
    return {
        "evicted": evicted,
        "index": ctx.coordinator.get_index_stats().to_dict(),
    }


async def _handle_get_index_stats(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_get_index_stats tool call."""
    return ctx.coordinator.get_index_stats().to_dict()


async def _handle_export_conversation(ctx: ServerContext, args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle companion_export_conversation tool call."""
    params = ConversationInput(**args)
    markdown = await asyncio.to_thread(
        ctx.coordinator.export_conversation, params.conversation_id
    )
    return {"conversation_id": params.conversation_id, "markdown": markdown}


_HANDLERS: Dict[str, Callable[[ServerContext, Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
    "companion_get_memory": _handle_get_memory,
    "companion_search_memories": _handle_search_memories,
    "companion_recent_conversations": _handle_recent_conversations,
    "companion_save_conversation": _handle_save_conversation,
    "companion_record_decision": _handle_record_decision,
    "companion_record_solution": _handle_record_solution,
    "companion_add_todo": _handle_add_todo,
    "companion_complete_todo": _handle_complete_todo,
    "companion_update_summary": _handle_update_summary,
    "companion_end_conversation": _handle_end_conversation,
    "companion_set_preference": _handle_set_preference,
    "companion_update_project": _handle_update_project,
    "companion_cleanup_memories": _handle_cleanup_memories,
    "companion_get_index_stats": _handle_get_index_stats,
    "companion_export_conversation": _handle_export_conversation,
}


@server.list_resources()
async def list_resources() -> List[Resource]:
    """List available MCP resources."""
    return [
        Resource(
            uri="memory://summary",
            name="Memory Summary",
            description="Markdown overview of the memory store",
            mimeType="text/markdown",
        ),
        Resource(
            uri="memory://preferences",
            name="User Preferences",
            description="Current user preference profile as JSON",
            mimeType="application/json",
        ),
        Resource(
            uri="memory://project",
            name="Project Context",
            description="Current project context as JSON",
            mimeType="application/json",
        ),
    ]


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read an MCP resource."""
    ctx = get_context()
    uri = str(uri)

    if uri == "memory://summary":
        return await asyncio.to_thread(ctx.coordinator.get_memory_summary)
    elif uri == "memory://preferences":
        prefs = await asyncio.to_thread(ctx.coordinator.get_user_preferences)
        return prefs.model_dump_json(indent=2)
    elif uri == "memory://project":
        context = await asyncio.to_thread(ctx.coordinator.get_project_context)
        return context.model_dump_json(indent=2)
    else:
        raise ValueError(f"Unknown resource: {uri}")


def initialize(
    settings: Optional[Settings] = None,
    storage_path: Optional[str] = None,
) -> ServerContext:
    """
    Initialize server components.

    Args:
        settings: Companion settings (loaded from env/TOML if not provided)
        storage_path: Override memory store root (takes precedence over settings)

    Returns:
        Initialized ServerContext
    """
    global _context

    if settings is None:
        settings = Settings()
    if storage_path:
        settings.memory.storage_path = storage_path

    if not settings.memory.enabled:
        raise ConfigurationError("Memory system is disabled (COMPANION_MEMORY_ENABLED=false)")

    logger.info("Initializing Companion memory server...")
    coordinator = MemoryCoordinator.initialize(settings)
    _context = ServerContext(coordinator=coordinator, settings=settings)
    return _context


async def run_server() -> None:
    """Run the MCP server, saving all memory state on shutdown."""
    logger.info("Starting Companion MCP server...")

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        if _context is not None:
            _context.coordinator.save_all()
        logger.info("MCP server shutting down")

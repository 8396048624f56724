"""Tool definitions with Pydantic models for input validation."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from companion.core.profiles import DetailLevel, ExplanationStyle, PersonaMode


class ToolInput(BaseModel):
    """Base class for all tool inputs."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")


def _not_blank(value: str, name: str) -> str:
    if not value.strip():
        raise ValueError(f"{name} cannot be empty")
    return value


class ConversationInput(ToolInput):
    """Base for tools addressing an existing conversation."""
    conversation_id: str = Field(description="Conversation id returned when it was saved")

    @field_validator("conversation_id")
    @classmethod
    def validate_conversation_id(cls, v: str) -> str:
        return _not_blank(v, "conversation_id")


class SearchMemoriesInput(ToolInput):
    """Input model for companion_search_memories."""
    query: str = Field(description="Free-text query")
    limit: int = Field(default=10, ge=1, le=50, description="Maximum conversations to return")

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        return _not_blank(v, "Query")


class RecentConversationsInput(ToolInput):
    """Input model for companion_recent_conversations."""
    limit: int = Field(default=10, ge=1, le=100)


class DecisionInput(ToolInput):
    decision: str
    reason: str = ""
    decision_point: Optional[str] = Field(
        default=None,
        description="What was being decided (defaults to the decision text)",
    )


class SolutionInput(ToolInput):
    problem: str
    solution: str
    result: str = ""


class TechnologyInput(ToolInput):
    name: str
    purpose: str = ""


class SaveConversationInput(ToolInput):
    """Input model for companion_save_conversation."""
    title: str = Field(description="Conversation title")
    summary: Optional[str] = None
    decisions: List[DecisionInput] = Field(default_factory=list)
    solutions: List[SolutionInput] = Field(default_factory=list)
    technologies: List[TechnologyInput] = Field(default_factory=list)
    user_name: Optional[str] = None
    project: Optional[str] = None
    end: bool = Field(default=False, description="Close the conversation after saving")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _not_blank(v, "Title")


class RecordDecisionInput(ConversationInput):
    """Input model for companion_record_decision."""
    decision_point: str
    decision: str
    reason: str = ""


class RecordSolutionInput(ConversationInput):
    """Input model for companion_record_solution."""
    problem: str
    solution: str
    result: str = ""


class AddTodoInput(ConversationInput):
    """Input model for companion_add_todo."""
    task: str
    priority: Literal["low", "medium", "high"] = "medium"

    @field_validator("task")
    @classmethod
    def validate_task(cls, v: str) -> str:
        return _not_blank(v, "Task")


class CompleteTodoInput(ConversationInput):
    """Input model for companion_complete_todo."""
    todo_id: str


class UpdateSummaryInput(ConversationInput):
    """Input model for companion_update_summary."""
    summary: str


class SetPreferenceInput(ToolInput):
    """Input model for companion_set_preference."""
    detail_level: Optional[DetailLevel] = None
    explanation_style: Optional[ExplanationStyle] = None
    default_persona: Optional[PersonaMode] = None


class TechStackInput(ToolInput):
    category: str
    technology: str
    version: str = ""
    purpose: str = ""


class UpdateProjectInput(ToolInput):
    """Input model for companion_update_project."""
    overview: Optional[str] = None
    tech_stack: List[TechStackInput] = Field(default_factory=list)


class CleanupMemoriesInput(ToolInput):
    """Input model for companion_cleanup_memories."""
    days_to_keep: Optional[int] = Field(default=None, ge=0)

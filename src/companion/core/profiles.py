"""Singleton profile documents: user preferences and project context.

Both are persisted whole on every change, so they are modelled as
pydantic documents that round-trip through JSON.
"""

from datetime import datetime
from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

PersonaMode = Literal["professional-mentor", "efficient-partner", "architect", "explorer"]
DetailLevel = Literal["concise", "balanced", "comprehensive"]
ExplanationStyle = Literal["direct", "step-by-step", "analogy"]
Severity = Literal["low", "medium", "high", "critical"]


class ProfileModel(BaseModel):
    """Base class for persisted profile documents."""

    model_config = ConfigDict(validate_assignment=True, extra="ignore")


# =============================================================================
# User preferences
# =============================================================================


class CommunicationPreferences(ProfileModel):
    detail_level: DetailLevel = "balanced"
    response_format: Literal["markdown", "text", "json"] = "markdown"
    code_comments: Literal["minimal", "normal", "verbose"] = "normal"
    explanation_style: ExplanationStyle = "step-by-step"


class PersonaPreferences(ProfileModel):
    default_mode: PersonaMode = "efficient-partner"
    preferred_modes: List[PersonaMode] = Field(
        default_factory=lambda: ["efficient-partner", "professional-mentor"]
    )
    mode_switch_triggers: Dict[str, PersonaMode] = Field(
        default_factory=lambda: {
            "learning": "professional-mentor",
            "quick_task": "efficient-partner",
            "design": "architect",
            "exploration": "explorer",
        }
    )


class TechnicalPreferences(ProfileModel):
    preferred_languages: List[str] = Field(default_factory=lambda: ["typescript", "python"])
    preferred_frameworks: List[str] = Field(default_factory=lambda: ["react", "fastapi"])
    code_style: str = "idiomatic"
    documentation_requirement: Literal["minimal", "normal", "comprehensive"] = "normal"


class WorkHabits(ProfileModel):
    working_hours: str = "09:00-18:00"
    check_in_frequency: Literal["continuous", "milestone", "completion"] = "milestone"
    feedback_style: Literal["direct", "gentle", "encouraging"] = "direct"


class PreferenceSet(ProfileModel):
    communication: CommunicationPreferences = Field(default_factory=CommunicationPreferences)
    persona: PersonaPreferences = Field(default_factory=PersonaPreferences)
    technical: TechnicalPreferences = Field(default_factory=TechnicalPreferences)
    work_habits: WorkHabits = Field(default_factory=WorkHabits)


class InteractionHistory(ProfileModel):
    total_sessions: int = 0
    last_session_date: datetime = Field(default_factory=datetime.now)
    common_tasks: List[str] = Field(default_factory=list)
    expertise_areas: List[str] = Field(default_factory=list)


class UserPreferences(ProfileModel):
    """Everything remembered about how a user likes to work."""

    user_id: str
    last_updated: datetime = Field(default_factory=datetime.now)
    preferences: PreferenceSet = Field(default_factory=PreferenceSet)
    interaction_history: InteractionHistory = Field(default_factory=InteractionHistory)


# =============================================================================
# Project context
# =============================================================================


class ProjectInfo(ProfileModel):
    project_name: str
    created_time: datetime = Field(default_factory=datetime.now)
    last_updated: datetime = Field(default_factory=datetime.now)
    project_type: str = "unknown"


class TechStackItem(ProfileModel):
    category: str
    technology: str
    version: str = ""
    purpose: str = ""


class ModuleInfo(ProfileModel):
    name: str
    description: str = ""
    responsibilities: List[str] = Field(default_factory=list)


class CodeStandards(ProfileModel):
    naming_convention: str = "undefined"
    documentation_requirement: str = "undefined"
    testing_requirement: str = "undefined"


class KnownIssue(ProfileModel):
    issue_id: str
    description: str
    severity: Severity = "medium"
    status: str = "open"


class DevelopmentStatus(ProfileModel):
    current_version: str = "0.1.0"
    pending_features: List[str] = Field(default_factory=list)
    in_progress_tasks: List[str] = Field(default_factory=list)
    technical_debt: List[str] = Field(default_factory=list)


class ProjectContext(ProfileModel):
    """Long-lived facts about the project being worked on."""

    project_info: ProjectInfo
    project_overview: str = "Project overview not yet written"
    tech_stack: List[TechStackItem] = Field(default_factory=list)
    architecture_overview: str = "Architecture overview not yet written"
    module_structure: List[ModuleInfo] = Field(default_factory=list)
    code_standards: CodeStandards = Field(default_factory=CodeStandards)
    known_issues: List[KnownIssue] = Field(default_factory=list)
    development_status: DevelopmentStatus = Field(default_factory=DevelopmentStatus)

"""Pydantic settings models for Companion configuration."""

from typing import Literal, Optional, Tuple, Type

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from companion.core.constants import (
    CONVERSATION_WEIGHT,
    DECISION_WEIGHT,
    PROBLEM_ID_LENGTH,
    PROBLEM_WEIGHT,
)


class MemorySettings(BaseSettings):
    """Memory store configuration."""

    enabled: bool = Field(
        default=True,
        description="Enable the memory system",
    )
    storage_path: str = Field(
        default="./ModelMem",
        description="Root directory of the on-disk memory store",
    )
    auto_save: bool = Field(
        default=True,
        description="Persist preferences, project context and index after every mutation",
    )
    auto_load: bool = Field(
        default=True,
        description="Load user preferences and project context during initialization",
    )
    semantic_index: bool = Field(
        default=True,
        description="Maintain the keyword index and use it for retrieval",
    )
    retention_days: int = Field(
        default=365,
        ge=0,
        description="Default age limit in days for keyword index entries",
    )
    global_access: bool = Field(
        default=True,
        description="Resolve storage_path on its own instead of against the working directory",
    )
    markdown_mirror: bool = Field(
        default=True,
        description="Write a human-readable Markdown copy next to each conversation record",
    )

    model_config = SettingsConfigDict(env_prefix="COMPANION_MEMORY_")


class RetrievalSettings(BaseSettings):
    """Keyword retrieval configuration."""

    default_limit: int = Field(
        default=10,
        ge=1,
        description="Default number of conversations returned by retrieval",
    )
    related_limit: int = Field(
        default=5,
        ge=1,
        description="Default limit for related conversation id lookups",
    )
    conversation_weight: float = Field(
        default=CONVERSATION_WEIGHT,
        gt=0.0,
        description="Base relevance of conversation-level index entries",
    )
    decision_weight: float = Field(
        default=DECISION_WEIGHT,
        gt=0.0,
        description="Base relevance of decision index entries",
    )
    problem_weight: float = Field(
        default=PROBLEM_WEIGHT,
        gt=0.0,
        description="Base relevance of problem/solution index entries",
    )
    problem_id_length: int = Field(
        default=PROBLEM_ID_LENGTH,
        ge=1,
        description="Characters of problem text used in problem entry ids",
    )
    hit_relevance: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Relevance reported by retrieve_memories when anything matched",
    )

    model_config = SettingsConfigDict(env_prefix="COMPANION_RETRIEVAL_")


class SessionSettings(BaseSettings):
    """Default identity used by the server and CLI."""

    user_id: str = Field(
        default="default-user",
        description="User id for the preferences profile",
    )
    user_name: str = Field(
        default="companion-user",
        description="Participant name recorded on new conversations",
    )
    project: str = Field(
        default="default-project",
        description="Project tag for new conversations and project context",
    )

    model_config = SettingsConfigDict(env_prefix="COMPANION_SESSION_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    quiet: bool = Field(
        default=False,
        description="Log to ~/.companion instead of stderr (used when running as subprocess)",
    )
    output_file: Optional[str] = Field(
        default=None,
        description="Additional log file path",
    )
    format: Literal["text", "json"] = Field(
        default="text",
        description="Log file format",
    )

    model_config = SettingsConfigDict(env_prefix="COMPANION_LOGGING_")


class Settings(BaseSettings):
    """Root configuration for Companion."""

    memory: MemorySettings = Field(default_factory=MemorySettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        toml_file="configs/companion.toml",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Configure settings sources with TOML support.

        Priority (highest to lowest):
        1. Init settings (constructor arguments)
        2. Environment variables
        3. TOML config file
        4. Default values
        """
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )

"""User preference profile store."""

from datetime import datetime
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, ValidationError

from companion.core.constants import USER_PREFERENCES_FILE
from companion.core.profiles import UserPreferences
from companion.utils.exceptions import NotInitializedError


def merged(model: BaseModel, changes: dict) -> Any:
    """Validated copy of ``model`` with non-None ``changes`` applied."""
    updates = {k: v for k, v in changes.items() if v is not None}
    return type(model).model_validate({**model.model_dump(), **updates})


class UserPreferenceStore:
    """Loads, mutates and persists the single UserPreferences document."""

    def __init__(self, storage):
        self.storage = storage
        self.preferences: Optional[UserPreferences] = None

    @property
    def is_loaded(self) -> bool:
        return self.preferences is not None

    def load(self, user_id: str) -> UserPreferences:
        """Load preferences, writing defaults for ``user_id`` on first use."""
        if self.storage.exists(USER_PREFERENCES_FILE):
            try:
                self.preferences = UserPreferences.model_validate_json(
                    self.storage.read(USER_PREFERENCES_FILE)
                )
                return self.preferences
            except (ValidationError, ValueError) as e:
                logger.warning(f"Unreadable user preferences, using defaults: {e}")

        self.preferences = UserPreferences(user_id=user_id)
        self.save()
        logger.info(f"Created default preferences for {user_id}")
        return self.preferences

    def save(self) -> None:
        prefs = self._require()
        prefs.last_updated = datetime.now()
        self.storage.write(USER_PREFERENCES_FILE, prefs.model_dump_json(indent=2))

    def update_communication(self, **changes: Any) -> UserPreferences:
        prefs = self._require()
        prefs.preferences.communication = merged(prefs.preferences.communication, changes)
        self.save()
        return prefs

    def update_persona(self, **changes: Any) -> UserPreferences:
        prefs = self._require()
        prefs.preferences.persona = merged(prefs.preferences.persona, changes)
        self.save()
        return prefs

    def update_technical(self, **changes: Any) -> UserPreferences:
        prefs = self._require()
        prefs.preferences.technical = merged(prefs.preferences.technical, changes)
        self.save()
        return prefs

    def update_work_habits(self, **changes: Any) -> UserPreferences:
        prefs = self._require()
        prefs.preferences.work_habits = merged(prefs.preferences.work_habits, changes)
        self.save()
        return prefs

    def increment_session_count(self) -> int:
        prefs = self._require()
        prefs.interaction_history.total_sessions += 1
        prefs.interaction_history.last_session_date = datetime.now()
        self.save()
        return prefs.interaction_history.total_sessions

    def record_common_task(self, task: str) -> bool:
        """Remember a recurring task. Returns False if it was already known."""
        prefs = self._require()
        tasks = prefs.interaction_history.common_tasks
        if task in tasks:
            return False
        tasks.append(task)
        self.save()
        return True

    def get_default_persona(self) -> str:
        if self.preferences is None:
            return "efficient-partner"
        return self.preferences.preferences.persona.default_mode

    def _require(self) -> UserPreferences:
        if self.preferences is None:
            raise NotInitializedError("User preferences not loaded")
        return self.preferences

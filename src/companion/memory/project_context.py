"""Project context store.

The JSON document is authoritative; a Markdown overview is rewritten
next to it on every save for humans to read.
"""

from datetime import datetime
from typing import Any, Optional

from loguru import logger
from pydantic import ValidationError

from companion.core.constants import PROJECT_CONTEXT_FILE, PROJECT_OVERVIEW_FILE
from companion.core.profiles import KnownIssue, ProjectContext, ProjectInfo, TechStackItem
from companion.memory.markdown import render_project_context
from companion.memory.user_preferences import merged
from companion.utils.exceptions import NotInitializedError


class ProjectContextStore:
    """Loads, mutates and persists the single ProjectContext document."""

    def __init__(self, storage):
        self.storage = storage
        self.context: Optional[ProjectContext] = None

    @property
    def is_loaded(self) -> bool:
        return self.context is not None

    def load(self, project_name: str) -> ProjectContext:
        """Load the context, writing defaults for ``project_name`` on first use."""
        if self.storage.exists(PROJECT_CONTEXT_FILE):
            try:
                self.context = ProjectContext.model_validate_json(
                    self.storage.read(PROJECT_CONTEXT_FILE)
                )
                return self.context
            except (ValidationError, ValueError) as e:
                logger.warning(f"Unreadable project context, using defaults: {e}")

        self.context = ProjectContext(project_info=ProjectInfo(project_name=project_name))
        self.save()
        logger.info(f"Created default project context for {project_name}")
        return self.context

    def save(self) -> None:
        context = self._require()
        context.project_info.last_updated = datetime.now()
        self.storage.write(PROJECT_CONTEXT_FILE, context.model_dump_json(indent=2))
        self.storage.write(PROJECT_OVERVIEW_FILE, render_project_context(context))

    def update_overview(self, overview: str) -> ProjectContext:
        context = self._require()
        context.project_overview = overview
        self.save()
        return context

    def add_tech_stack_item(self, item: TechStackItem) -> ProjectContext:
        """Insert, or replace the item with the same category and technology."""
        context = self._require()
        for i, existing in enumerate(context.tech_stack):
            if existing.category == item.category and existing.technology == item.technology:
                context.tech_stack[i] = item
                break
        else:
            context.tech_stack.append(item)
        self.save()
        return context

    def add_known_issue(self, issue: KnownIssue) -> ProjectContext:
        """Insert, or replace the issue with the same id."""
        context = self._require()
        for i, existing in enumerate(context.known_issues):
            if existing.issue_id == issue.issue_id:
                context.known_issues[i] = issue
                break
        else:
            context.known_issues.append(issue)
        self.save()
        return context

    def update_development_status(self, **changes: Any) -> ProjectContext:
        context = self._require()
        context.development_status = merged(context.development_status, changes)
        self.save()
        return context

    def add_pending_feature(self, feature: str) -> ProjectContext:
        context = self._require()
        if feature not in context.development_status.pending_features:
            context.development_status.pending_features.append(feature)
            self.save()
        return context

    def add_in_progress_task(self, task: str) -> ProjectContext:
        context = self._require()
        if task not in context.development_status.in_progress_tasks:
            context.development_status.in_progress_tasks.append(task)
            self.save()
        return context

    def _require(self) -> ProjectContext:
        if self.context is None:
            raise NotInitializedError("Project context not loaded")
        return self.context

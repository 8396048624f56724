"""Human-readable Markdown renderings of stored memory.

These are exports only. The JSON documents written by the stores are the
source of truth and nothing here is ever parsed back.
"""

from typing import List, Optional

from companion.core.models import ConversationRecord, IndexStats
from companion.core.profiles import ProjectContext, UserPreferences

OPEN_MARKER = "in progress"


def _cell(text: str) -> str:
    """Escape a value for use inside a Markdown table cell."""
    return text.replace("|", "\\|").replace("\n", " ")


def render_conversation(record: ConversationRecord) -> str:
    """Render a conversation as a front-matter block plus Markdown sections."""
    meta = record.metadata
    lines: List[str] = [
        "---",
        f"conversation_id: {meta.conversation_id}",
        f"title: {meta.title}",
        f"start_time: {meta.start_time.isoformat()}",
        f"end_time: {meta.end_time.isoformat() if meta.end_time else OPEN_MARKER}",
        f"user_name: {meta.user_name}",
        f"project: {meta.project}",
        f"summary: {_cell(meta.summary)}",
        "---",
        "",
        "## Summary",
        "",
        record.summary or "No summary yet",
        "",
    ]

    if record.decisions:
        lines += [
            "## Key Decisions",
            "",
            "| Decision Point | Decision | Rationale |",
            "|----------------|----------|-----------|",
        ]
        for d in record.decisions:
            lines.append(f"| {_cell(d.decision_point)} | {_cell(d.decision)} | {_cell(d.reason)} |")
        lines.append("")

    if record.problems:
        lines += [
            "## Problems and Solutions",
            "",
            "| Problem | Solution | Result |",
            "|---------|----------|--------|",
        ]
        for p in record.problems:
            lines.append(f"| {_cell(p.problem)} | {_cell(p.solution)} | {_cell(p.result)} |")
        lines.append("")

    if record.technologies or record.key_code:
        lines += ["## Technical Details", ""]
        if record.technologies:
            lines.append("### Technologies Used")
            for tech in record.technologies:
                lines.append(f"- {tech.name}: {tech.purpose}" if tech.purpose else f"- {tech.name}")
            lines.append("")
        for snippet in record.key_code:
            lines += ["```", snippet, "```", ""]

    if record.todos:
        lines += ["## Todos", ""]
        for todo in record.todos:
            status = "[x]" if todo.completed else "[ ]"
            glyph = todo.priority.glyph
            lines.append(f"- {status} {glyph} {todo.task}" if glyph else f"- {status} {todo.task}")
        lines.append("")

    if record.user_feedback:
        lines += ["## User Feedback", "", record.user_feedback, ""]

    return "\n".join(lines)


def render_project_context(context: ProjectContext) -> str:
    """Render the project context as a structured Markdown overview."""
    info = context.project_info
    lines: List[str] = [
        "# Project Context",
        "",
        "## Project Info",
        "",
        f"- Project name: {info.project_name}",
        f"- Created: {info.created_time.isoformat()}",
        f"- Last updated: {info.last_updated.isoformat()}",
        f"- Project type: {info.project_type}",
        "",
        "## Overview",
        "",
        context.project_overview,
        "",
    ]

    if context.tech_stack:
        lines += [
            "## Tech Stack",
            "",
            "| Category | Technology | Version | Purpose |",
            "|----------|------------|---------|---------|",
        ]
        for item in context.tech_stack:
            lines.append(
                f"| {_cell(item.category)} | {_cell(item.technology)} "
                f"| {_cell(item.version)} | {_cell(item.purpose)} |"
            )
        lines.append("")

    lines += ["## Architecture", "", context.architecture_overview, ""]

    if context.module_structure:
        lines += ["## Modules", ""]
        for module in context.module_structure:
            lines += [f"### {module.name}", "", module.description, "", "**Responsibilities:**"]
            lines += [f"- {r}" for r in module.responsibilities]
            lines.append("")

    standards = context.code_standards
    lines += [
        "## Code Standards",
        "",
        f"- Naming: {standards.naming_convention}",
        f"- Documentation: {standards.documentation_requirement}",
        f"- Testing: {standards.testing_requirement}",
        "",
    ]

    if context.known_issues:
        lines += [
            "## Known Issues",
            "",
            "| Issue | Description | Severity | Status |",
            "|-------|-------------|----------|--------|",
        ]
        for issue in context.known_issues:
            lines.append(
                f"| {_cell(issue.issue_id)} | {_cell(issue.description)} "
                f"| {issue.severity} | {_cell(issue.status)} |"
            )
        lines.append("")

    status = context.development_status
    lines += ["## Development Status", "", f"- Current version: {status.current_version}", ""]
    for heading, items in (
        ("Pending features", status.pending_features),
        ("In progress", status.in_progress_tasks),
        ("Technical debt", status.technical_debt),
    ):
        if items:
            lines.append(f"**{heading}:**")
            lines += [f"- {item}" for item in items]
            lines.append("")

    return "\n".join(lines)


def render_memory_summary(
    recent: List[ConversationRecord],
    preferences: Optional[UserPreferences],
    context: Optional[ProjectContext],
    stats: IndexStats,
) -> str:
    """Render the short overview returned by the get-memory tool."""
    lines: List[str] = ["## Memory Summary", ""]

    if recent:
        lines += ["### Recent Conversations", ""]
        for conv in recent:
            lines.append(f"- **{conv.metadata.title}** ({conv.metadata.start_time.date().isoformat()})")
            if conv.summary:
                lines.append(f"  {conv.summary[:100]}...")
        lines.append("")

    if preferences:
        prefs = preferences.preferences
        lines += [
            "### User Preferences",
            "",
            f"- Default persona: {prefs.persona.default_mode}",
            f"- Detail level: {prefs.communication.detail_level}",
            f"- Explanation style: {prefs.communication.explanation_style}",
            f"- Total sessions: {preferences.interaction_history.total_sessions}",
            "",
        ]

    if context:
        status = context.development_status
        lines += [
            "### Project Status",
            "",
            f"- Project: {context.project_info.project_name}",
            f"- Current version: {status.current_version}",
            f"- Tasks in progress: {len(status.in_progress_tasks)}",
            f"- Pending features: {len(status.pending_features)}",
            "",
        ]

    lines += [
        "### Index Statistics",
        "",
        f"- Keywords: {stats.keyword_count}",
        f"- Index entries: {stats.total_entry_count}",
        "",
    ]

    return "\n".join(lines)

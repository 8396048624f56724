"""CLI entry point for the companion-memory command."""

import asyncio
import sys
from typing import Optional

import click
from loguru import logger
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from companion.config.settings import Settings
from companion.memory.coordinator import MemoryCoordinator
from companion.utils.exceptions import CompanionError
from companion.utils.logging import configure_logging

console = Console()


def _open(ctx: click.Context) -> MemoryCoordinator:
    settings: Settings = ctx.obj["settings"]
    return MemoryCoordinator.initialize(settings)


@click.group()
@click.option(
    "--storage",
    default=None,
    help="Memory store root (overrides COMPANION_MEMORY_STORAGE_PATH)",
    type=click.Path(file_okay=False),
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, storage: Optional[str], debug: bool) -> None:
    """Companion - keyword-indexed conversation memory."""
    settings = Settings()
    if storage:
        settings.memory.storage_path = storage
    if debug:
        settings.logging.level = "DEBUG"

    configure_logging(settings.logging)
    ctx.obj = {"settings": settings}


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the MCP stdio server."""
    from companion.server import initialize, run_server

    try:
        initialize(settings=ctx.obj["settings"])
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)


@main.command()
@click.pass_context
def summary(ctx: click.Context) -> None:
    """Show the memory summary."""
    coordinator = _open(ctx)
    console.print(Markdown(coordinator.get_memory_summary()))


@main.command()
@click.argument("query")
@click.option("--limit", default=10, show_default=True, help="Maximum conversations")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int) -> None:
    """Find conversations related to QUERY."""
    coordinator = _open(ctx)
    result = coordinator.retrieve_memories(query, limit)
    if not result.conversations:
        console.print(f"[dim]No memories match '{query}'[/]")
        return

    table = Table(title=f"Memories for '{query}'")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Started")
    table.add_column("Decisions", justify="right")
    table.add_column("Summary", overflow="fold")
    for record in result.conversations:
        table.add_row(
            record.id,
            record.metadata.title,
            record.metadata.start_time.strftime("%Y-%m-%d %H:%M"),
            str(len(record.decisions)),
            record.summary[:80],
        )
    console.print(table)


@main.command()
@click.option("--limit", default=10, show_default=True, help="Maximum conversations")
@click.pass_context
def recent(ctx: click.Context, limit: int) -> None:
    """List the most recent conversations."""
    coordinator = _open(ctx)
    table = Table(title="Recent conversations")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Started")
    table.add_column("Status")
    for record in coordinator.get_recent_conversations(limit):
        table.add_row(
            record.id,
            record.metadata.title,
            record.metadata.start_time.strftime("%Y-%m-%d %H:%M"),
            "open" if record.metadata.is_open else "closed",
        )
    console.print(table)


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show keyword index statistics."""
    coordinator = _open(ctx)
    index_stats = coordinator.get_index_stats()
    console.print(f"Storage: {coordinator.storage_path}")
    console.print(f"Conversations: {coordinator.conversations.count()}")
    console.print(f"Keywords: {index_stats.keyword_count}")
    console.print(f"Index entries: {index_stats.total_entry_count}")


@main.command()
@click.option("--days", default=None, type=click.IntRange(min=0), help="Days of index entries to keep")
@click.pass_context
def cleanup(ctx: click.Context, days: Optional[int]) -> None:
    """Evict old keyword index entries (conversation files are kept)."""
    coordinator = _open(ctx)
    evicted = coordinator.cleanup_old_memories(days)
    console.print(f"Evicted {evicted} index entries")


@main.command()
@click.argument("conversation_id")
@click.pass_context
def export(ctx: click.Context, conversation_id: str) -> None:
    """Print a conversation as Markdown."""
    coordinator = _open(ctx)
    try:
        click.echo(coordinator.export_conversation(conversation_id))
    except CompanionError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    main()

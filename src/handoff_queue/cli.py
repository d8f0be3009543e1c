"""Handoff Queue CLI entry point."""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from handoff_queue.config import get_settings
from handoff_queue.domain import Priority, QueueFilter

console = Console()

T = TypeVar("T")

PRIORITY_STYLES = {
    Priority.URGENT: "bold red",
    Priority.HIGH: "yellow",
    Priority.MEDIUM: "cyan",
    Priority.LOW: "dim",
}


def run_async(coro: Callable[[], Awaitable[T]]) -> T:
    """Run an async function with proper database cleanup.

    The database connection is always closed afterwards so that aiosqlite's
    background thread does not keep the command alive.
    """
    from handoff_queue.db import close_database

    async def wrapped() -> T:
        try:
            return await coro()
        finally:
            await close_database()

    return asyncio.run(wrapped())


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


async def _open_coordinator(db_path: Path | None):
    from handoff_queue.db import SQLiteQueueStore, get_database
    from handoff_queue.events import event_bus
    from handoff_queue.queue import BoostThresholds, QueueCoordinator

    db = await get_database(db_path)
    store = SQLiteQueueStore(db)
    coordinator = QueueCoordinator(
        store,
        event_bus=event_bus,
        thresholds=BoostThresholds.from_settings(get_settings()),
    )
    return store, coordinator


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option("--db-path", type=click.Path(path_type=Path), help="Database path")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db_path: Path | None) -> None:
    """Handoff Queue - priority work distribution for escalated conversations."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["db_path"] = db_path
    setup_logging(verbose)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, reload: bool) -> None:
    """Start the Handoff Queue API server."""
    import uvicorn

    db_path = ctx.obj["db_path"]
    if db_path is not None:
        # The app reads its database from settings, also in reload workers
        os.environ["HANDOFF_QUEUE_DB_PATH"] = str(db_path)
        get_settings.cache_clear()

    console.print(f"[bold green]Starting Handoff Queue API server on {host}:{port}[/bold green]")

    uvicorn.run(
        "handoff_queue.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize the queue database."""
    from handoff_queue.db import get_database

    async def do_init() -> Path:
        db = await get_database(ctx.obj["db_path"])
        return db.db_path

    path = run_async(do_init)
    console.print(f"[green]Database initialized at {path}[/green]")


@cli.command("list")
@click.argument("client_id")
@click.option(
    "--priority",
    "-p",
    "priorities",
    multiple=True,
    type=click.Choice([p.value for p in Priority]),
    help="Only show these priorities",
)
@click.option("--limit", default=50, help="Page size")
@click.option("--offset", default=0, help="Items to skip")
@click.pass_context
def list_queue(
    ctx: click.Context,
    client_id: str,
    priorities: tuple[str, ...],
    limit: int,
    offset: int,
) -> None:
    """Show a client's queue in service order."""

    async def do_list():
        _, coordinator = await _open_coordinator(ctx.obj["db_path"])
        queue_filter = QueueFilter(
            priorities=[Priority(p) for p in priorities] or None,
            limit=limit,
            offset=offset,
        )
        return await coordinator.get_queue(client_id, queue_filter)

    page = run_async(do_list)

    if not page.items:
        console.print(f"[yellow]Queue for {client_id} is empty[/yellow]")
        return

    table = Table(title=f"Queue: {client_id} ({page.total} items)")
    table.add_column("ID", style="dim")
    table.add_column("Priority")
    table.add_column("Status")
    table.add_column("Operator")
    table.add_column("Thread")
    table.add_column("Created")

    for item in page.items:
        style = PRIORITY_STYLES[item.priority]
        table.add_row(
            item.id,
            f"[{style}]{item.priority.value}[/{style}]",
            item.status.value,
            item.assigned_to or "-",
            item.thread_id,
            item.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    if page.has_more:
        console.print(f"[dim]More items available (next offset {offset + len(page.items)})[/dim]")


@cli.command()
@click.argument("client_id")
@click.pass_context
def stats(ctx: click.Context, client_id: str) -> None:
    """Show queue statistics and operator workload for a client."""

    async def do_stats():
        _, coordinator = await _open_coordinator(ctx.obj["db_path"])
        return await coordinator.get_stats(client_id), await coordinator.get_operator_workload(client_id)

    queue_stats, workload = run_async(do_stats)

    table = Table(title=f"Queue Stats: {client_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Active Items", str(queue_stats.total))
    for status, count in queue_stats.by_status.items():
        table.add_row(f"  {status}", str(count))
    for priority, count in queue_stats.by_priority.items():
        table.add_row(f"  {priority}", str(count))
    table.add_row("Avg Wait (min)", f"{queue_stats.avg_wait_time_minutes:.1f}")
    oldest = queue_stats.oldest_item_age_ms
    table.add_row("Oldest Pending (min)", f"{oldest / 60000:.1f}" if oldest is not None else "-")
    console.print(table)

    if workload:
        ops = Table(title="Operator Workload")
        ops.add_column("Operator", style="cyan")
        ops.add_column("Load")
        ops.add_column("Capacity")
        ops.add_column("Resolved Today")
        for w in workload:
            ops.add_row(
                w.operator_id,
                str(w.current_load),
                str(w.max_capacity) if w.max_capacity is not None else "-",
                str(w.resolved_today),
            )
        console.print(ops)


@cli.command()
@click.argument("client_id")
@click.pass_context
def boost(ctx: click.Context, client_id: str) -> None:
    """Run one age-based priority boost pass for a client."""

    async def do_boost():
        _, coordinator = await _open_coordinator(ctx.obj["db_path"])
        return await coordinator.apply_priority_boosts(client_id)

    result = run_async(do_boost)
    console.print(f"[green]Boosted {result.boosted_count} items for {client_id}[/green]")
    if not result.completed:
        console.print(f"[red]Stopped at item {result.interrupted_item_id}: {result.error}[/red]")
        raise SystemExit(1)


@cli.command("boost-loop")
@click.option("--interval", type=float, default=None, help="Seconds between boost passes")
@click.pass_context
def boost_loop(ctx: click.Context, interval: float | None) -> None:
    """Run priority boosts for every client on a fixed interval."""
    from handoff_queue.scheduler import BoostScheduler

    poll_interval = interval or get_settings().boost_poll_interval_seconds

    async def run_loop() -> None:
        store, coordinator = await _open_coordinator(ctx.obj["db_path"])
        sched = BoostScheduler(
            coordinator,
            list_clients=store.items.clients_with_pending,
            poll_interval=poll_interval,
        )
        console.print(f"[bold green]Boosting every {poll_interval:g}s...[/bold green]")
        await sched.start()
        try:
            while True:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            await sched.stop()

    try:
        run_async(run_loop)
    except KeyboardInterrupt:
        console.print("\n[yellow]Boost loop stopped[/yellow]")


@cli.command()
@click.argument("operator_id")
@click.pass_context
def redistribute(ctx: click.Context, operator_id: str) -> None:
    """Return every item an operator holds, across all clients, to the queue."""

    async def do_redistribute():
        _, coordinator = await _open_coordinator(ctx.obj["db_path"])
        return await coordinator.redistribute_workload(operator_id)

    result = run_async(do_redistribute)
    console.print(
        f"[green]Redistributed {result.redistributed_count} items from {operator_id}[/green]"
    )
    if not result.completed:
        console.print(f"[red]Stopped at item {result.interrupted_item_id}: {result.error}[/red]")
        raise SystemExit(1)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()

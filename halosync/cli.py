"""HaloSync CLI.

Commands:
- init: Initialize database schema
- check: Validate encryption key and database
- connection-add / connection-list / connection-test / connection-default / connection-remove
- sync: Run a knowledge-base synchronization for a user
- sync-status: Show the latest sync and knowledge-base item counts
"""

from __future__ import annotations

import asyncio
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from halosync.config import get_config
from halosync.connections import service as connections
from halosync.core.logging import configure_logging
from halosync.db.connection import close_db, get_session, init_db
from halosync.knowledge.sync import get_sync_status, run_full_sync
from halosync.knowledge.types import SyncMode, SyncStatus
from halosync.psa.cache import ResponseCache
from halosync.psa.errors import HaloError
from halosync.startup_validation import StartupValidationError, run_startup_validation

app = typer.Typer(
    name="halosync",
    help="HaloSync - HaloPSA connections and knowledge-base sync",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    configure_logging(level=log_level)


def _run(coro) -> None:
    """Run a command coroutine, turning domain errors into a red one-liner."""

    async def _wrapped():
        try:
            await coro
        finally:
            await close_db()

    try:
        asyncio.run(_wrapped())
    except HaloError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")
    _run(init_db(drop=drop))
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def check():
    """Validate the encryption key and database before serving syncs."""

    async def _check():
        async with get_session() as session:
            await run_startup_validation(session)

    try:
        _run(_check())
    except StartupValidationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print("[bold green]✓[/bold green] Startup checks passed")


@app.command(name="connection-add")
def connection_add_cmd(
    user_id: str = typer.Option(..., "--user", help="Owning user ID"),
    name: str = typer.Option(..., "--name", help="Display name"),
    base_url: str = typer.Option(..., "--url", help="HaloPSA base URL"),
    client_id: str = typer.Option(..., "--client-id", prompt=True, help="API client ID"),
    client_secret: str = typer.Option(
        ..., "--client-secret", prompt=True, hide_input=True, help="API client secret"
    ),
    tenant: str | None = typer.Option(None, "--tenant", help="Tenant for hosted instances"),
    test: bool = typer.Option(True, "--test/--no-test", help="Test after saving"),
):
    """Store a new HaloPSA connection (credentials are encrypted at rest)."""

    async def _add():
        async with get_session() as session:
            connection = await connections.create_connection(
                session, user_id, name, base_url, client_id, client_secret, tenant
            )
            default = " (default)" if connection.is_default else ""
            console.print(f"[green]✓[/green] Saved connection {connection.id}{default}")

            if test:
                result = await connections.test_connection(session, user_id, connection.id)
                _print_test_result(result)

    _run(_add())


@app.command(name="connection-list")
def connection_list_cmd(
    user_id: str = typer.Option(..., "--user", help="Owning user ID"),
):
    """List a user's connections, newest first."""

    async def _list():
        async with get_session() as session:
            views = await connections.list_connections(session, user_id)

        if not views:
            console.print("[yellow]No connections configured[/yellow]")
            return

        table = Table(title="HaloPSA Connections")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("URL")
        table.add_column("Default", justify="center")
        table.add_column("Test", style="bold")
        table.add_column("Last used")

        for view in views:
            style = {"SUCCESS": "green", "FAILED": "red"}.get(view.test_status, "yellow")
            table.add_row(
                str(view.id),
                view.name,
                view.base_url,
                "✓" if view.is_default else "",
                f"[{style}]{view.test_status}[/{style}]",
                view.last_used_at.isoformat() if view.last_used_at else "-",
            )
        console.print(table)

    _run(_list())


def _print_test_result(result: connections.ConnectionTestResult) -> None:
    if result.success:
        console.print(f"[green]✓ {result.message}[/green]")
    else:
        console.print(f"[red]✗ {result.message}[/red]")


@app.command(name="connection-test")
def connection_test_cmd(
    connection_id: UUID = typer.Argument(..., help="Connection ID"),
    user_id: str = typer.Option(..., "--user", help="Owning user ID"),
):
    """Authenticate with a stored connection and record the outcome."""

    async def _test():
        async with get_session() as session:
            result = await connections.test_connection(session, user_id, connection_id)
        _print_test_result(result)
        if not result.success:
            raise typer.Exit(code=1)

    _run(_test())


@app.command(name="connection-default")
def connection_default_cmd(
    connection_id: UUID = typer.Argument(..., help="Connection ID"),
    user_id: str = typer.Option(..., "--user", help="Owning user ID"),
):
    """Make a connection the user's default."""

    async def _default():
        async with get_session() as session:
            connection = await connections.set_default_connection(session, user_id, connection_id)
            console.print(f"[green]✓[/green] {connection.name} is now the default connection")

    _run(_default())


@app.command(name="connection-remove")
def connection_remove_cmd(
    connection_id: UUID = typer.Argument(..., help="Connection ID"),
    user_id: str = typer.Option(..., "--user", help="Owning user ID"),
):
    """Delete a connection."""

    async def _remove():
        async with get_session() as session:
            await connections.delete_connection(session, user_id, connection_id)
        console.print(f"[green]✓[/green] Removed connection {connection_id}")

    _run(_remove())


@app.command()
def sync(
    user_id: str = typer.Option(..., "--user", help="User whose knowledge base to sync"),
    quick: bool = typer.Option(False, "--quick", help="Only core configuration, agents and teams"),
    show_errors: int = typer.Option(5, "--show-errors", help="Number of errors to print"),
):
    """Synchronize HaloPSA data into the user's knowledge base."""
    config = get_config()
    mode = SyncMode.QUICK if quick else SyncMode.FULL
    cache = None
    if config.cache.enabled:
        cache = ResponseCache(config.cache.max_size, config.cache.default_ttl_seconds)

    console.print(f"[bold]Starting {mode.value} sync for user {user_id}[/bold]")

    async def _sync():
        async with get_session() as session:
            result = await run_full_sync(session, user_id, mode=mode, cache=cache, config=config)

        style = {SyncStatus.COMPLETED: "green", SyncStatus.PARTIAL: "yellow"}.get(
            result.status, "red"
        )
        console.print(f"Status: [{style}]{result.status.value}[/{style}]")
        console.print(
            f"Added: {result.items_added}  Updated: {result.items_updated}  "
            f"Removed: {result.items_removed}  Errors: {result.error_count}"
        )
        if result.duration_seconds is not None:
            console.print(f"Duration: {result.duration_seconds:.1f}s")

        if result.errors:
            console.print("\n[bold red]Errors:[/bold red]")
            for error in result.errors[:show_errors]:
                console.print(f"  • {error}")

    _run(_sync())


@app.command(name="sync-status")
def sync_status_cmd(
    user_id: str = typer.Option(..., "--user", help="User ID"),
):
    """Show the latest sync and the knowledge-base item counts."""

    async def _status():
        async with get_session() as session:
            status = await get_sync_status(session, user_id)

        last = status["last_sync"]
        if last is None:
            console.print("[yellow]No sync has run yet[/yellow]")
        else:
            console.print(f"[bold]Last sync:[/bold] {last['status']} ({last['sync_type']})")
            console.print(f"Started: {last['started_at']}  Completed: {last['completed_at'] or '-'}")
            console.print(
                f"Added: {last['items_added']}  Updated: {last['items_updated']}  "
                f"Errors: {last['error_count']}"
            )

        table = Table(title=f"Knowledge base ({status['total_items']} items)")
        table.add_column("Category", style="cyan")
        table.add_column("Items", justify="right")
        for category, count in sorted(status["items_by_category"].items()):
            table.add_row(category, str(count))
        console.print(table)

        if status["needs_sync"]:
            console.print("[yellow]⚠ Knowledge base is stale, run `halosync sync`[/yellow]")

    _run(_status())


if __name__ == "__main__":
    app()

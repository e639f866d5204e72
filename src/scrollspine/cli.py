"""CLI entry point."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from scrollspine.core.cancellation import CancellationToken, install_signal_handlers
from scrollspine.core.config import Settings, get_settings
from scrollspine.core.exceptions import BrowserError, ConfigurationError, StorageError, StoreUnavailableError
from scrollspine.core.logging import configure_logging

app = typer.Typer(
    name="scrollspine",
    help="Enumerate items from an infinite-scroll web panel into durable stores",
    no_args_is_help=True,
)
console = Console()


def _settings(headful: bool = False, output: Path | None = None, log_format: str | None = None) -> Settings:
    overrides: dict[str, object] = {}
    if headful:
        overrides["headful"] = True
    if output is not None:
        overrides["output_path"] = output
    if log_format is not None:
        overrides["log_format"] = log_format
    settings = get_settings(**overrides)
    try:
        configure_logging(settings.log_level, settings.log_format)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    return settings


async def _run_once(settings: Settings) -> bool:
    from scrollspine.auth.recovery import AuthGate
    from scrollspine.browser.playwright import launch_session
    from scrollspine.notifier.dispatcher import create_notifier
    from scrollspine.reporter.simple import SimpleProgressReporter
    from scrollspine.storage.factory import create_coordinator
    from scrollspine.watch.scheduler import run_one_pass

    coordinator = create_coordinator(settings)
    notifier = create_notifier(settings)
    await coordinator.initialize()
    session = None
    try:
        session = await launch_session(settings)
        outcome = await run_one_pass(
            session,
            coordinator,
            settings=settings,
            auth_gate=AuthGate(settings, notifier=notifier),
            progress=SimpleProgressReporter(),
            pass_number=1,
        )
    finally:
        if session is not None:
            await session.close()
        await coordinator.close()
        await notifier.close()

    if outcome.ok:
        console.print(f"[green]Scan complete:[/green] {outcome.result.summary()}")
        return True
    console.print(f"[red]Scan failed:[/red] {outcome.reason}")
    return False


async def _watch(settings: Settings, interval: str | None) -> None:
    from scrollspine.browser.playwright import launch_session
    from scrollspine.notifier.dispatcher import create_notifier
    from scrollspine.reporter.simple import SimpleProgressReporter
    from scrollspine.storage.factory import create_coordinator
    from scrollspine.watch.interval import parse_interval
    from scrollspine.watch.scheduler import WatchScheduler

    seconds = parse_interval(interval or settings.watch_interval, minimum=settings.min_watch_interval)
    coordinator = create_coordinator(settings)
    notifier = create_notifier(settings)
    await coordinator.initialize()

    async def session_factory(force_headful: bool):
        return await launch_session(settings, force_headful=force_headful)

    token = CancellationToken()
    install_signal_handlers(token)
    scheduler = WatchScheduler(
        settings,
        coordinator,
        session_factory,
        notifier=notifier,
        interval=seconds,
        progress=SimpleProgressReporter(log_level=logging.DEBUG),
    )
    try:
        await scheduler.run(token)
    finally:
        await coordinator.close()
        await notifier.close()


@app.command()
def run(
    headful: bool = typer.Option(False, "--headful", help="Show the browser window"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Local JSON store path"),
    log_format: str | None = typer.Option(None, "--log-format", help="plain or rich"),
) -> None:
    """Run a single enumeration pass."""
    settings = _settings(headful, output, log_format)
    try:
        ok = asyncio.run(_run_once(settings))
    except StoreUnavailableError as e:
        console.print(f"[red]Storage unavailable:[/red] {e}")
        raise typer.Exit(code=1) from e
    except BrowserError as e:
        console.print(f"[red]Browser error:[/red] {e}")
        raise typer.Exit(code=1) from e
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def watch(
    interval: str | None = typer.Option(None, "--interval", "-i", help="Time between scans (e.g. 30s, 15m, 1h)"),
    headful: bool = typer.Option(False, "--headful", help="Show the browser window"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Local JSON store path"),
    log_format: str | None = typer.Option(None, "--log-format", help="plain or rich"),
) -> None:
    """Scan continuously until interrupted."""
    settings = _settings(headful, output, log_format)
    try:
        asyncio.run(_watch(settings, interval))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=2) from e
    except StoreUnavailableError as e:
        console.print(f"[red]Storage unavailable:[/red] {e}")
        raise typer.Exit(code=1) from e


async def _load_status(settings: Settings):
    from scrollspine.storage.json_file import JsonFileStore

    store = JsonFileStore(settings.output_path, read_only=True)
    await store.initialize()
    try:
        return await store.get_items(), await store.list_runs(), await store.get_run_state()
    finally:
        await store.close()


@app.command()
def status(
    output: Path | None = typer.Option(None, "--output", "-o", help="Local JSON store path"),
    limit: int = typer.Option(10, "--limit", "-n", help="Runs to show"),
) -> None:
    """Show stored items and recent runs."""
    settings = get_settings(**({"output_path": output} if output is not None else {}))
    try:
        items, runs, state = asyncio.run(_load_status(settings))
    except StorageError as e:
        console.print(f"[red]Cannot read store:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[bold]Store:[/bold] {settings.output_path}")
    console.print(f"[bold]Items:[/bold] {len(items):,}")
    console.print(f"[bold]Current run:[/bold] {state.current_run_id or '-'}")

    table = Table(title="Recent runs")
    table.add_column("Run")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Found", justify="right")
    table.add_column("Extracted", justify="right")
    table.add_column("Error")
    colors = {"completed": "green", "failed": "red", "active": "yellow"}
    for entry in runs[:limit]:
        color = colors.get(entry.status.value, "white")
        table.add_row(
            entry.id[:8],
            f"[{color}]{entry.status.value}[/{color}]",
            entry.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(entry.items_found),
            str(entry.items_extracted),
            entry.error or "",
        )
    console.print(table)


@app.command()
def version() -> None:
    """Show version."""
    from scrollspine import __version__

    console.print(f"scrollspine {__version__}")


if __name__ == "__main__":
    app()

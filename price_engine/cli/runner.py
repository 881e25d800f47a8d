# price_engine/cli/runner.py

"""Headless CLI commands: one-shot extraction, polling, target management."""

import asyncio
import json
import logging
import signal
import sys

from rich.console import Console
from rich.table import Table

from price_engine.config.settings import Settings
from price_engine.errors import StoreError
from price_engine.services.price_extractor import (
    AttemptOutcome,
    PriceExtractor,
    log_attempt,
)
from price_engine.services.price_poller import PricePoller
from price_engine.storage.target_store import SQLiteTargetStore

logger = logging.getLogger("price_engine.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

_OUTCOME_STYLES: dict[AttemptOutcome, str] = {
    AttemptOutcome.SUCCESS: "green",
    AttemptOutcome.NOT_FOUND: "dim",
    AttemptOutcome.MALFORMED: "yellow",
    AttemptOutcome.FETCH_ERROR: "red",
    AttemptOutcome.RENDER_TIMEOUT: "red",
    AttemptOutcome.ERROR: "red",
}


def _print_attempts(attempts: list[tuple[str, AttemptOutcome]]) -> None:
    """Render the per-strategy attempt trail to stderr."""
    table = Table(
        title="Extraction Attempts",
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Strategy")
    table.add_column("Outcome", justify="center")
    for idx, (label, outcome) in enumerate(attempts, 1):
        style = _OUTCOME_STYLES.get(outcome, "")
        table.add_row(
            str(idx), label, f"[{style}]{outcome.value}[/{style}]",
        )
    _err.print(table)


def cli_extract(url: str, render: bool, output_format: str) -> int:
    """Extract the price of one URL and print it (0=found, 1=not found)."""
    attempts: list[tuple[str, AttemptOutcome]] = []

    def record(label: str, outcome: AttemptOutcome) -> None:
        attempts.append((label, outcome))
        log_attempt(label, outcome)

    extractor = PriceExtractor(on_attempt=record, render_enabled=render)
    _err.print(f"[bold]Extracting:[/bold] {url}")
    result = extractor.extract(url)

    if output_format == "table":
        _print_attempts(attempts)

    if result is None:
        _err.print("[yellow]No price found.[/yellow]")
        if output_format == "json":
            json.dump({"url": url, "price": None}, sys.stdout)
            sys.stdout.write("\n")
        return 1

    if output_format == "table":
        Console().print(
            f"[green]{result.price:,.2f}[/green] "
            f"[dim]via {result.method_label}[/dim]"
        )
    else:
        json.dump(
            {
                "url": url,
                "price": str(result.price),
                "method": result.method_label,
                "snippet": result.raw_snippet,
            },
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")
    return 0


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    """Set *stop_event* on SIGINT/SIGTERM where the loop supports it."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handlers unavailable for %s", sig)


async def run_poller(once: bool, interval: float | None) -> int:
    """Run the background poller until interrupted (or a single cycle)."""
    store = SQLiteTargetStore()
    poller = PricePoller(
        extractor=PriceExtractor(),
        store=store,
        interval=interval,
    )
    stop_event = asyncio.Event()
    _install_stop_handlers(stop_event)
    try:
        if once:
            report = await poller.run_cycle(stop_event)
            _err.print(
                f"[green]✓ {report.succeeded} updated[/green], "
                f"[red]{report.failed} failed[/red] "
                f"of {report.total} targets"
            )
            return 0 if report.failed == 0 else 1
        _err.print(
            f"[bold]Polling every {poller.interval:.0f}s[/bold] "
            "[dim](Ctrl+C to stop)[/dim]"
        )
        await poller.run_forever(stop_event)
        return 0
    finally:
        store.close()


async def run_refresh(target_id: int) -> int:
    """Refresh one target immediately, outside the poll schedule."""
    store = SQLiteTargetStore()
    try:
        target = store.get_target(target_id)
        if target is None:
            _err.print(f"[red]Unknown target id {target_id}[/red]")
            return 1
        poller = PricePoller(extractor=PriceExtractor(), store=store)
        point = await poller.refresh_target(target)
    finally:
        store.close()

    if point is None:
        _err.print("[yellow]Price not found on the page.[/yellow]")
        return 1
    _err.print(
        f"[green]✓ {target.name or target.url}: {point.price:,.2f}[/green]"
    )
    return 0


def _print_targets(store: SQLiteTargetStore) -> None:
    table = Table(
        title="Tracked Targets",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=5)
    table.add_column("Name", max_width=40)
    table.add_column("Last Price", justify="right", style="green")
    table.add_column("Active", justify="center")
    table.add_column("URL", overflow="fold", style="dim")
    for t in store.list_targets():
        table.add_row(
            str(t.id),
            t.name or "-",
            f"{t.last_price:,.2f}" if t.last_price is not None else "N/A",
            "✅" if t.is_active else "⏸",
            t.url,
        )
    Console().print(table)


def run_targets(
    action: str,
    url: str | None = None,
    name: str = "",
    target_id: int | None = None,
) -> int:
    """Add, list, enable or disable tracked targets."""
    try:
        store = SQLiteTargetStore()
    except StoreError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    try:
        if action == "add" and url:
            target = store.add_target(url, name)
            _err.print(
                f"[green]✓ Tracking #{target.id}: {target.url}[/green]"
            )
        elif action == "list":
            _print_targets(store)
        elif action in ("enable", "disable") and target_id is not None:
            if not store.set_active(target_id, action == "enable"):
                _err.print(f"[red]Unknown target id {target_id}[/red]")
                return 1
            _err.print(f"[green]✓ Target #{target_id} {action}d[/green]")
        else:
            _err.print(f"[red]Invalid targets command: {action}[/red]")
            return 1
    except StoreError as exc:
        logger.error("Store error: %s", exc, exc_info=True)
        _err.print(f"[red]Store error: {exc}[/red]")
        return 1
    finally:
        store.close()
    return 0


def run_history(target_id: int) -> int:
    """Print the price history and trend summary for one target."""
    store = SQLiteTargetStore()
    try:
        target = store.get_target(target_id)
        if target is None:
            _err.print(f"[red]Unknown target id {target_id}[/red]")
            return 1
        history = store.get_price_history(target_id)
        summary = store.get_trend_summary(target_id)
    finally:
        store.close()

    if not history or summary is None:
        _err.print("[yellow]No price history yet.[/yellow]")
        return 0

    table = Table(
        title=f"Price History: {target.name or target.url}",
        title_style="bold cyan",
    )
    table.add_column("Retrieved At", style="dim")
    table.add_column("Price", justify="right", style="green")
    for point in history:
        table.add_row(
            point.retrieved_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{point.price:,.2f}",
        )
    console = Console()
    console.print(table)
    console.print(
        f"min {summary['min']}  max {summary['max']}  "
        f"avg {summary['avg']}  latest {summary['latest']}  "
        f"({summary['count']} points)"
    )
    return 0


def describe_settings() -> str:
    """One-line summary of the effective configuration, for the log."""
    return (
        f"db={Settings.DB_PATH} interval={Settings.POLL_INTERVAL:.0f}s "
        f"render={'on' if Settings.RENDER_ENABLED else 'off'}"
    )

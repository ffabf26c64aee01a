"""
Cadence CLI entry point.

Commands:
    cadence version  — Show version
    cadence config   — Show the effective configuration
    cadence demo     — Run a live scheduler with a recurring and a one-shot task
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="cadence",
    help="Cadence — many timed tasks, one heartbeat.",
    add_completion=False,
)

console = Console()


def _load_config(overrides: dict | None = None):
    from cadence.core.config import CadenceConfig
    from cadence.core.errors import ConfigError

    try:
        return CadenceConfig.load(overrides=overrides)
    except ConfigError as e:
        console.print(e.message, style="red", markup=False)
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show Cadence version."""
    from cadence import __version__
    console.print(f"Cadence v{__version__}")


@app.command()
def config() -> None:
    """Show current configuration."""
    cfg = _load_config()

    console.print(Panel("[bold]Cadence Configuration[/bold]", border_style="cyan"))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting")
    table.add_column("Value")
    for section_name, section in (("scheduler", cfg.scheduler), ("logging", cfg.logging)):
        for key, value in section.model_dump().items():
            table.add_row(f"{section_name}.{key}", str(value))
    console.print(table)


@app.command()
def demo(
    heartbeat: float = typer.Option(None, "--heartbeat", "-b", help="Heartbeat in ms"),
    duration: float = typer.Option(3.0, "--duration", "-d", help="Seconds to run"),
    interval: float = typer.Option(500, "--interval", "-i", help="Recurring task interval in ms"),
    iterations: int = typer.Option(0, "--iterations", "-n", help="Recurring firings (0 = unlimited)"),
    after: float = typer.Option(1000, "--after", "-a", help="One-shot delay in ms"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Run a live scheduler and print every firing."""
    overrides = {"scheduler": {"heartbeat": heartbeat}} if heartbeat is not None else None
    cfg = _load_config(overrides)
    asyncio.run(_run_demo(cfg, duration, interval, iterations, after, verbose))


async def _run_demo(cfg, duration: float, interval: float, iterations: int, after: float, verbose: bool) -> None:
    from cadence.core.bus import EventBus
    from cadence.core.events import Event, EventType
    from cadence.core.log import level_from_name, setup_logging
    from cadence.scheduler.engine import Scheduler

    log_level = logging.DEBUG if verbose else level_from_name(cfg.logging.level)
    setup_logging(log_dir=cfg.logging.log_dir, console_level=log_level)

    bus = EventBus()
    scheduler = Scheduler(cfg.scheduler, bus=bus)
    loop = asyncio.get_running_loop()
    started = loop.time()

    def show(event: Event) -> None:
        elapsed = loop.time() - started
        style = "red" if event.type == EventType.TASK_FAILED else "green"
        console.print(f"[dim]{elapsed:6.2f}s[/dim] [{style}]{event.type}[/{style}] {event.data.get('name', '')}")

    bus.on("task:*", show)

    scheduler.add({
        "name": "recurring",
        "interval": interval,
        "iterations": iterations,
        "callback": lambda task: None,
    })
    scheduler.add({"name": "one-shot", "after": after, "callback": lambda task: None})

    result = scheduler.start()
    if not result:
        console.print(result.message, style="red", markup=False)
        raise typer.Exit(1)

    try:
        await asyncio.sleep(duration)
    finally:
        scheduler.stop()

    table = Table(title="Remaining tasks", show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Fired")
    for snap in scheduler.snapshot()["tasks"]:
        table.add_row(snap["name"], snap["kind"], str(snap.get("iteration_count", "-")))
    console.print(table)


if __name__ == "__main__":
    app()

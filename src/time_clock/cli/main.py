"""Main CLI application."""

import asyncio
import logging
import sys
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click  # type: ignore[import-not-found]
from rich.console import Console  # type: ignore[import-not-found]

from time_clock import __version__
from time_clock.analysis.reports import ReportGenerator
from time_clock.cli.config_commands import config
from time_clock.core.breaks import BREAK_TYPES
from time_clock.core.clock import ClockService
from time_clock.core.config import ConfigManager
from time_clock.core.errors import Err, Result, TimeClockError
from time_clock.core.models import OvertimePolicy
from time_clock.core.storage import JsonFileStore
from time_clock.engine.maintenance import auto_close_stale_entries
from time_clock.engine.pubsub import MulticastPubSub, PubSub
from time_clock.engine.scheduler import AsyncioScheduler
from time_clock.engine.session import EngineSettings, SessionEngine
from time_clock.export_import import get_exporter
from time_clock.notifications.notifier import create_notifier

console = Console()
error_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _setup_logging(config_mgr: ConfigManager) -> None:
    """Configure the ``time_clock`` logger from the ``advanced`` config section."""
    logger = logging.getLogger("time_clock")
    if logger.handlers:
        return
    logger.setLevel(config_mgr.get("advanced.log_level", "WARNING"))
    formatter = logging.Formatter(LOG_FORMAT)

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    log_file = config_mgr.get("advanced.log_file")
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def get_config(ctx: click.Context) -> ConfigManager:
    """Load the configuration selected on the command line."""
    config_path = ctx.obj.get("config_path")
    try:
        return ConfigManager(Path(config_path) if config_path else None)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def get_store(ctx: click.Context, config_mgr: ConfigManager) -> JsonFileStore:
    data_dir = ctx.obj.get("data_dir")
    return JsonFileStore(Path(data_dir) if data_dir else config_mgr.data_dir)


def build_engine(
    ctx: click.Context, config_mgr: ConfigManager, pubsub: Optional[PubSub] = None
) -> SessionEngine:
    """Wire a session engine from configuration."""
    return SessionEngine(
        store=get_store(ctx, config_mgr),
        clock=ClockService.from_config(config_mgr),
        scheduler=AsyncioScheduler(),
        notifier=create_notifier(config_mgr),
        pubsub=pubsub,
        policy=OvertimePolicy.from_config(config_mgr),
        settings=EngineSettings.from_config(config_mgr),
    )


def run_with_engine(
    ctx: click.Context, operation: Callable[[SessionEngine], Awaitable[Result[Any]]]
) -> Any:
    """Initialize an engine, run one operation and shut the engine down.

    Prints the error and exits with status 1 when the operation fails.
    """
    config_mgr = get_config(ctx)
    _setup_logging(config_mgr)
    user_id = ctx.obj.get("user") or config_mgr.resolve_user_id()

    async def main() -> Result[Any]:
        engine = build_engine(ctx, config_mgr)
        started = await engine.initialize(user_id)
        if isinstance(started, Err):
            return started
        try:
            return await operation(engine)
        finally:
            await engine.shutdown()

    result = asyncio.run(main())
    if isinstance(result, Err):
        error_console.print(f"[red]Error:[/red] {result.message}")
        sys.exit(1)
    return result.value


def parse_when(value: Optional[str], clock: Optional[ClockService] = None) -> Optional[datetime]:
    """Parse an ISO timestamp, or a bare ``HH:MM`` on the clock's current day."""
    if value is None:
        return None
    clock = clock or ClockService()
    try:
        if len(value) <= 5 and ":" in value:
            hour, minute = (int(part) for part in value.split(":"))
            return datetime.combine(clock.today(), time(hour, minute), tzinfo=clock.tz)
        return datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"Invalid time '{value}'. Use HH:MM or YYYY-MM-DDTHH:MM")


def format_time(dt: Optional[datetime]) -> str:
    """Format an instant for display."""
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M")


@click.group()  # type: ignore[misc]
@click.version_option(version=__version__)  # type: ignore[misc]
@click.option("--data-dir", help="Custom data directory", type=click.Path())  # type: ignore[misc]
@click.option("--config", "config_path", help="Custom config file", type=click.Path())  # type: ignore[misc]
@click.option("--user", help="User id (default: configured user or login name)")  # type: ignore[misc]
@click.option("--no-color", is_flag=True, help="Disable colored output")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def cli(
    ctx: click.Context,
    data_dir: Optional[str],
    config_path: Optional[str],
    user: Optional[str],
    no_color: bool,
) -> None:
    """Time Clock - Employee time clock for the command line.

    Clock in and out, take breaks and follow your daily, weekly and
    monthly hours and overtime.
    """
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["config_path"] = config_path
    ctx.obj["user"] = user

    if no_color:
        console.no_color = True
        error_console.no_color = True


cli.add_command(config)


@cli.command("clock-in")  # type: ignore[misc]
@click.option("-n", "--notes", help="Notes for this entry")  # type: ignore[misc]
@click.option("--force", is_flag=True, help="Close an open entry first")  # type: ignore[misc]
@click.option("--at", "at", help="Clock-in time (HH:MM or ISO timestamp)")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def clock_in(ctx: click.Context, notes: Optional[str], force: bool, at: Optional[str]) -> None:
    """Clock in and start a new time entry.

    Example:
        time-clock clock-in
        time-clock clock-in -n "Release day" --at 08:30
    """
    when = parse_when(at, ClockService.from_config(get_config(ctx)))
    entry = run_with_engine(ctx, lambda engine: engine.clock_in(notes, force, when))

    console.print(f"[green]✓[/green] Clocked in at {format_time(entry.clock_in)}")
    if entry.notes:
        console.print(f"  Notes: {entry.notes}")


@cli.command("clock-out")  # type: ignore[misc]
@click.option("-n", "--notes", help="Notes to add to the entry")  # type: ignore[misc]
@click.option("--at", "at", help="Clock-out time (HH:MM or ISO timestamp)")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def clock_out(ctx: click.Context, notes: Optional[str], at: Optional[str]) -> None:
    """Clock out of the open time entry.

    Example:
        time-clock clock-out
        time-clock clock-out -n "Finished the migration"
    """
    when = parse_when(at, ClockService.from_config(get_config(ctx)))
    entry = run_with_engine(ctx, lambda engine: engine.clock_out(when, notes))

    console.print(f"[green]✓[/green] Clocked out at {format_time(entry.clock_out)}")
    console.print(f"  Total: {entry.total_hours:.2f}h")
    if entry.overtime_hours:
        console.print(f"  Overtime: {entry.overtime_hours:.2f}h")
    if entry.double_overtime_hours:
        console.print(f"  Double overtime: {entry.double_overtime_hours:.2f}h")


@cli.group("break")  # type: ignore[misc]
def break_group() -> None:
    """Start and end breaks."""
    pass


@break_group.command("start")  # type: ignore[misc]
@click.argument(  # type: ignore[misc]
    "break_type",
    default="short_break",
    type=click.Choice([t.value for t in BREAK_TYPES] + ["short", "extended"]),
)
@click.pass_context  # type: ignore[misc]
def break_start(ctx: click.Context, break_type: str) -> None:
    """Start a break (lunch, short_break or extended_break).

    Example:
        time-clock break start lunch
    """
    period = run_with_engine(ctx, lambda engine: engine.start_break(break_type))
    break_config = BREAK_TYPES[period.type]
    console.print(f"[green]✓[/green] {break_config.name} started at {period.start_time:%H:%M}")
    console.print(f"  Suggested duration: {break_config.default_duration} minutes")


@break_group.command("end")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def break_end(ctx: click.Context) -> None:
    """End the current break.

    Example:
        time-clock break end
    """
    period = run_with_engine(ctx, lambda engine: engine.end_break())
    console.print(f"[green]✓[/green] {BREAK_TYPES[period.type].name} ended")
    console.print(f"  Duration: {period.duration} minutes")


@cli.command()  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def status(ctx: click.Context) -> None:
    """Show whether you are clocked in or on a break."""

    async def current(engine: SessionEngine) -> Result[Any]:
        return await engine.sync()

    engine_status = run_with_engine(ctx, current)
    entry = engine_status.active_entry
    live_hours = 0.0
    if entry is not None:
        live_hours = entry.compute_total_hours(datetime.now(entry.clock_in.tzinfo))
    ReportGenerator(console).status_report(entry, live_hours)


@cli.command()  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def today(ctx: click.Context) -> None:
    """Show today's hours, breaks and overtime."""
    summary = run_with_engine(ctx, lambda engine: engine.get_today_progress())
    ReportGenerator(console).daily_report(summary)


@cli.command()  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def week(ctx: click.Context) -> None:
    """Show this week's summary."""
    summary = run_with_engine(ctx, lambda engine: engine.get_weekly_progress())
    ReportGenerator(console).weekly_report(summary)


@cli.command()  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def month(ctx: click.Context) -> None:
    """Show this month's summary."""
    summary = run_with_engine(ctx, lambda engine: engine.get_monthly_progress())
    ReportGenerator(console).monthly_report(summary)


@cli.command()  # type: ignore[misc]
@click.option("--from", "start", type=click.DateTime(["%Y-%m-%d"]), help="First day")  # type: ignore[misc]
@click.option("--to", "end", type=click.DateTime(["%Y-%m-%d"]), help="Last day")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def metrics(ctx: click.Context, start: Optional[datetime], end: Optional[datetime]) -> None:
    """Show streaks, punctuality and trends (default: last 30 days).

    Example:
        time-clock metrics --from 2025-01-01 --to 2025-01-31
    """
    first = start.date() if start else None
    last = end.date() if end else None
    result = run_with_engine(ctx, lambda engine: engine.get_progress_metrics(first, last))
    ReportGenerator(console).metrics_report(result)


@cli.command()  # type: ignore[misc]
@click.option(  # type: ignore[misc]
    "--period", type=click.Choice(["day", "week", "month"]), default="day", help="Summary period"
)
@click.option(  # type: ignore[misc]
    "--format", "fmt", type=click.Choice(["json", "csv"]), default="json", help="Output format"
)
@click.option("-o", "--output", type=click.Path(), help="Write to file instead of stdout")  # type: ignore[misc]
@click.option("--entries", is_flag=True, help="Export raw entries instead of the summary")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def export(
    ctx: click.Context, period: str, fmt: str, output: Optional[str], entries: bool
) -> None:
    """Export a summary or the period's entries as JSON or CSV.

    Example:
        time-clock export --period week --format csv -o week.csv
    """
    if entries:
        config_mgr = get_config(ctx)
        _setup_logging(config_mgr)
        store = get_store(ctx, config_mgr)
        clock = ClockService.from_config(config_mgr)
        user_id = ctx.obj.get("user") or config_mgr.resolve_user_id()
        today_ = clock.today()
        ranges = {
            "day": (clock.start_of_day(today_), clock.end_of_day(today_)),
            "week": (clock.start_of_week(today_), clock.end_of_week(today_)),
            "month": (clock.start_of_month(today_), clock.end_of_month(today_)),
        }
        start, end = ranges[period]
        try:
            found = asyncio.run(store.find_entries(user_id, start, end))
        except TimeClockError as e:
            error_console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        exporter = get_exporter(fmt, Path(output) if output else None)
        text = exporter.render_entries(found)
    else:
        text = run_with_engine(ctx, lambda engine: engine.export_summary(period, fmt))

    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        console.print(f"[green]✓[/green] Exported to {path}")
    else:
        click.echo(text)


@cli.command("auto-close")  # type: ignore[misc]
@click.option("--hours", type=int, help="Close entries open longer than this")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def auto_close(ctx: click.Context, hours: Optional[int]) -> None:
    """Close entries that were left open for too long.

    Example:
        time-clock auto-close --hours 24
    """
    config_mgr = get_config(ctx)
    _setup_logging(config_mgr)
    max_hours = hours or config_mgr.get("maintenance.stale_entry_hours", 24)

    closed = asyncio.run(
        auto_close_stale_entries(
            get_store(ctx, config_mgr),
            ClockService.from_config(config_mgr),
            create_notifier(config_mgr),
            timedelta(hours=max_hours),
            OvertimePolicy.from_config(config_mgr),
        )
    )
    if not closed:
        console.print("No stale entries")
        return
    for entry in closed:
        console.print(
            f"[green]✓[/green] Closed {entry.user_id}'s entry from {format_time(entry.clock_in)} "
            f"at {format_time(entry.clock_out)}"
        )


@cli.command()  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def watch(ctx: click.Context) -> None:
    """Run the session engine in the foreground.

    Sends work and break reminders and, when ``sync.enabled`` is set,
    follows clock events from other terminals. Stop with Ctrl+C.
    """
    config_mgr = get_config(ctx)
    _setup_logging(config_mgr)
    user_id = ctx.obj.get("user") or config_mgr.resolve_user_id()

    async def main() -> None:
        pubsub: Optional[MulticastPubSub] = None
        if config_mgr.get("sync.enabled", False):
            pubsub = MulticastPubSub(
                config_mgr.get("sync.group", "239.255.42.99"),
                config_mgr.get("sync.port", 47999),
            )
            await pubsub.start()

        engine = build_engine(ctx, config_mgr, pubsub)
        engine.subscribe(
            lambda update: console.print(
                f"[dim]{update.timestamp:%H:%M}[/dim] {update.type.value}"
            )
        )
        result = await engine.initialize(user_id)
        if isinstance(result, Err):
            error_console.print(f"[red]Error:[/red] {result.message}")
            return
        state = "clocked in" if engine.is_clocked_in else "not clocked in"
        console.print(f"[green]✓[/green] Watching {user_id} ({state}). Press Ctrl+C to stop.")
        try:
            await asyncio.Event().wait()
        finally:
            await engine.shutdown()
            if pubsub is not None:
                await pubsub.close()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\nStopped")


if __name__ == "__main__":
    cli(obj={})

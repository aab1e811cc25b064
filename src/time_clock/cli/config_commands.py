"""`time-clock config` subcommands for viewing and editing settings."""

import json
import shutil
import sys
from pathlib import Path
from typing import Any, Optional

import click  # type: ignore[import-not-found]
from rich.console import Console  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]

from time_clock.core.config import ConfigManager
from time_clock.core.models import OvertimePolicy
from time_clock.engine.session import EngineSettings

console = Console()
error_console = Console(stderr=True)


def _load(ctx: click.Context) -> ConfigManager:
    config_path = (ctx.obj or {}).get("config_path")
    try:
        return ConfigManager(Path(config_path) if config_path else None)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def convert_value(value: str) -> Any:
    """Convert a command-line string to a bool, None, int or float where it looks like one."""
    lowered = value.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    if lowered in ("null", "none"):
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


@click.group()  # type: ignore[misc]
def config() -> None:
    """Manage Time Clock configuration.

    Configuration is stored in ~/.time-clock/config.yml
    """
    pass


@config.command("show")  # type: ignore[misc]
@click.argument("section", required=False)  # type: ignore[misc]
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def config_show(ctx: click.Context, section: Optional[str], as_json: bool) -> None:
    """Show configuration settings, one table per section.

    Example:
        time-clock config show
        time-clock config show policy
        time-clock config show --json
    """
    config_mgr = _load(ctx)
    data = config_mgr.to_dict()
    if section is not None:
        if not isinstance(data.get(section), dict):
            error_console.print(f"[red]Error:[/red] Unknown configuration section '{section}'")
            sys.exit(1)
        data = {section: data[section]}

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    for name, values in data.items():
        if not isinstance(values, dict):
            console.print(f"[cyan]{name}[/cyan]: {values}")
            continue
        table = Table(title=name.capitalize(), title_justify="left")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        for key in config_mgr.get_all_keys(name):
            value = config_mgr.get(key)
            table.add_row(key[len(name) + 1 :], "-" if value is None else str(value))
        console.print(table)

    console.print(f"\nConfig file: {config_mgr.config_path}")


@config.command("policy")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def config_policy(ctx: click.Context) -> None:
    """Show the effective overtime policy and reminder timings."""
    config_mgr = _load(ctx)
    policy = OvertimePolicy.from_config(config_mgr)
    settings = EngineSettings.from_config(config_mgr)

    def minutes(delta: Any) -> str:
        return f"{int(delta.total_seconds() // 60)} min"

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("Standard day:", f"{policy.standard_work_hours:g}h")
    table.add_row(
        "Overtime:", f"after {policy.overtime_threshold:g}h at x{policy.overtime_rate:g}"
    )
    if policy.double_overtime_threshold is not None:
        table.add_row(
            "Double overtime:",
            f"after {policy.double_overtime_threshold:g}h at x{policy.double_overtime_rate or 1.5:g}",
        )
    else:
        table.add_row("Double overtime:", "disabled")
    daily_cap = policy.max_overtime_per_day or 4.0
    table.add_row(
        "Overtime cap:", f"{daily_cap:g}h/day, {policy.max_overtime_per_week:g}h/week"
    )
    if settings.hourly_rate:
        table.add_row("Hourly rate:", f"{settings.hourly_rate:.2f}")
    table.add_row("Work reminder:", f"every {minutes(settings.work_reminder_interval)}")
    table.add_row("Break reminder:", f"after {minutes(settings.break_reminder_delay)}")
    table.add_row("Sync:", f"every {minutes(settings.sync_interval)}")
    table.add_row("Clock-in tolerance:", minutes(settings.clock_in_tolerance))

    console.print("\n[bold cyan]Time Clock - Policy[/bold cyan]\n")
    console.print(table)


@config.command("get")  # type: ignore[misc]
@click.argument("key")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def config_get(ctx: click.Context, key: str) -> None:
    """Print one setting by its dotted key.

    Example:
        time-clock config get policy.overtime_rate
    """
    config_mgr = _load(ctx)
    value = config_mgr.get(key)

    if value is None:
        error_console.print(f"[red]Error:[/red] Configuration key '{key}' not found")
        sys.exit(1)

    if isinstance(value, (dict, list)):
        click.echo(json.dumps(value, indent=2))
    else:
        click.echo(str(value))


@config.command("set")  # type: ignore[misc]
@click.argument("key")  # type: ignore[misc]
@click.argument("value")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Change one setting; the file is rewritten only if it stays valid.

    Use 'true'/'false' for booleans and plain numbers for numbers.

    Example:
        time-clock config set policy.standard_work_hours 7.5
        time-clock config set general.timezone "Europe/Berlin"
    """
    config_mgr = _load(ctx)
    converted_value = convert_value(value)

    try:
        config_mgr.set(key, converted_value)
        console.print(f"[green]✓[/green] Set {key} = {converted_value}")
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@config.command("reset")  # type: ignore[misc]
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def config_reset(ctx: click.Context, yes: bool) -> None:
    """Restore the default settings, keeping a backup of the current file.

    Example:
        time-clock config reset --yes
    """
    config_mgr = _load(ctx)

    if not yes:
        console.print("[yellow]Warning:[/yellow] Every setting, including the overtime policy, goes back to its default.")
        if not click.confirm("Continue?"):
            console.print("Nothing changed")
            return

    backup_path = config_mgr.config_path.with_suffix(".yml.backup")
    if config_mgr.config_path.exists():
        shutil.copy(config_mgr.config_path, backup_path)
        console.print(f"Previous settings saved to {backup_path}")

    config_mgr.reset()
    console.print("[green]✓[/green] Configuration reset to defaults")


@config.command("validate")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def config_validate(ctx: click.Context) -> None:
    """Validate configuration file."""
    config_mgr = _load(ctx)

    try:
        config_mgr.validate()
        console.print("[green]✓[/green] Configuration is valid")
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@config.command("path")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def config_path(ctx: click.Context) -> None:
    """Show path to configuration file."""
    click.echo(str(_load(ctx).config_path))

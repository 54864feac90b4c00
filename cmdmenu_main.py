#!/usr/bin/env python3
"""
cmdmenu - Interactive terminal command menu
Main entry point using Typer
"""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cmdmenu import __version__
from cmdmenu.config import VALID_THEMES, ConfigManager
from cmdmenu.diagnostics import run_diagnostics
from cmdmenu.exceptions import InitializationError, MenuError, TerminalNotInteractiveError
from cmdmenu.history import CommandHistory
from cmdmenu.logger import logger
from cmdmenu.menu import MenuOrchestrator
from cmdmenu.registry import default_registry, load_registry
from cmdmenu.ui.theme import THEMES, ThemeEngine

console = Console()

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="cmdmenu",
    help="cmdmenu - keyboard-driven command menu for the terminal",
    add_completion=False
)

config_app = typer.Typer(name="config", help="Show or change menu preferences", no_args_is_help=True)
app.add_typer(config_app, name="config")


def run_menu(commands: Optional[str] = None, theme: Optional[str] = None,
             no_animations: bool = False, debug: bool = False) -> None:
    """Start the interactive menu and exit with its outcome"""
    registry = load_registry(commands) if commands else default_registry()

    custom_config = {}
    if theme:
        custom_config["theme"] = theme
    if no_animations:
        custom_config["animationsEnabled"] = False

    orchestrator = MenuOrchestrator(
        registry=registry,
        console=console,
        debug=debug or None,
        custom_config=custom_config,
    )

    try:
        result = asyncio.run(orchestrator.show())
    except TerminalNotInteractiveError as e:
        console.print(f"[bold red]Error: {escape(e.message)}[/bold red]")
        console.print("[dim]Run cmdmenu from an interactive terminal, or use the history/config commands.[/dim]")
        raise typer.Exit(code=1)
    except InitializationError as e:
        logger.error("Menu failed to start", e)
        raise typer.Exit(code=1)

    option = result.get("option")
    logger.info(f"Menu closed: {result['action']}" + (f" ({option.command})" if option else ""))
    if result["action"] == "interrupted":
        raise typer.Exit(code=EXIT_INTERRUPTED)


@app.callback(invoke_without_command=True)
def callback(ctx: typer.Context):
    """Open the menu when no command is given"""
    if ctx.invoked_subcommand is None:
        run_menu()


@app.command("menu", help="Open the interactive command menu")
def menu(
    commands: Optional[str] = typer.Option(
        None, "--commands", "-c", help="Command registry to load, as package.module:attribute"
    ),
    theme: Optional[str] = typer.Option(None, "--theme", "-t", help=f"Theme for this session ({', '.join(VALID_THEMES)})"),
    no_animations: bool = typer.Option(False, "--no-animations", help="Disable spinners and transitions"),
    debug: bool = typer.Option(False, "--debug", help="Show technical details for errors"),
):
    if theme is not None and theme not in VALID_THEMES:
        raise typer.BadParameter(f"must be one of: {', '.join(VALID_THEMES)}", param_hint="--theme")
    run_menu(commands, theme, no_animations, debug)


@app.command("history", help="Show recent command executions")
def history(
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Number of records to show"),
    clear: bool = typer.Option(False, "--clear", help="Delete all history records"),
):
    command_history = CommandHistory()
    command_history.load()

    if clear:
        removed = command_history.clear()
        command_history.save()
        console.print(f"[green]✓[/green] Cleared {removed} history record(s)")
        return

    records = command_history.get_recent(limit)
    if not records:
        console.print("[dim]No commands executed yet.[/dim]")
        return

    table = Table(title="[bold]Command History[/bold]", show_header=True, header_style="bold cyan")
    table.add_column("Command", style="cyan", no_wrap=True)
    table.add_column("Time", style="yellow", no_wrap=True)
    table.add_column("Status", justify="center")
    table.add_column("Duration", style="green", justify="right")
    table.add_column("Error", style="red")
    for record in records:
        status = "[green]✓[/green]" if record.succeeded else f"[red]✗ {record.exit_code}[/red]"
        table.add_row(
            escape(record.command_name),
            record.timestamp,
            status,
            f"{record.duration}ms",
            escape(record.error or ""),
        )
    console.print(table)

    stats = command_history.get_statistics()
    console.print(
        f"\nTotal: {stats['total_executions']}  "
        f"[green]✓ {stats['success_count']}[/green]  [red]✗ {stats['failure_count']}[/red]  "
        f"Success rate: {stats['success_rate'] * 100:.0f}%"
    )
    if stats["most_used"]:
        top = ", ".join(f"{escape(m['command'])} ({m['count']})" for m in stats["most_used"][:3])
        console.print(f"[dim]Most used: {top}[/dim]")


def _parse_cli_value(value: str):
    if value.startswith(("{", "[")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return ConfigManager._parse_env_value(value)


@config_app.command("show", help="Show the current preferences")
def config_show():
    manager = ConfigManager()
    manager.load()

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Option", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")
    for key, value in manager.get("preferences").items():
        table.add_row(key, escape(json.dumps(value) if isinstance(value, dict) else str(value)))
    console.print(table)
    console.print(f"[dim]File: {manager.config_path}[/dim]")

    overrides = manager.env_overrides()
    if overrides:
        console.print(f"[yellow]Environment overrides active: {', '.join(overrides)}[/yellow]")


@config_app.command("set", help="Set one preference, e.g. 'config set theme dark'")
def config_set(
    key: str = typer.Argument(..., help="Preference name, e.g. theme or preferences.historySize"),
    value: str = typer.Argument(..., help="New value"),
):
    manager = ConfigManager()
    manager.load()
    path = key if key.startswith("preferences.") else f"preferences.{key}"
    try:
        manager.set(path, _parse_cli_value(value))
    except MenuError as e:
        console.print(f"[bold red]Error: {escape(e.message)}[/bold red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] {escape(path)} = {escape(json.dumps(manager.get(path)))}")


@config_app.command("reset", help="Restore default preferences")
def config_reset():
    manager = ConfigManager()
    manager.reset()
    console.print("[green]✓[/green] Preferences reset to defaults")


@app.command("themes", help="List themes with their contrast check")
def themes():
    manager = ConfigManager()
    manager.load()
    current = manager.get("preferences.theme")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Theme", style="cyan", no_wrap=True)
    table.add_column("Selection contrast", justify="right")
    table.add_column("Minimum", justify="right")
    table.add_column("Status", justify="center")
    for name, palette in THEMES.items():
        ratio = ThemeEngine.validate_contrast(palette["colors"]["selected_text"], palette["selection"])
        ok = ratio >= palette["min_ratio"]
        marker = " [bold](current)[/bold]" if name == current else ""
        table.add_row(
            f"{name}{marker}",
            f"{ratio:.2f}:1",
            f"{palette['min_ratio']}:1",
            "[green]✓[/green]" if ok else "[yellow]⚠[/yellow]",
        )
    console.print(table)


@app.command("diagnostic", help="Run system diagnostics and exit")
def diagnostic():
    """Run system diagnostics and exit"""
    run_diagnostics(console)


@app.command("clear-logs", help="Delete log files older than the given number of days")
def clear_logs(
    days: int = typer.Option(30, "--days", "-d", min=0, help="Keep logs newer than this many days"),
):
    removed = logger.clear_old_logs(days)
    console.print(f"[green]✓[/green] Removed {removed} log file(s) older than {days} day(s)")


@app.command("version", help="Show version information")
def version():
    """Show version information"""
    console.print(f"[bold cyan]cmdmenu[/bold cyan] v{__version__}")
    console.print("[dim]Keyboard-driven command menu for the terminal[/dim]")


def main():
    """
    Main entry point for cmdmenu.
    Parses arguments using Typer and routes to the menu or a management command.
    """
    try:
        app()

    except MenuError as e:
        console.print(f"\n[bold red]Error: {escape(e.message)}[/bold red]")
        if e.details:
            console.print(f"[dim]Details: {escape(str(e.details))}[/dim]")
        logger.error(f"{e.code}: {e.message}")
        raise SystemExit(1)

    except KeyboardInterrupt:
        console.print("\n[bold yellow]Operation cancelled by user[/bold yellow]")
        logger.info("User interrupted operation (Ctrl+C)")
        raise SystemExit(EXIT_INTERRUPTED)

    except Exception as e:
        console.print(f"\n[bold red]Unexpected error: {escape(str(e))}[/bold red]")
        logger.critical(f"Unexpected error: {e}", exc_info=True)
        console.print("[dim]Check logs for more details: ~/.cmdmenu/logs/[/dim]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()

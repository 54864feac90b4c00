#!/usr/bin/env python3
"""
cmdmenu Diagnostic and Health Check System
"""

import os
import platform
import sys
from datetime import datetime
from importlib import metadata
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .logger import data_home, logger
from .ui.glyphs import Glyphs
from .utils import atomic_write_json


REQUIRED_PACKAGES = ("rich", "typer", "prompt_toolkit")


class DiagnosticReport:
    """Generate diagnostic reports about the menu's environment"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.issues = []
        self.warnings = []

    def run_all_checks(self) -> dict:
        """Run all diagnostic checks"""
        self.issues, self.warnings = [], []
        return {
            "timestamp": datetime.now().isoformat(),
            "system": self._check_system(),
            "python": self._check_python(),
            "dependencies": self._check_dependencies(),
            "terminal": self._check_terminal(),
            "filesystem": self._check_filesystem(),
            "issues": self.issues,
            "warnings": self.warnings,
        }

    def _check_system(self) -> dict:
        return {
            "platform": platform.system(),
            "platform_release": platform.release(),
            "machine": platform.machine(),
        }

    def _check_python(self) -> dict:
        return {
            "version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
            "executable": sys.executable,
            "is_venv": sys.base_prefix != sys.prefix,
        }

    def _check_dependencies(self) -> dict:
        installed = {}
        for package in REQUIRED_PACKAGES:
            try:
                installed[package] = {"status": "installed", "version": metadata.version(package.replace("_", "-"))}
            except metadata.PackageNotFoundError:
                installed[package] = {"status": "missing"}
                self.issues.append(f"Missing dependency: {package}")
        return installed

    def _check_terminal(self) -> dict:
        checks = {
            "stdin_tty": sys.stdin is not None and sys.stdin.isatty(),
            "stdout_tty": self.console.is_terminal,
            "color_system": self.console.color_system or "none",
            "width": self.console.size.width,
            "height": self.console.size.height,
            "encoding": self.console.encoding,
            "glyphs": Glyphs(self.console).level,
        }
        if not checks["stdin_tty"]:
            self.warnings.append("stdin is not a terminal; the interactive menu will refuse to start")
        if checks["color_system"] == "none":
            self.warnings.append("No color support detected; the monochrome palette will be used")
        if checks["glyphs"] == "ascii":
            self.warnings.append(f"Encoding {checks['encoding']} cannot show Unicode; ASCII symbols will be used")
        return checks

    def _check_filesystem(self) -> dict:
        home = data_home()
        paths = {
            "data_home": home,
            "config": home / "config.json",
            "history": home / "history.json",
            "logs": home / "logs",
        }

        checks = {}
        for name, path in paths.items():
            target = path if path.exists() else path.parent
            checks[name] = {
                "path": str(path),
                "exists": path.exists(),
                "writable": target.exists() and os.access(target, os.W_OK),
            }
            if not checks[name]["writable"]:
                self.warnings.append(f"Not writable: {path}")
        return checks

    def print_report(self, report: dict) -> None:
        """Print formatted diagnostic report"""
        self.console.print(Panel("[bold cyan]cmdmenu Diagnostic Report[/bold cyan]", style="blue"))

        sys_info = report["system"]
        self.console.print("\n[bold]System Information:[/bold]")
        self.console.print(f"  Platform: {sys_info['platform']} {sys_info['platform_release']}")
        self.console.print(f"  Machine: {sys_info['machine']}")

        py_info = report["python"]
        self.console.print("\n[bold]Python Environment:[/bold]")
        self.console.print(f"  Version: {py_info['version']}")
        self.console.print(f"  Executable: {py_info['executable']}")
        self.console.print(f"  Virtual Environment: {'Yes' if py_info['is_venv'] else 'No'}")

        self.console.print("\n[bold]Dependencies:[/bold]")
        table = Table()
        table.add_column("Package", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Version", style="yellow")
        for package, info in report["dependencies"].items():
            status = "[green]✓[/green]" if info["status"] == "installed" else "[red]✗[/red]"
            table.add_row(package, status, info.get("version", "unknown"))
        self.console.print(table)

        term = report["terminal"]
        self.console.print("\n[bold]Terminal:[/bold]")
        self.console.print(f"  Interactive input: {'[green]✓[/green]' if term['stdin_tty'] else '[red]✗[/red]'}")
        self.console.print(f"  Colors: {term['color_system']}  Size: {term['width']}x{term['height']}")
        self.console.print(f"  Symbols: {term['glyphs']}  Encoding: {term['encoding']}")

        self.console.print("\n[bold]Filesystem Setup:[/bold]")
        for name, check in report["filesystem"].items():
            status = "[green]✓[/green]" if check["exists"] else "[red]✗[/red]"
            writable = "[green]✓[/green]" if check["writable"] else "[red]✗[/red]"
            self.console.print(f"  {name:10} {status}  (writable: {writable})  [dim]{check['path']}[/dim]")

        if report["issues"]:
            self.console.print("\n[bold red]Issues:[/bold red]")
            for issue in report["issues"]:
                self.console.print(f"  ⨯ {issue}")

        if report["warnings"]:
            self.console.print("\n[bold yellow]Warnings:[/bold yellow]")
            for warning in report["warnings"]:
                self.console.print(f"  ⚠ {warning}")

        if not report["issues"] and not report["warnings"]:
            self.console.print("\n[bold green]No issues detected![/bold green]")

        self.console.print(f"\n[dim]Timestamp: {report['timestamp']}[/dim]")

    def save_report(self, report: dict, filename: Optional[str] = None) -> Path:
        """Save diagnostic report to the logs directory"""
        if filename is None:
            filename = f"diagnostic_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
        return atomic_write_json(data_home() / "logs" / filename, report)


def run_diagnostics(console: Optional[Console] = None) -> dict:
    """Run full diagnostic check and print it"""
    diagnostic = DiagnosticReport(console)
    report = diagnostic.run_all_checks()
    diagnostic.print_report(report)

    try:
        report_path = diagnostic.save_report(report)
        diagnostic.console.print(f"\n[dim]Report saved to: {report_path}[/dim]")
    except OSError as e:
        logger.warning(f"Could not save diagnostic report: {e}")

    return report


def register_builtin_commands(registry) -> None:
    """Add the commands every menu ships with"""

    @registry.register(
        "system:diagnostics",
        label="System Diagnostics",
        description="Check the Python environment, terminal capabilities and data directory.",
        icon="🩺",
        category="info",
        preview={
            "shell_command": "cmdmenu diagnostic",
            "affected_paths": [str(data_home() / "logs")],
            "estimated_duration": 1,
        },
    )
    def diagnostics_command(args, flags):
        report = DiagnosticReport(Console(stderr=True)).run_all_checks()
        if report["issues"]:
            return {
                "success": False,
                "message": f"{len(report['issues'])} issue(s) found: {'; '.join(report['issues'])}",
                "data": report,
            }
        return {
            "success": True,
            "message": f"Environment OK ({len(report['warnings'])} warning(s))",
            "data": report,
        }

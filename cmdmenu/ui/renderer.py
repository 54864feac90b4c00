#!/usr/bin/env python3
"""
cmdmenu UI Renderer
Draws one full frame per MenuState: header, mode body and key hints
"""

import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .. import APP_NAME, __version__
from ..history import ExecutionRecord
from ..options import MenuOption
from ..state import MenuMode, MenuState
from ..utils import parse_timestamp
from .glyphs import Glyphs


CATEGORY_ROLES = {
    "action": "primary",
    "info": "info",
    "destructive": "destructive",
    "utility": "muted",
}

MESSAGE_KINDS = ("success", "error", "warning", "info")

KEY_LABELS = {
    "enter": "Enter",
    "escape": "Esc",
    "space": "Space",
    "backspace": "Backspace",
    "tab": "Tab",
    "ctrl-c": "Ctrl+C",
}

FOOTER_HINTS = {
    MenuMode.NAVIGATION: [("↑↓", "Navigate"), ("Enter", "Select"), ("1-9", "Jump"),
                          ("p", "Preview"), ("h", "Help"), ("q", "Quit")],
    MenuMode.PREVIEW: [("Enter", "Execute"), ("Esc", "Back")],
    MenuMode.HISTORY: [("r", "Refresh"), ("Esc", "Back")],
    MenuMode.CONFIG: [("Tab", "Cycle theme"), ("Space", "Toggle animations"), ("Esc", "Back")],
    MenuMode.HELP: [("Esc", "Back")],
}

HISTORY_ROWS = 10


class FrameBuffer(io.StringIO):
    """In-memory stream that reports the encoding of the console it stands in for"""

    def __init__(self, encoding: str = "utf-8"):
        super().__init__()
        self._encoding = encoding

    @property
    def encoding(self) -> str:
        return self._encoding


class UIRenderer:
    """Stateless frame renderer; reads MenuState, never writes it"""

    def __init__(self, theme, animation=None, keyboard=None, console: Optional[Console] = None):
        self.theme = theme
        self.animation = animation
        self.keyboard = keyboard
        self.console = console or theme.console
        self.glyphs = Glyphs(self.console)

    def render(self, state: MenuState) -> str:
        """
        Draw the frame for ``state`` and return it as plain text.

        Args:
            state: Snapshot from StateManager.get_state()

        Returns:
            The frame without styling, as written to the console
        """
        renderers = {
            MenuMode.NAVIGATION: self.render_navigation,
            MenuMode.PREVIEW: self.render_preview,
            MenuMode.HISTORY: self.render_history,
            MenuMode.CONFIG: self.render_config,
            MenuMode.HELP: self.render_help,
        }
        parts = renderers.get(state.mode, self.render_navigation)(state)
        parts.append(self.render_footer(state.mode))

        text = Text.from_ansi(self._compose(parts))
        self.clear()
        self.console.print(text, end="")
        return text.plain

    def _compose(self, parts: List[Any]) -> str:
        # off-screen pass so a live spinner on the real console is not captured
        scratch = Console(
            file=FrameBuffer(self.console.encoding),
            legacy_windows=self.console.legacy_windows,
            width=self.console.width,
            color_system=self.console.color_system,
            force_terminal=self.console.is_terminal,
        )
        for part in parts:
            scratch.print(part)
        return scratch.file.getvalue()

    def clear(self) -> None:
        self.console.clear()

    def render_header(self, subtitle: str = "") -> str:
        header = f"[bold]{self.theme.colorize(APP_NAME, 'primary')}[/bold] "
        header += self.theme.colorize(f"v{__version__}", "muted")
        if subtitle:
            separator = self.theme.colorize(self.glyphs.get("separator"), "muted")
            header += f" {separator} {self.theme.colorize(subtitle, 'highlight')}"
        return header + "\n"

    def render_footer(self, mode: MenuMode) -> str:
        hints = FOOTER_HINTS.get(mode, FOOTER_HINTS[MenuMode.NAVIGATION])
        parts = [f"{self.theme.colorize(self.glyphs.key_label(key), 'highlight')} "
                 f"{self.theme.colorize(desc, 'muted')}"
                 for key, desc in hints]
        return "\n" + "  ".join(parts)

    # -- navigation --

    def render_navigation(self, state: MenuState) -> List[Any]:
        prefs = state.preferences
        parts: List[Any] = [self.render_header("Command menu")]

        for index, option in enumerate(state.options):
            parts.append(self.render_option(option, index == state.selected_index, index, prefs))

        if prefs.get("showDescriptions", True):
            selected = state.selected_option
            if selected.description:
                parts.append(Panel(
                    escape(selected.description),
                    title=self.theme.colorize(selected.label, "highlight"),
                    title_align="left",
                    border_style=self.theme.style_for("muted") or "none",
                ))

        if state.is_executing:
            parts.append(self.theme.colorize(
                f"{self.glyphs.get('executing')} Executing {state.executing_command}...", "warning"
            ))
        if state.message:
            parts.append(self.format_message(*state.message))
        return parts

    def render_option(self, option: MenuOption, selected: bool, index: int,
                      prefs: Optional[Dict[str, Any]] = None) -> str:
        prefs = prefs or {}
        number = str(index + 1) if index < 9 else " "
        icon = self.glyphs.icon(option.icon) if prefs.get("iconsEnabled", True) else ""
        icon = f"{icon} " if icon else ""

        if selected:
            pointer = self.theme.colorize(self.glyphs.get("pointer"), "highlight")
            label = self.theme.colorize(f" {icon}{option.label} ", "selected")
        else:
            pointer = " "
            label = f" {escape(icon)}{self.theme.colorize(option.label, CATEGORY_ROLES[option.category])} "

        line = f"{pointer} {self.theme.colorize(number, 'muted')} {label}"
        status = self.render_status_indicator(option.last_execution)
        if status:
            line += f" {status}"
        return line

    def render_status_indicator(self, record: Optional[ExecutionRecord]) -> str:
        if record is None:
            return ""
        if record.succeeded:
            glyph = self.theme.colorize(self.glyphs.get("success"), "success")
        else:
            glyph = self.theme.colorize(self.glyphs.get("error"), "error")
        when = self.get_relative_time(record.timestamp)
        return f"{glyph} {self.theme.colorize(when, 'muted')}" if when else glyph

    @staticmethod
    def get_relative_time(timestamp: str, now: Optional[datetime] = None) -> str:
        try:
            then = parse_timestamp(timestamp)
        except (AttributeError, TypeError, ValueError):
            return ""
        now = now or datetime.now(timezone.utc)
        seconds = max(0, int((now - then).total_seconds()))
        if seconds < 60:
            return "just now"
        if seconds < 3600:
            return f"{seconds // 60} min ago"
        if seconds < 86400:
            return f"{seconds // 3600}h ago"
        return f"{seconds // 86400}d ago"

    # -- preview --

    def render_preview(self, state: MenuState) -> List[Any]:
        option = state.selected_option
        parts: List[Any] = [self.render_header(f"Preview: {option.label}")]
        preview = option.preview

        lines = []
        if preview is None:
            lines.append(self.theme.colorize("No preview available for this command.", "muted"))
            if option.description:
                lines.append(escape(option.description))
        else:
            lines.append(f"{self.theme.colorize('Command:', 'info')} {escape(preview.shell_command)}")
            if preview.affected_paths:
                lines.append(self.theme.colorize("Affects:", "info"))
                lines.extend(f"  {self.glyphs.get('bullet')} {escape(path)}" for path in preview.affected_paths)
            if preview.estimated_duration is not None:
                lines.append(f"{self.theme.colorize('Estimated duration:', 'info')} ~{preview.estimated_duration}s")
            if preview.warning:
                lines.append(self.theme.colorize(f"{self.glyphs.get('warning')} {preview.warning}", "destructive"))

        if option.category == "destructive":
            lines.append(self.theme.colorize("This command is destructive. Review before confirming.", "warning"))

        parts.append(Panel("\n".join(lines), title=self.theme.colorize(option.command, "highlight"),
                           title_align="left", border_style=self.theme.style_for("primary") or "none"))
        parts.append(self.theme.colorize("Press Enter to execute or Esc to go back.", "muted"))
        if state.is_executing:
            parts.append(self.theme.colorize(
                f"{self.glyphs.get('executing')} {state.executing_command} is still running; "
                "execution is disabled.", "warning"
            ))
        return parts

    # -- history --

    def render_history(self, state: MenuState) -> List[Any]:
        parts: List[Any] = [self.render_header("Command history")]
        if not state.history:
            parts.append(self.theme.colorize("No commands executed yet.", "muted"))
            return parts

        table = Table(show_header=True, header_style="bold", show_edge=False)
        table.add_column("#", justify="right")
        table.add_column("Command", no_wrap=True)
        table.add_column("Status", justify="center")
        table.add_column("When", no_wrap=True)
        table.add_column("Duration", justify="right")
        table.add_column("Error")

        for i, record in enumerate(state.history[:HISTORY_ROWS], 1):
            kind = "success" if record.succeeded else "error"
            status = self.theme.colorize(self.glyphs.get(kind), kind)
            table.add_row(
                str(i),
                escape(record.command_name),
                status,
                self.get_relative_time(record.timestamp),
                f"{record.duration}ms",
                self.theme.colorize(record.error, "error") if record.error else "",
            )
        parts.append(table)

        stats = state.statistics
        if stats:
            summary = (
                f"Total: {stats.get('total_executions', 0)}  "
                f"{self.theme.colorize(self.glyphs.get('success'), 'success')} {stats.get('success_count', 0)}  "
                f"{self.theme.colorize(self.glyphs.get('error'), 'error')} {stats.get('failure_count', 0)}  "
                f"Success rate: {stats.get('success_rate', 0) * 100:.0f}%"
            )
            most_used = stats.get("most_used") or []
            if most_used:
                summary += f"  Most used: {escape(most_used[0]['command'])} ({most_used[0]['count']})"
            parts.append("\n" + summary)
        return parts

    # -- config --

    def render_config(self, state: MenuState) -> List[Any]:
        prefs = state.preferences
        parts: List[Any] = [self.render_header("Settings")]

        table = Table(show_header=True, header_style="bold", show_edge=False)
        table.add_column("Setting", no_wrap=True)
        table.add_column("Value")
        table.add_column("Change with", style=self.theme.style_for("muted") or None)

        def flag(value):
            return self.theme.colorize("on", "success") if value else self.theme.colorize("off", "error")

        table.add_row("Theme", self.theme.colorize(str(prefs.get("theme", "default")), "highlight"), "Tab")
        table.add_row("Animations", flag(prefs.get("animationsEnabled", True)), "Space")
        table.add_row("Animation speed", escape(str(prefs.get("animationSpeed", "normal"))), "cmdmenu config set")
        table.add_row("Icons", flag(prefs.get("iconsEnabled", True)), "cmdmenu config set")
        table.add_row("Descriptions", flag(prefs.get("showDescriptions", True)), "cmdmenu config set")
        table.add_row("Previews", flag(prefs.get("showPreviews", True)), "cmdmenu config set")
        table.add_row("History size", str(prefs.get("historySize", 50)), "cmdmenu config set")
        shortcuts = prefs.get("keyboardShortcuts") or {}
        table.add_row("Custom shortcuts", escape(", ".join(f"{k}={v}" for k, v in shortcuts.items()) or "none"),
                      "cmdmenu config set")
        parts.append(table)

        if state.message:
            parts.append(self.format_message(*state.message))
        return parts

    # -- help --

    def render_help(self, state: MenuState) -> List[Any]:
        parts: List[Any] = [self.render_header("Help")]
        if self.keyboard is None:
            parts.append(self.theme.colorize("No keyboard shortcuts registered.", "muted"))
            return parts

        table = Table(show_header=True, header_style="bold", show_edge=False)
        table.add_column("Key", no_wrap=True)
        table.add_column("Action", no_wrap=True)
        table.add_column("Description")
        for shortcut in self.keyboard.get_all_shortcuts():
            key = shortcut["key"]
            key = self.glyphs.get(key) if key in ("up", "down", "left", "right") else KEY_LABELS.get(key, key)
            table.add_row(
                self.theme.colorize(key, "highlight"),
                escape(shortcut["action"]),
                escape(shortcut["description"]),
            )
        parts.append(table)
        return parts

    # -- messages --

    def format_message(self, kind: str, text: str) -> str:
        role = kind if kind in MESSAGE_KINDS else "info"
        symbol = self.glyphs.get(role)
        return f"{self.theme.colorize(symbol, role)} {self.theme.colorize(text, role)}"

    def display_message(self, kind: str, text: str) -> None:
        self.console.print(self.format_message(kind, text))

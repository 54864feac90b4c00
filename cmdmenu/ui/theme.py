#!/usr/bin/env python3
"""
cmdmenu Theme Engine
Named color palettes, semantic colorizing and WCAG contrast checks
"""

import re
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape

from ..exceptions import ConfigurationError, ValidationError
from ..logger import logger


ROLES = ("primary", "success", "error", "warning", "info", "highlight", "muted", "destructive")

THEMES: Dict[str, Dict[str, Any]] = {
    "default": {
        "colors": {
            "primary": "#3b82f6",
            "success": "#10b981",
            "error": "#ef4444",
            "warning": "#f59e0b",
            "info": "#06b6d4",
            "highlight": "#8b5cf6",
            "muted": "#9ca3af",
            "destructive": "#f87171",
            "selected_text": "#ffffff",
        },
        "selection": "#2563eb",
        "min_ratio": 4.5,
    },
    "dark": {
        "colors": {
            "primary": "#60a5fa",
            "success": "#34d399",
            "error": "#f87171",
            "warning": "#fbbf24",
            "info": "#22d3ee",
            "highlight": "#a78bfa",
            "muted": "#9ca3af",
            "destructive": "#f87171",
            "selected_text": "#ffffff",
        },
        "selection": "#1e40af",
        "min_ratio": 4.5,
    },
    "light": {
        "colors": {
            "primary": "#1d4ed8",
            "success": "#059669",
            "error": "#dc2626",
            "warning": "#d97706",
            "info": "#0891b2",
            "highlight": "#7c3aed",
            "muted": "#4b5563",
            "destructive": "#b91c1c",
            "selected_text": "#ffffff",
        },
        "selection": "#2563eb",
        "min_ratio": 4.5,
    },
    "high-contrast": {
        "colors": {
            "primary": "#6666ff",
            "success": "#00ff00",
            "error": "#ff0000",
            "warning": "#ffff00",
            "info": "#00ffff",
            "highlight": "#ff00ff",
            "muted": "#9c9c9c",
            "destructive": "#ff6666",
            "selected_text": "#ffffff",
        },
        "selection": "#0000ff",
        "min_ratio": 7.0,
    },
}

# used when the terminal reports no color support
MONOCHROME = {
    "colors": {role: "#ffffff" for role in ROLES + ("selected_text",)},
    "selection": None,
    "min_ratio": 4.5,
}

FORMATS = ("bold", "italic", "underline", "dim", "strike")

HEX_RE = re.compile(r"^#?[0-9a-fA-F]{6}$")


def _hex_to_rgb(value: str):
    if not isinstance(value, str) or not HEX_RE.match(value):
        raise ValidationError(f"Invalid hex color: {value}", field="color", value=value)
    value = value.lstrip("#")
    return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))


def _relative_luminance(rgb) -> float:
    channels = []
    for val in rgb:
        srgb = val / 255
        channels.append(srgb / 12.92 if srgb <= 0.03928 else ((srgb + 0.055) / 1.055) ** 2.4)
    r, g, b = channels
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


class ThemeEngine:
    """Loads palettes and turns semantic roles into rich markup"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.current_name: Optional[str] = None
        self.current: Dict[str, Any] = MONOCHROME

    @property
    def color_support(self) -> bool:
        return self.console.color_system is not None

    def get_available_themes(self) -> List[str]:
        return list(THEMES)

    def get_current_theme_name(self) -> Optional[str]:
        return self.current_name

    def load_theme(self, name: str) -> None:
        if name not in THEMES:
            raise ConfigurationError(
                f"Theme '{name}' not found. Available themes: {', '.join(THEMES)}", "preferences.theme"
            )

        issues = self.validate_theme_contrast(THEMES[name])
        if issues:
            logger.warning(f"Theme '{name}' has contrast issues: {'; '.join(issues)}")

        self.current_name = name
        if self.color_support:
            self.current = THEMES[name]
        else:
            logger.debug(f"No color support detected, using monochrome palette instead of '{name}'")
            self.current = MONOCHROME

    def validate_theme_contrast(self, theme: Dict[str, Any]) -> List[str]:
        """Check selected text against the selection background"""
        issues = []
        min_ratio = theme.get("min_ratio", 4.5)
        if theme.get("selection"):
            ratio = self.validate_contrast(theme["colors"]["selected_text"], theme["selection"])
            if ratio < min_ratio:
                issues.append(f"selected_text on selection: {ratio:.2f}:1 (minimum: {min_ratio}:1)")
        return issues

    @staticmethod
    def validate_contrast(foreground: str, background: str) -> float:
        """WCAG relative luminance contrast ratio, 1.0 to 21.0"""
        fg = _relative_luminance(_hex_to_rgb(foreground))
        bg = _relative_luminance(_hex_to_rgb(background))
        lighter, darker = max(fg, bg), min(fg, bg)
        return (lighter + 0.05) / (darker + 0.05)

    def color(self, role: str) -> str:
        colors = self.current["colors"]
        return colors.get(role, colors["primary"])

    def style_for(self, role: str) -> str:
        """rich style string for a role; ``selected`` combines text and background"""
        if not self.color_support:
            return "reverse" if role == "selected" else ""
        if role == "selected":
            return f"bold {self.color('selected_text')} on {self.current['selection']}"
        return self.color(role)

    def colorize(self, text: str, role: str) -> str:
        text = escape(str(text))
        style = self.style_for(role)
        if not style:
            return text
        return f"[{style}]{text}[/]"

    def format(self, text: str, fmt: str) -> str:
        text = escape(str(text))
        if fmt not in FORMATS or not self.color_support:
            return text
        return f"[{fmt}]{text}[/]"

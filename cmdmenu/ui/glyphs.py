#!/usr/bin/env python3
"""
cmdmenu Glyphs
Picks emoji, Unicode or ASCII symbols for what the terminal can display
"""

import os
from typing import Dict, Optional

from rich.console import Console

from ..logger import logger


LEVELS = ("emoji", "unicode", "ascii")

# name -> {level: glyph}; a missing level falls through to the next one down
GLYPHS: Dict[str, Dict[str, str]] = {
    "pointer": {"unicode": "❯", "ascii": ">"},
    "success": {"unicode": "✓", "ascii": "+"},
    "error": {"unicode": "✗", "ascii": "x"},
    "warning": {"unicode": "⚠", "ascii": "!"},
    "info": {"unicode": "ℹ", "ascii": "i"},
    "executing": {"emoji": "⏳", "unicode": "…", "ascii": "*"},
    "bullet": {"unicode": "•", "ascii": "-"},
    "separator": {"unicode": "·", "ascii": "-"},
    "up": {"unicode": "↑", "ascii": "^"},
    "down": {"unicode": "↓", "ascii": "v"},
    "left": {"unicode": "←", "ascii": "<"},
    "right": {"unicode": "→", "ascii": ">"},
}

# replacements for the built-in option icons
ICON_FALLBACKS: Dict[str, Dict[str, str]] = {
    "📜": {"unicode": "☰", "ascii": "="},
    "⚙": {"unicode": "⚙", "ascii": "*"},
    "⚙️": {"unicode": "⚙", "ascii": "*"},
    "❓": {"unicode": "?", "ascii": "?"},
    "🚪": {"unicode": "×", "ascii": "x"},
    "🩺": {"unicode": "✚", "ascii": "+"},
}

# terminals that show Unicode but not colour emoji
NO_EMOJI_TERMS = ("linux", "vt100", "vt220", "cons25")


def detect_level(console: Optional[Console] = None) -> str:
    """
    Work out the richest glyph level the console can show.

    A console whose stream is not UTF-encoded, or a legacy Windows console,
    gets ASCII. The Linux virtual console and similar terminals get Unicode
    without emoji. Everything else gets emoji.
    """
    if console is None:
        return "emoji"

    if getattr(console, "legacy_windows", False) is True:
        return "ascii"

    encoding = getattr(console, "encoding", None)
    if isinstance(encoding, str) and not encoding.lower().replace("-", "").startswith("utf"):
        return "ascii"

    term = os.environ.get("TERM", "").lower()
    if term in NO_EMOJI_TERMS:
        return "unicode"
    return "emoji"


class Glyphs:
    """Resolves symbol names and option icons for one console"""

    def __init__(self, console: Optional[Console] = None, level: Optional[str] = None):
        if level is not None and level not in LEVELS:
            raise ValueError(f"Unknown glyph level: {level}")
        self.level = level or detect_level(console)
        if self.level != "emoji":
            logger.debug(f"Terminal glyphs limited to {self.level}")

    @property
    def supports_emoji(self) -> bool:
        return self.level == "emoji"

    @property
    def supports_unicode(self) -> bool:
        return self.level in ("emoji", "unicode")

    def _pick(self, variants: Dict[str, str]) -> Optional[str]:
        for level in LEVELS[LEVELS.index(self.level):]:
            if level in variants:
                return variants[level]
        return None

    def get(self, name: str) -> str:
        return self._pick(GLYPHS.get(name, {})) or ""

    def icon(self, icon: Optional[str]) -> str:
        """Degrade an option icon; icons the terminal cannot show are dropped"""
        if not icon:
            return ""
        if self.supports_emoji:
            return icon
        fallback = ICON_FALLBACKS.get(icon)
        if fallback:
            return self._pick(fallback) or ""
        return icon if icon.isascii() else ""

    def key_label(self, text: str) -> str:
        """Swap arrow glyphs inside a key label for their ASCII forms"""
        if self.supports_unicode:
            return text
        for name in ("up", "down", "left", "right"):
            text = text.replace(GLYPHS[name]["unicode"], GLYPHS[name]["ascii"])
        return text

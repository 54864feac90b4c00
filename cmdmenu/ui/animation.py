#!/usr/bin/env python3
"""
cmdmenu Animation Engine
Spinners and transition pauses that never change an operation's outcome
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, Optional

from rich.console import Console
from rich.markup import escape
from rich.status import Status

from ..logger import logger
from .glyphs import Glyphs


SPINNERS = {"slow": "dots", "normal": "dots2", "fast": "line"}
TRANSITION_DELAYS_MS = {"slow": 150, "normal": 100, "fast": 50}
MAX_TRANSITION_MS = 200

STATUS_KINDS = ("success", "error", "warning", "info")

# spinner frames that stay inside ASCII
ASCII_SPINNER = "line"


class AnimationEngine:
    """Spinner wrapper around rich's Status display"""

    def __init__(self, console: Optional[Console] = None, enabled: bool = True,
                 speed: str = "normal", theme=None):
        self.console = console or Console()
        self.theme = theme
        self.animations_enabled = enabled
        self.speed = speed if speed in SPINNERS else "normal"
        self.current_spinner: Optional[Status] = None
        self.glyphs = Glyphs(self.console)

    def is_enabled(self) -> bool:
        if not self.console.is_terminal:
            return False
        return self.animations_enabled

    def set_enabled(self, enabled: bool) -> None:
        self.animations_enabled = bool(enabled)
        if not enabled:
            self.cleanup()

    def set_speed(self, speed: str) -> None:
        if speed in SPINNERS:
            self.speed = speed

    def respect_user_preferences(self, preferences: Dict[str, Any]) -> None:
        if "animationsEnabled" in preferences:
            self.set_enabled(preferences["animationsEnabled"])
        if preferences.get("animationSpeed"):
            self.set_speed(preferences["animationSpeed"])

    def get_spinner_name(self) -> str:
        if not self.glyphs.supports_unicode:
            return ASCII_SPINNER
        return SPINNERS.get(self.speed, "dots2")

    def get_transition_delay(self) -> float:
        """Delay in seconds, never above 200ms"""
        return min(TRANSITION_DELAYS_MS.get(self.speed, 100), MAX_TRANSITION_MS) / 1000

    def _paint(self, text: str, role: str) -> str:
        if self.theme is not None:
            return self.theme.colorize(text, role)
        return escape(text)

    def show_spinner(self, text: str) -> None:
        if not self.is_enabled():
            return
        if self.current_spinner is not None:
            self.current_spinner.stop()
        self.current_spinner = self.console.status(self._paint(text, "muted"), spinner=self.get_spinner_name())
        self.current_spinner.start()

    def update_spinner(self, text: str) -> None:
        if self.current_spinner is not None:
            self.current_spinner.update(self._paint(text, "muted"))

    def stop_spinner(self, symbol: str = "success", text: str = "") -> None:
        spinner, self.current_spinner = self.current_spinner, None
        if spinner is not None:
            spinner.stop()
        if text:
            if symbol in STATUS_KINDS:
                self.console.print(f"{self._paint(self.glyphs.get(symbol), symbol)} {escape(text)}")
            else:
                self.console.print(escape(text))

    async def with_spinner(self, label: str, operation: Callable[[], Any]) -> Any:
        """
        Run ``operation`` under a spinner and hand back its own outcome.

        ``operation`` may be a coroutine, a coroutine function or a plain
        callable. Exceptions propagate unchanged.
        """
        self.show_spinner(label)
        try:
            if inspect.isawaitable(operation):
                result = await operation
            else:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
        except BaseException:
            self.stop_spinner()
            raise
        self.stop_spinner()
        return result

    async def animate_transition(self) -> None:
        if not self.is_enabled():
            return
        await asyncio.sleep(self.get_transition_delay())

    def cleanup(self) -> None:
        if self.current_spinner is not None:
            try:
                self.current_spinner.stop()
            finally:
                self.current_spinner = None
            logger.debug("Spinner stopped during cleanup")

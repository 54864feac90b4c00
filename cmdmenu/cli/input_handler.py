#!/usr/bin/env python3
"""
cmdmenu Input Handler
Raw-mode key capture via prompt_toolkit, key parsing and event fan-out
"""

import asyncio
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from prompt_toolkit.input import create_input

from ..exceptions import TerminalNotInteractiveError, ValidationError
from ..logger import logger
from .keyboard import (
    DIRECT_SELECT_PREFIX, INTERRUPT, NAVIGATE_DOWN, NAVIGATE_UP, QUIT, SELECT, KeyboardMapper
)


ESC = "\x1b"

ARROWS = {"A": "up", "B": "down", "C": "right", "D": "left"}

# seconds to wait before a pending ESC is taken as a lone Escape key
ESCAPE_TIMEOUT = 0.05


@dataclass(frozen=True)
class InputEvent:
    type: str
    key: Optional[str] = None
    action: Optional[str] = None
    value: Optional[Any] = None


Listener = Callable[[InputEvent], None]


class InputHandler:
    """
    Turns terminal key presses into menu events.

    Navigation keys are applied to the StateManager as soon as they are read;
    everything else is resolved through the KeyboardMapper and queued for
    the orchestrator, in arrival order.
    """

    def __init__(self, state_manager, keyboard_mapper: Optional[KeyboardMapper] = None, stdin=None):
        if state_manager is None:
            raise ValidationError("StateManager is required", field="state_manager")
        self.state_manager = state_manager
        self.keyboard_mapper = keyboard_mapper or KeyboardMapper()
        self.stdin = stdin or sys.stdin

        self.is_active = False
        self.raw_mode = False
        self.listeners: Dict[str, List[Listener]] = {}
        self.events: asyncio.Queue = asyncio.Queue()

        self._input = None
        self._raw_ctx = None
        self._attach_ctx = None
        self._flush_handle: Optional[asyncio.TimerHandle] = None

    def is_interactive(self) -> bool:
        try:
            return bool(self.stdin.isatty())
        except (AttributeError, ValueError):
            return False

    def start(self) -> None:
        """Enter raw mode and start reading keys on the running event loop"""
        if self.is_active:
            return
        if not self.is_interactive():
            raise TerminalNotInteractiveError("Cannot start input handler: terminal is not interactive")

        self._input = create_input(stdin=self.stdin)
        self._raw_ctx = self._input.raw_mode()
        self._raw_ctx.__enter__()
        self.raw_mode = True

        self._attach_ctx = self._input.attach(self._on_input_ready)
        self._attach_ctx.__enter__()
        self.is_active = True
        logger.debug("Input handler started in raw mode")

    def stop(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if self._attach_ctx is not None:
            self._attach_ctx.__exit__(None, None, None)
            self._attach_ctx = None
        if self._raw_ctx is not None:
            self._raw_ctx.__exit__(None, None, None)
            self._raw_ctx = None
        if self._input is not None:
            self._input.close()
            self._input = None
        if self.is_active:
            logger.debug("Input handler stopped, terminal restored")
        self.is_active = False
        self.raw_mode = False

    def _on_input_ready(self) -> None:
        for key_press in self._input.read_keys():
            self.handle_key_press(key_press.data)

        # a lone ESC stays inside the parser until flushed
        if self._flush_handle is not None:
            self._flush_handle.cancel()
        loop = asyncio.get_running_loop()
        self._flush_handle = loop.call_later(ESCAPE_TIMEOUT, self._flush_pending)

    def _flush_pending(self) -> None:
        self._flush_handle = None
        if self._input is None:
            return
        for key_press in self._input.flush_keys():
            self.handle_key_press(key_press.data)

    @staticmethod
    def parse_key(data: Union[bytes, str, None]) -> Optional[str]:
        """Map one raw key sequence to a key name, or None if unrecognized"""
        if not data:
            return None
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8", errors="replace")

        first = data[0]
        if first == "\x03":
            return "ctrl-c"
        if first == ESC:
            if len(data) == 1:
                return "escape"
            if len(data) >= 3 and data[1] in "[O":
                return ARROWS.get(data[2])
            return None
        if first in "\r\n":
            return "enter"
        if first == " ":
            return "space"
        if first in "\x7f\x08":
            return "backspace"
        if first == "\t":
            return "tab"
        if len(data) == 1 and 32 <= ord(first) < 127:
            return first.lower()
        return None

    def handle_key_press(self, data: Union[bytes, str]) -> None:
        key = self.parse_key(data)
        action = self.keyboard_mapper.get_action(key)

        if action == NAVIGATE_UP:
            self.state_manager.move_up()
            event = InputEvent("arrow-up", key)
        elif action == NAVIGATE_DOWN:
            self.state_manager.move_down()
            event = InputEvent("arrow-down", key)
        elif action == SELECT:
            event = InputEvent("enter", key)
        elif action == QUIT:
            event = InputEvent("escape", key)
        elif action == INTERRUPT:
            event = InputEvent("interrupt", key)
        elif action and action.startswith(DIRECT_SELECT_PREFIX):
            event = InputEvent("shortcut", key, "direct-select", int(action[len(DIRECT_SELECT_PREFIX):]))
        elif action:
            event = InputEvent("shortcut", key, action)
        else:
            # unmapped keys are announced but never queued
            self.emit("char", InputEvent("char", key, value=data))
            return

        self.emit(event.type, event)
        self.events.put_nowait(event)

    def push_event(self, event: InputEvent) -> None:
        """Queue an event that did not come from the keyboard (signals)"""
        self.events.put_nowait(event)

    async def wait_for_input(self) -> InputEvent:
        return await self.events.get()

    def on(self, event_type: str, callback: Listener) -> None:
        self.listeners.setdefault(event_type, []).append(callback)

    def off(self, event_type: str, callback: Listener) -> None:
        callbacks = self.listeners.get(event_type)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event_type: str, event: InputEvent) -> None:
        for callback in list(self.listeners.get(event_type, [])):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in input listener for {event_type}", e)

    def cleanup(self) -> None:
        self.stop()
        self.listeners.clear()
        while not self.events.empty():
            self.events.get_nowait()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "is_active": self.is_active,
            "raw_mode": self.raw_mode,
            "is_interactive": self.is_interactive(),
            "queued_events": self.events.qsize(),
            "listeners": {t: len(cbs) for t, cbs in self.listeners.items()},
        }

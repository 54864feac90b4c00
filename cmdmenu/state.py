#!/usr/bin/env python3
"""
cmdmenu State Management
Single source of truth for the menu plus synchronous observer fan-out
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .exceptions import InvalidIndexError, InvalidModeError, ValidationError
from .history import ExecutionRecord
from .logger import logger
from .options import MenuOption


class MenuMode(str, Enum):
    NAVIGATION = "navigation"
    PREVIEW = "preview"
    HISTORY = "history"
    CONFIG = "config"
    HELP = "help"


VALID_MODES = tuple(m.value for m in MenuMode)

Observer = Callable[[str, Dict[str, Any]], None]


@dataclass(frozen=True)
class MenuState:
    """Immutable snapshot handed to observers and the renderer"""
    options: Tuple[MenuOption, ...]
    selected_index: int = 0
    mode: MenuMode = MenuMode.NAVIGATION
    is_executing: bool = False
    executing_command: Optional[str] = None
    history: Tuple[ExecutionRecord, ...] = ()
    statistics: Dict[str, Any] = field(default_factory=dict)
    preferences: Dict[str, Any] = field(default_factory=dict)
    message: Optional[Tuple[str, str]] = None

    @property
    def selected_option(self) -> MenuOption:
        return self.options[self.selected_index]


class StateManager:
    """Owns MenuState; every mutation goes through one of these methods"""

    def __init__(self, options: Sequence[MenuOption]):
        self._state = MenuState(options=self._check_options(options))
        self._observers: List[Observer] = []

    @staticmethod
    def _check_options(options) -> Tuple[MenuOption, ...]:
        if not isinstance(options, (list, tuple)) or len(options) == 0:
            raise ValidationError("Options must be a non-empty list", field="options")
        return tuple(options)

    def get_state(self) -> MenuState:
        return self._state

    def get_selected_option(self) -> MenuOption:
        return self._state.selected_option

    def _commit(self, event_type: str, data: Dict[str, Any], **changes) -> None:
        self._state = replace(self._state, **changes)
        self.notify_observers(event_type, data)

    def set_selected_index(self, index: int) -> None:
        size = len(self._state.options)
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < size:
            raise InvalidIndexError(index, size)
        self._commit("selected_index_changed", {"index": index}, selected_index=index)

    def move_up(self) -> None:
        index = self._state.selected_index
        last = len(self._state.options) - 1
        self.set_selected_index(last if index == 0 else index - 1)

    def move_down(self) -> None:
        index = self._state.selected_index
        last = len(self._state.options) - 1
        self.set_selected_index(0 if index == last else index + 1)

    def set_mode(self, mode) -> None:
        try:
            new_mode = MenuMode(mode)
        except ValueError:
            raise InvalidModeError(mode, VALID_MODES) from None
        self._commit("mode_changed", {"mode": new_mode.value}, mode=new_mode)

    def set_executing(self, command_name: str) -> None:
        self._commit("execution_started", {"command_name": command_name},
                     is_executing=True, executing_command=command_name)

    def clear_executing(self) -> None:
        self._commit("execution_ended", {}, is_executing=False, executing_command=None)

    def set_options(self, options: Sequence[MenuOption]) -> None:
        new_options = self._check_options(options)
        index = min(self._state.selected_index, len(new_options) - 1)
        self._commit("options_changed", {"count": len(new_options)},
                     options=new_options, selected_index=index)

    def set_history_view(self, records: Sequence[ExecutionRecord], statistics: Dict[str, Any]) -> None:
        self._commit("history_view_changed", {"count": len(records)},
                     history=tuple(records), statistics=dict(statistics))

    def set_preferences_view(self, preferences: Dict[str, Any]) -> None:
        self._commit("preferences_view_changed", {}, preferences=dict(preferences))

    def set_message(self, kind: str, text: str) -> None:
        self._commit("message_changed", {"kind": kind}, message=(kind, text))

    def clear_message(self) -> None:
        if self._state.message is not None:
            self._commit("message_changed", {"kind": None}, message=None)

    def reset(self) -> None:
        self._commit("state_reset", {}, selected_index=0, mode=MenuMode.NAVIGATION,
                     is_executing=False, executing_command=None, message=None)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it"""
        if not callable(observer):
            raise ValidationError("Observer must be callable", field="observer")
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        self._observers = [o for o in self._observers if o is not observer]

    def notify_observers(self, event_type: str, data: Dict[str, Any]) -> None:
        for observer in list(self._observers):
            try:
                observer(event_type, data)
            except Exception as e:
                logger.error(f"Error in state observer for event {event_type}", e)

#!/usr/bin/env python3
"""
Command registry for cmdmenu.
Collects command handlers with their menu metadata and exposes a single dispatch function.
"""

import importlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .diagnostics import register_builtin_commands
from .exceptions import CommandExecutionError, ConfigurationError, ValidationError
from .logger import logger
from .options import RESERVED_COMMANDS, CommandPreview, MenuOption, intrinsic_options


Handler = Callable[[List[Any], Dict[str, Any]], Any]


@dataclass
class RegisteredCommand:
    option: MenuOption
    handler: Handler


class CommandRegistry:
    """Maps command names to handlers and menu options"""

    def __init__(self):
        self._commands: Dict[str, RegisteredCommand] = {}

    def register(self, command: str, label: Optional[str] = None, description: str = "",
                 icon: str = "", category: str = "action", shortcut: Optional[str] = None,
                 preview: Optional[Any] = None) -> Callable[[Handler], Handler]:
        """
        Decorator registering ``handler(args, flags)`` under ``command``.

        The handler may be sync or async and returns None, a bool or a mapping
        with ``success``/``message``/``data``/``error``.
        """
        if command in RESERVED_COMMANDS:
            raise ValidationError(f"'{command}' is a reserved menu command", field="command", value=command)
        if command in self._commands:
            raise ValidationError(f"Command '{command}' is already registered", field="command", value=command)
        if isinstance(preview, dict):
            preview = CommandPreview.from_dict(preview)

        option = MenuOption(
            command=command,
            label=label or command,
            description=description,
            icon=icon,
            category=category,
            shortcut=shortcut,
            preview=preview,
        )

        def decorator(handler: Handler) -> Handler:
            self._commands[command] = RegisteredCommand(option, handler)
            logger.debug(f"Registered command: {command}")
            return handler
        return decorator

    def __contains__(self, command: str) -> bool:
        return command in self._commands

    def __len__(self) -> int:
        return len(self._commands)

    def list_commands(self) -> List[str]:
        return list(self._commands)

    def dispatch(self, command_name: str, args: List[Any], flags: Dict[str, Any]) -> Any:
        entry = self._commands.get(command_name)
        if entry is None:
            raise CommandExecutionError(
                f"Command '{command_name}' not found", command=command_name,
                code="COMMAND_NOT_FOUND", exit_code=127
            )
        return entry.handler(args, flags)

    def menu_options(self, include_intrinsic: bool = True) -> List[MenuOption]:
        options = [entry.option for entry in self._commands.values()]
        if include_intrinsic:
            options += intrinsic_options()
        return options


def load_registry(target: str) -> CommandRegistry:
    """
    Import a registry from ``package.module:attribute``.

    The attribute may be a CommandRegistry or a callable returning one.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Invalid registry path '{target}'. Expected 'package.module:attribute'",
                                 "commands")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import module '{module_name}': {e}", "commands") from e

    obj = getattr(module, attr, None)
    if obj is None:
        raise ConfigurationError(f"Module '{module_name}' has no attribute '{attr}'", "commands")
    if callable(obj) and not isinstance(obj, CommandRegistry):
        obj = obj()
    if not isinstance(obj, CommandRegistry):
        raise ConfigurationError(f"'{target}' is not a CommandRegistry", "commands")
    return obj


def default_registry() -> CommandRegistry:
    """Registry with the built-in commands"""
    registry = CommandRegistry()
    register_builtin_commands(registry)
    return registry

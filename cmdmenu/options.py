# cmdmenu/options.py - Menu option model and intent resolution

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import ValidationError
from .history import ExecutionRecord


CATEGORIES = ("action", "info", "destructive", "utility")


@dataclass(frozen=True)
class CommandPreview:
    """What the user sees before confirming an execution"""
    shell_command: str
    affected_paths: Tuple[str, ...] = ()
    estimated_duration: Optional[float] = None
    warning: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommandPreview":
        return cls(
            shell_command=data.get("shell_command") or data.get("shellCommand") or "",
            affected_paths=tuple(data.get("affected_paths") or data.get("affectedPaths") or ()),
            estimated_duration=data.get("estimated_duration", data.get("estimatedDuration")),
            warning=data.get("warning"),
        )


@dataclass(frozen=True)
class MenuOption:
    """Represents a single menu option"""
    command: str
    label: str
    description: str = ""
    icon: str = ""
    category: str = "action"
    shortcut: Optional[str] = None
    preview: Optional[CommandPreview] = None
    last_execution: Optional[ExecutionRecord] = field(default=None, compare=False)

    def __post_init__(self):
        if not self.command:
            raise ValidationError("MenuOption.command must be a non-empty string", field="command")
        if self.category not in CATEGORIES:
            raise ValidationError(
                f"Invalid category: {self.category}. Must be one of: {', '.join(CATEGORIES)}",
                field="category", value=self.category
            )

    def with_last_execution(self, record: Optional[ExecutionRecord]) -> "MenuOption":
        return replace(self, last_execution=record)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MenuOption":
        preview = data.get("preview")
        if isinstance(preview, dict):
            preview = CommandPreview.from_dict(preview)
        return cls(
            command=data["command"],
            label=data.get("label") or data["command"],
            description=data.get("description", ""),
            icon=data.get("icon", ""),
            category=data.get("category", "action"),
            shortcut=data.get("shortcut"),
            preview=preview,
        )


class IntrinsicAction(Enum):
    """Commands handled by the menu itself, never dispatched"""
    HISTORY = "history"
    CONFIG = "config"
    HELP = "help"
    EXIT = "exit"


@dataclass(frozen=True)
class ExternalCommand:
    """A command forwarded to the dispatch function"""
    name: str


Intent = Union[IntrinsicAction, ExternalCommand]

RESERVED_COMMANDS = frozenset(action.value for action in IntrinsicAction)


def resolve_intent(command: str) -> Intent:
    try:
        return IntrinsicAction(command)
    except ValueError:
        return ExternalCommand(command)


def intrinsic_options() -> List[MenuOption]:
    """Menu entries for history, config, help and exit"""
    return [
        MenuOption(
            command="history",
            label="Command History",
            description="Browse recently executed commands with timestamps, status and duration.",
            icon="📜",
            category="info",
        ),
        MenuOption(
            command="config",
            label="Menu Settings",
            description="Change the theme, animations, icons, descriptions and previews. "
                        "Settings are saved immediately.",
            icon="⚙",
            category="utility",
        ),
        MenuOption(
            command="help",
            label="Help & Shortcuts",
            description="Show every keyboard shortcut and how to navigate the menu.",
            icon="❓",
            category="info",
        ),
        MenuOption(
            command="exit",
            label="Exit",
            description="Leave the menu. History and settings are saved automatically.",
            icon="🚪",
            category="utility",
        ),
    ]

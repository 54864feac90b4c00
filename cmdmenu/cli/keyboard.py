#!/usr/bin/env python3
"""Key name -> logical action table"""

from typing import Any, Dict, List, Optional

from ..exceptions import ShortcutConflictError, ValidationError


NAVIGATE_UP = "navigate-up"
NAVIGATE_DOWN = "navigate-down"
SELECT = "select"
QUIT = "quit"
HELP = "help"
REFRESH = "refresh"
PREVIEW = "preview"
HISTORY = "history"
CONFIG = "config"
INTERRUPT = "interrupt"
CYCLE = "cycle"

DIRECT_SELECT_PREFIX = "select-"

RECOGNIZED_ACTIONS = frozenset(
    [NAVIGATE_UP, NAVIGATE_DOWN, SELECT, QUIT, HELP, REFRESH, PREVIEW, HISTORY, CONFIG, INTERRUPT, CYCLE]
    + [f"{DIRECT_SELECT_PREFIX}{i}" for i in range(1, 10)]
)

# keys the user may never remap
RESERVED_KEYS = frozenset(["up", "down", "left", "right", "enter", "escape", "space", "ctrl-c"])


class KeyboardMapper:
    """Resolves parsed key names to logical actions"""

    def __init__(self):
        self.default_mappings = self.get_default_mappings()
        self.custom_mappings: Dict[str, Dict[str, str]] = {}

    @staticmethod
    def get_default_mappings() -> Dict[str, Dict[str, str]]:
        mappings = {
            "up": {"action": NAVIGATE_UP, "description": "Move to the previous option"},
            "down": {"action": NAVIGATE_DOWN, "description": "Move to the next option"},
            "enter": {"action": SELECT, "description": "Select / execute the current option"},
            "space": {"action": SELECT, "description": "Select / execute the current option"},
            "q": {"action": QUIT, "description": "Go back / quit the menu"},
            "escape": {"action": QUIT, "description": "Go back / quit the menu"},
            "ctrl-c": {"action": INTERRUPT, "description": "Save and exit immediately"},
            "h": {"action": HELP, "description": "Show help"},
            "?": {"action": HELP, "description": "Show help"},
            "r": {"action": REFRESH, "description": "Refresh the option list"},
            "p": {"action": PREVIEW, "description": "Preview the selected command"},
            "backspace": {"action": HISTORY, "description": "Show command history"},
            "c": {"action": CONFIG, "description": "Show settings"},
            "tab": {"action": CYCLE, "description": "Cycle the theme on the settings screen"},
        }
        for i in range(1, 10):
            mappings[str(i)] = {"action": f"{DIRECT_SELECT_PREFIX}{i}", "description": f"Select option {i}"}
        return mappings

    @staticmethod
    def normalize(key: str) -> str:
        return key.strip().lower()

    def get_action(self, key: Optional[str]) -> Optional[str]:
        if not key or not isinstance(key, str):
            return None
        key = self.normalize(key)
        mapping = self.custom_mappings.get(key) or self.default_mappings.get(key)
        return mapping["action"] if mapping else None

    def register_shortcut(self, key: str, action: str, description: Optional[str] = None) -> None:
        """Bind ``key`` to ``action``; an already bound key raises ShortcutConflictError"""
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("Shortcut key must be a non-empty string", field="key", value=key)
        if not isinstance(action, str) or not action.strip():
            raise ValidationError(f"Invalid action for key '{key}': must be a non-empty string",
                                  field="action", value=action)
        key = self.normalize(key)
        existing = self.get_action(key)
        if existing is not None:
            raise ShortcutConflictError(key, existing)
        self.custom_mappings[key] = {
            "action": action.strip(),
            "description": description or f"Custom: {action.strip()}",
        }

    def unregister_shortcut(self, key: str) -> None:
        self.custom_mappings.pop(self.normalize(key), None)

    def customize_keymap(self, mappings: Dict[str, Any]) -> None:
        """
        Apply a key -> action remap table, all or nothing.

        Every entry is validated (key not reserved, action recognized) before
        any of them is applied.
        """
        if not isinstance(mappings, dict):
            raise ValidationError("Mappings must be a dictionary", field="mappings")

        validated: Dict[str, Dict[str, str]] = {}
        for key, action in mappings.items():
            if not isinstance(key, str) or not key.strip():
                raise ValidationError("Shortcut key must be a non-empty string", field="key", value=key)
            normalized = self.normalize(key)
            if normalized in RESERVED_KEYS:
                raise ValidationError(f"Cannot override reserved key: {normalized}", field="key", value=normalized)

            description = None
            if isinstance(action, dict):
                description = action.get("description")
                action = action.get("action")
            if not isinstance(action, str) or action.strip() not in RECOGNIZED_ACTIONS:
                raise ValidationError(f"Unknown action for key '{key}': {action}", field="action", value=action)
            if normalized in validated:
                raise ValidationError(f"Key conflicts detected: {normalized}", field="key", value=normalized)

            validated[normalized] = {
                "action": action.strip(),
                "description": description or f"Custom: {action.strip()}",
            }

        self.custom_mappings.update(validated)

    def clear_custom_mappings(self) -> None:
        self.custom_mappings.clear()

    def is_available(self, key: str) -> bool:
        key = self.normalize(key)
        return key not in RESERVED_KEYS and self.get_action(key) is None

    def get_description(self, key: str) -> Optional[str]:
        key = self.normalize(key)
        mapping = self.custom_mappings.get(key) or self.default_mappings.get(key)
        return mapping["description"] if mapping else None

    def get_all_shortcuts(self) -> List[Dict[str, str]]:
        shortcuts = [
            {"key": key, "action": m["action"], "description": m["description"], "type": "default"}
            for key, m in self.default_mappings.items()
            if key not in self.custom_mappings
        ]
        shortcuts += [
            {"key": key, "action": m["action"], "description": m["description"], "type": "custom"}
            for key, m in self.custom_mappings.items()
        ]
        return sorted(shortcuts, key=lambda s: (s["type"] != "default", s["key"]))

    def export_config(self) -> Dict[str, Any]:
        return {
            "version": "1.0",
            "customMappings": {k: dict(v) for k, v in self.custom_mappings.items()},
        }

    def import_config(self, config: Dict[str, Any]) -> None:
        if not isinstance(config, dict) or not isinstance(config.get("customMappings"), dict):
            raise ValidationError("Invalid keymap config format", field="customMappings")
        previous = dict(self.custom_mappings)
        self.custom_mappings.clear()
        try:
            self.customize_keymap(config["customMappings"])
        except ValidationError:
            self.custom_mappings = previous
            raise

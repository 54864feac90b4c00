#!/usr/bin/env python3
"""
cmdmenu Exception Hierarchy
Centralized exceptions for the interactive menu engine
"""


class MenuError(Exception):
    """Base exception for all cmdmenu errors"""
    def __init__(self, message, code=None, details=None):
        self.message = message
        self.code = code or "UNKNOWN_ERROR"
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert exception to dict for logging/output"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(MenuError):
    """Raised when a caller passes invalid input to a menu component"""
    def __init__(self, message, field=None, value=None, code="VALIDATION_ERROR"):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, code, details)


class InvalidIndexError(ValidationError):
    """Raised when a selection index is outside the option list"""
    def __init__(self, index, size):
        super().__init__(
            f"Invalid index: {index}. Must be between 0 and {size - 1}",
            field="selected_index",
            value=index,
            code="INVALID_INDEX"
        )


class InvalidModeError(ValidationError):
    """Raised when a mode name is not one of the recognized modes"""
    def __init__(self, mode, valid_modes):
        super().__init__(
            f"Invalid mode: {mode}. Must be one of: {', '.join(valid_modes)}",
            field="mode",
            value=mode,
            code="INVALID_MODE"
        )


class ShortcutConflictError(ValidationError):
    """Raised when a key is already bound to an action"""
    def __init__(self, key, existing_action):
        super().__init__(
            f"Key '{key}' is already bound to '{existing_action}'",
            field="key",
            value=key,
            code="SHORTCUT_CONFLICT"
        )


class ConfigurationError(MenuError):
    """Raised when configuration is invalid or missing"""
    def __init__(self, message, config_key=None):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, "CONFIG_ERROR", details)


class PersistenceError(MenuError):
    """Raised when history or preference files cannot be written"""
    def __init__(self, message, filepath=None, operation=None):
        details = {}
        if filepath:
            details["filepath"] = str(filepath)
        if operation:
            details["operation"] = operation
        super().__init__(message, "FILE_ERROR", details)


class CommandExecutionError(MenuError):
    """Raised when a dispatched command reports failure"""
    def __init__(self, message, command=None, code=None, exit_code=1):
        details = {"exit_code": exit_code}
        if command:
            details["command"] = command
        super().__init__(message, code or "EXECUTION_ERROR", details)
        self.exit_code = exit_code


class TerminalNotInteractiveError(MenuError):
    """Raised when the interactive menu is started without a TTY"""
    def __init__(self, message="Terminal is not interactive. Cannot display menu."):
        super().__init__(message, "NOT_INTERACTIVE", {})


class InitializationError(MenuError):
    """Raised when the menu fails to start"""
    def __init__(self, message, phase=None):
        details = {"phase": phase} if phase else {}
        super().__init__(message, "INIT_ERROR", details)

"""
Tests for the exceptions module in cmdmenu
"""

import pytest
from cmdmenu.exceptions import (
    CommandExecutionError, ConfigurationError, InitializationError, InvalidIndexError, InvalidModeError,
    MenuError, PersistenceError, ShortcutConflictError, TerminalNotInteractiveError, ValidationError
)


def test_validation_error():
    """Test ValidationError functionality"""
    with pytest.raises(ValidationError) as exc_info:
        raise ValidationError("Invalid input", field="test_field", value="test_value")

    error = exc_info.value
    assert str(error) == "Invalid input"
    assert error.code == "VALIDATION_ERROR"
    # Field and value are stored in details dict
    assert error.details["field"] == "test_field"
    assert error.details["value"] == "test_value"


def test_menu_error_defaults():
    error = MenuError("Something broke")
    assert error.code == "UNKNOWN_ERROR"
    assert error.details == {}
    assert error.to_dict() == {"error": "UNKNOWN_ERROR", "message": "Something broke", "details": {}}


def test_index_and_mode_errors_are_validation_errors():
    index_error = InvalidIndexError(7, 3)
    assert isinstance(index_error, ValidationError)
    assert index_error.code == "INVALID_INDEX"
    assert "between 0 and 2" in index_error.message

    mode_error = InvalidModeError("bogus", ("navigation", "preview"))
    assert mode_error.code == "INVALID_MODE"
    assert mode_error.details["value"] == "bogus"


def test_shortcut_conflict_error():
    error = ShortcutConflictError("d", "option:deploy")
    assert isinstance(error, ValidationError)
    assert error.code == "SHORTCUT_CONFLICT"
    assert "option:deploy" in error.message


def test_command_execution_error_carries_exit_code():
    error = CommandExecutionError("not found", command="deploy", code="COMMAND_NOT_FOUND", exit_code=127)
    assert error.exit_code == 127
    assert error.code == "COMMAND_NOT_FOUND"
    assert error.details == {"exit_code": 127, "command": "deploy"}


def test_other_errors():
    assert ConfigurationError("bad", "preferences.theme").details == {"config_key": "preferences.theme"}
    assert PersistenceError("disk", "/tmp/x.json", "write").code == "FILE_ERROR"
    assert TerminalNotInteractiveError().code == "NOT_INTERACTIVE"
    assert InitializationError("failed", phase="config").details == {"phase": "config"}

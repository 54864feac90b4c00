"""
Tests for cmdmenu.command_runner
"""

import asyncio
import threading
from types import SimpleNamespace

import pytest

from cmdmenu.command_runner import CommandExecutor, ExecutionResult
from cmdmenu.exceptions import CommandExecutionError, ValidationError


def run(coro):
    return asyncio.run(coro)


def test_requires_callable_dispatch():
    with pytest.raises(ValidationError):
        CommandExecutor("not callable")


@pytest.mark.parametrize("name", ["history", "config", "help", "exit", ""])
def test_reserved_and_empty_names_are_rejected(name):
    executor = CommandExecutor(lambda *a: None)
    with pytest.raises(ValidationError):
        run(executor.execute(name))


def test_sync_dispatch_runs_off_the_loop_thread():
    calls = []

    def dispatch(name, args, flags):
        calls.append((name, args, flags, threading.current_thread()))
        return {"success": True, "message": "built", "data": {"files": 3}}

    result = run(CommandExecutor(dispatch, verbose=True).execute("build", ["--fast"], {"target": "prod"}))

    assert result.success is True
    assert result.message == "built"
    assert result.data == {"files": 3}
    assert result.exit_code == 0
    name, args, flags, thread = calls[0]
    assert (name, args) == ("build", ["--fast"])
    assert flags == {"verbose": True, "debug": False, "target": "prod"}
    assert thread is not threading.main_thread()


def test_async_dispatch():
    async def dispatch(name, args, flags):
        await asyncio.sleep(0)
        return True

    result = run(CommandExecutor(dispatch).execute("build"))
    assert result.success is True
    assert result.message == "Command completed successfully"
    assert result.duration >= 0


def test_sync_dispatch_returning_awaitable():
    async def inner():
        return {"success": True}

    result = run(CommandExecutor(lambda *a: inner()).execute("build"))
    assert result.success is True


@pytest.mark.parametrize("outcome,success", [
    (None, True),
    (True, True),
    (False, False),
    ({"success": False}, False),
    (SimpleNamespace(success=True, message="ok"), True),
])
def test_outcome_normalization(outcome, success):
    result = run(CommandExecutor(lambda *a: outcome).execute("build"))
    assert result.success is success
    assert (result.exit_code == 0) is success


def test_failure_mapping_keeps_exit_code_and_error():
    outcome = {"success": False, "message": "denied", "exitCode": 13,
               "error": {"code": "EACCES", "message": "permission denied", "stack": "trace"}}
    result = run(CommandExecutor(lambda *a: outcome).execute("deploy"))
    assert result.exit_code == 13
    assert result.error == {"code": "EACCES", "message": "permission denied"}


def test_failure_with_zero_exit_code_is_forced_non_zero():
    result = run(CommandExecutor(lambda *a: {"success": False, "exit_code": 0}).execute("deploy"))
    assert result.exit_code == 1
    assert result.error["code"] == "EXECUTION_ERROR"


def test_exception_is_captured():
    def dispatch(name, args, flags):
        raise RuntimeError("boom")

    result = run(CommandExecutor(dispatch).execute("deploy"))
    assert result.success is False
    assert result.message == "boom"
    assert result.exit_code == 1
    assert result.error == {"code": "EXECUTION_ERROR", "message": "boom"}


def test_exception_stack_only_in_debug():
    def dispatch(name, args, flags):
        raise CommandExecutionError("missing", code="COMMAND_NOT_FOUND", exit_code=127)

    result = run(CommandExecutor(dispatch, debug=True).execute("deploy"))
    assert result.exit_code == 127
    assert result.error["code"] == "COMMAND_NOT_FOUND"
    assert "CommandExecutionError" in result.error["stack"]


def test_execute_many_stops_at_first_failure():
    seen = []

    def dispatch(name, args, flags):
        seen.append(name)
        return name != "test"

    results = run(CommandExecutor(dispatch).execute_many([
        ("build", None, None), ("test", None, None), ("deploy", None, None),
    ]))
    assert [r.success for r in results] == [True, False]
    assert seen == ["build", "test"]


def test_result_to_dict_drops_none():
    result = ExecutionResult(True, "ok", "2025-01-31T12:00:00.000Z", 5)
    assert result.to_dict() == {
        "success": True, "message": "ok", "timestamp": "2025-01-31T12:00:00.000Z", "duration": 5, "exit_code": 0,
    }
    assert result.is_success()

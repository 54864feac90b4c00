#!/usr/bin/env python3
"""
Command executor for cmdmenu.
Times calls to the dispatch function and normalizes every outcome into an ExecutionResult.
"""

import asyncio
import inspect
import time
import traceback
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .exceptions import ValidationError
from .logger import logger
from .options import RESERVED_COMMANDS
from .utils import utc_timestamp


Dispatch = Callable[[str, List[Any], Dict[str, Any]], Any]


@dataclass
class ExecutionResult:
    """Standardized outcome of one dispatched command"""
    success: bool
    message: str
    timestamp: str
    duration: int  # milliseconds
    data: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None
    exit_code: int = 0

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        return {k: v for k, v in result.items() if v is not None}

    def is_success(self) -> bool:
        return self.success


class CommandExecutor:
    """Thin timing and normalization boundary around the dispatch function"""

    def __init__(self, dispatch: Dispatch, debug: bool = False, verbose: bool = False):
        if not callable(dispatch):
            raise ValidationError("dispatch must be callable", field="dispatch")
        self.dispatch = dispatch
        self.debug = debug
        self.verbose = verbose

    @staticmethod
    def is_reserved(command_name: str) -> bool:
        return command_name in RESERVED_COMMANDS

    async def execute(self, command_name: str, args: Optional[Sequence[Any]] = None,
                      flags: Optional[Dict[str, Any]] = None) -> ExecutionResult:
        """
        Run one command through the dispatch function.

        Args:
            command_name: Identifier handed to dispatch; reserved names are rejected
            args: Positional arguments for the command
            flags: Extra flags, merged over the executor's verbose/debug flags

        Returns:
            ExecutionResult; dispatch exceptions are captured, never raised
        """
        if not isinstance(command_name, str) or not command_name:
            raise ValidationError("command_name must be a non-empty string", field="command_name")
        if self.is_reserved(command_name):
            raise ValidationError(
                f"'{command_name}' is handled by the menu and cannot be dispatched",
                field="command_name", value=command_name
            )

        merged_flags = {"verbose": self.verbose, "debug": self.debug, **(flags or {})}
        call_args = list(args or [])

        logger.info(f"Executing command: {command_name}")
        started = time.monotonic()
        try:
            outcome = await self._call(command_name, call_args, merged_flags)
        except Exception as e:
            duration = self._elapsed(started)
            logger.error(f"Command {command_name} raised", e, duration_ms=duration)
            return self._from_exception(e, duration)

        duration = self._elapsed(started)
        result = self._normalize(outcome, duration)
        logger.performance(f"command {command_name}", duration)
        if not result.success:
            logger.warning(f"Command {command_name} reported failure: {result.message}")
        return result

    async def execute_many(self, commands: Sequence[Tuple[str, Optional[Sequence[Any]], Optional[Dict[str, Any]]]]
                           ) -> List[ExecutionResult]:
        """Run commands in order, stopping after the first failure"""
        results = []
        for command_name, args, flags in commands:
            result = await self.execute(command_name, args, flags)
            results.append(result)
            if not result.success:
                break
        return results

    async def _call(self, command_name: str, args: List[Any], flags: Dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(self.dispatch):
            outcome = await self.dispatch(command_name, args, flags)
        else:
            outcome = await asyncio.to_thread(self.dispatch, command_name, args, flags)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    @staticmethod
    def _elapsed(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def _normalize(self, outcome: Any, duration: int) -> ExecutionResult:
        if outcome is None or outcome is True:
            return ExecutionResult(True, "Command completed successfully", utc_timestamp(), duration)
        if outcome is False:
            return self._failure("Command failed", duration)

        if isinstance(outcome, dict):
            get = outcome.get
        else:
            def get(name, default=None):
                return getattr(outcome, name, default)

        success = bool(get("success", True))
        message = get("message") or ("Command completed successfully" if success else "Command failed")
        if success:
            return ExecutionResult(True, str(message), utc_timestamp(), duration, data=get("data"))

        error = get("error")
        exit_code = get("exit_code", get("exitCode", 1))
        if isinstance(error, dict):
            error = {"code": error.get("code", "EXECUTION_ERROR"), "message": error.get("message", message),
                     **({"stack": error["stack"]} if self.debug and error.get("stack") else {})}
        return self._failure(str(message), duration, error=error, exit_code=exit_code, data=get("data"))

    def _failure(self, message: str, duration: int, error: Optional[Dict[str, Any]] = None,
                 exit_code: Any = 1, data: Any = None) -> ExecutionResult:
        if isinstance(exit_code, bool) or not isinstance(exit_code, int) or exit_code == 0:
            exit_code = 1
        if not isinstance(error, dict):
            error = {"code": "EXECUTION_ERROR", "message": str(error) if error else message}
        return ExecutionResult(False, message, utc_timestamp(), duration, data=data, error=error,
                               exit_code=exit_code)

    def _from_exception(self, exc: Exception, duration: int) -> ExecutionResult:
        message = str(exc) or type(exc).__name__
        code = getattr(exc, "code", None)
        error = {"code": code if isinstance(code, str) else "EXECUTION_ERROR", "message": message}
        if self.debug:
            error["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return self._failure(message, duration, error=error, exit_code=getattr(exc, "exit_code", 1))

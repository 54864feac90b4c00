#!/usr/bin/env python3
"""
cmdmenu Error Handling
Classifies failures into categories and produces sanitized user-facing messages
"""

import errno
import json
import re
import traceback
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from .exceptions import (
    CommandExecutionError, MenuError, PersistenceError, ValidationError
)


USER_INPUT = "user-input"
SYSTEM = "system"
COMMAND_EXECUTION = "command-execution"
RUNTIME = "runtime"

CATEGORIES = (USER_INPUT, SYSTEM, COMMAND_EXECUTION, RUNTIME)


@dataclass
class ErrorResponse:
    """User-facing description of a handled error"""
    category: str
    message: str
    suggestion: str
    recoverable: bool
    details: Optional[Dict[str, Any]] = field(default=None)


class DataSanitizer:
    """Sanitizes sensitive data from error messages"""

    PATTERNS = [
        (r'https?://[^\s<>"{}|\\^`\[\]]+', '[URL]'),
        (r'\b(?:\d{1,3}\.){3}\d{1,3}\b', '[IP]'),
        (r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b', '[EMAIL]'),
        (r'(?:password|token|api[_-]?key|secret)["\s:=]+[^\s,;}\]]+', '[CREDENTIAL]'),
        (r'/home/[^/\s]+', '/home/[USER]'),
        (r'C:\\Users\\[^\\]+', r'C:\\Users\\[USER]'),
    ]

    def __init__(self):
        self._patterns = [(re.compile(p, re.IGNORECASE), r) for p, r in self.PATTERNS]

    def sanitize(self, text: str) -> str:
        """Remove sensitive data from text"""
        if not text:
            return text
        result = str(text)
        for pattern, replacement in self._patterns:
            result = pattern.sub(replacement, result)
        return result


class ErrorHandler:
    """Assigns errors to one of four categories and builds ErrorResponse objects"""

    SYSTEM_MESSAGES = {
        'ENOENT': 'File or directory not found',
        'EACCES': 'Permission denied',
        'EPERM': 'Operation not permitted',
        'EEXIST': 'File or directory already exists',
        'ENOTDIR': 'Not a directory',
        'EISDIR': 'Is a directory',
        'EMFILE': 'Too many open files',
        'ENOSPC': 'No space left on device',
        'EROFS': 'Read-only file system',
    }

    RECOVERABLE_SYSTEM = ('ENOENT', 'ENOTDIR')

    def __init__(self, logger=None, debug: bool = False):
        self.logger = logger
        self.debug = debug
        self.sanitizer = DataSanitizer()

    def categorize_error(self, error: BaseException) -> str:
        if isinstance(error, ValidationError):
            return USER_INPUT
        if isinstance(error, (PersistenceError, OSError)):
            return SYSTEM
        if isinstance(error, CommandExecutionError):
            return COMMAND_EXECUTION
        if getattr(error, "code", None) == "EXECUTION_ERROR":
            return COMMAND_EXECUTION
        return RUNTIME

    def handle(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> ErrorResponse:
        context = context or {}
        category = self.categorize_error(error)

        if self.logger:
            self.logger.error("Error caught by ErrorHandler", error, category=category, **context)

        if category == USER_INPUT:
            return self._handle_user_input_error(error, context)
        if category == SYSTEM:
            return self._handle_system_error(error, context)
        if category == COMMAND_EXECUTION:
            return self._handle_command_error(error, context)
        return self._handle_runtime_error(error, context)

    def _message_of(self, error: BaseException) -> str:
        message = error.message if isinstance(error, MenuError) else str(error)
        return self.sanitizer.sanitize(message)

    def _handle_user_input_error(self, error, context) -> ErrorResponse:
        return ErrorResponse(
            category=USER_INPUT,
            message=self._message_of(error) or "Invalid input",
            suggestion="Check the provided values and try again.",
            recoverable=True,
            details={"error": self._message_of(error), "context": context} if self.debug else None
        )

    def _handle_system_error(self, error, context) -> ErrorResponse:
        code = self._system_code(error)
        if code in self.SYSTEM_MESSAGES:
            message = self.SYSTEM_MESSAGES[code]
        elif isinstance(error, PersistenceError):
            message = self._message_of(error)
        else:
            message = f"System error: {code or 'unknown'}"
        recoverable = code in self.RECOVERABLE_SYSTEM

        return ErrorResponse(
            category=SYSTEM,
            message=message,
            suggestion=(
                "Check the file path and try again."
                if recoverable else
                "Check file permissions and available disk space."
            ),
            recoverable=recoverable,
            details={"error": self._message_of(error), "code": code, "context": context} if self.debug else None
        )

    def _handle_command_error(self, error, context) -> ErrorResponse:
        return ErrorResponse(
            category=COMMAND_EXECUTION,
            message=self._message_of(error) or "Command execution failed",
            suggestion="Check the command configuration and the service connection.",
            recoverable=True,
            details={"error": self._message_of(error), "context": context} if self.debug else None
        )

    def _handle_runtime_error(self, error, context) -> ErrorResponse:
        details = None
        if self.debug:
            details = {
                "error": self._message_of(error),
                "stack": self.sanitizer.sanitize(
                    "".join(traceback.format_exception(type(error), error, error.__traceback__))
                ),
                "context": context,
            }
        return ErrorResponse(
            category=RUNTIME,
            message="Unexpected error",
            suggestion="If the problem persists, run with --debug (or CMDMENU_DEBUG=true) and check the logs.",
            recoverable=False,
            details=details
        )

    @staticmethod
    def _system_code(error: BaseException) -> Optional[str]:
        if isinstance(error, OSError) and error.errno is not None:
            return errno.errorcode.get(error.errno)
        cause = error.__cause__
        if isinstance(cause, OSError) and cause.errno is not None:
            return errno.errorcode.get(cause.errno)
        return None

    async def recover(self, error: BaseException, fallback: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``fallback`` after ``error``; a failing fallback raises MenuError"""
        if self.logger:
            self.logger.warning(f"Attempting error recovery: {self._message_of(error)}")
        try:
            result = await fallback()
        except Exception as recovery_error:
            if self.logger:
                self.logger.error("Error recovery failed", recovery_error)
            raise MenuError(f"Recovery failed: {recovery_error}", "RECOVERY_FAILED") from recovery_error
        if self.logger:
            self.logger.info("Error recovery successful")
        return result

    def format_user_message(self, response: ErrorResponse) -> str:
        lines = [f"✗ {response.message}"]
        if response.suggestion:
            lines.append(f"→ {response.suggestion}")
        if self.debug and response.details:
            lines.append("")
            lines.append("Technical details:")
            lines.append(json.dumps(response.details, indent=2, default=str))
        return "\n".join(lines)

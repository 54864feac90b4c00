#!/usr/bin/env python3
"""
cmdmenu Command History
Bounded, most-recent-first log of command executions persisted as JSON
"""

import json
import re
import shutil
import time
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .exceptions import PersistenceError, ValidationError
from .logger import data_home, logger
from .utils import atomic_write_json, utc_timestamp


HISTORY_VERSION = "1.0"
DEFAULT_MAX_SIZE = 100

SUCCESS = "success"
FAILURE = "failure"

TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


@dataclass(frozen=True)
class ExecutionRecord:
    """One immutable entry of the execution log"""
    command_name: str
    timestamp: str
    status: str
    duration: int
    exit_code: int
    error: Optional[str] = None
    error_stack: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "commandName": self.command_name,
            "timestamp": self.timestamp,
            "status": self.status,
            "duration": self.duration,
            "exitCode": self.exit_code,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.error_stack is not None:
            data["errorStack"] = self.error_stack
        if self.error_code is not None:
            data["errorCode"] = self.error_code
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionRecord":
        return cls(
            command_name=data["commandName"],
            timestamp=data["timestamp"],
            status=data["status"],
            duration=int(data.get("duration") or 0),
            exit_code=data["exitCode"],
            error=data.get("error"),
            error_stack=data.get("errorStack"),
            error_code=data.get("errorCode"),
        )

    @staticmethod
    def is_valid_dict(data: Any) -> bool:
        if not isinstance(data, dict):
            return False
        name = data.get("commandName")
        if not isinstance(name, str) or not name:
            return False
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, str) or not TIMESTAMP_RE.match(timestamp):
            return False
        if data.get("status") not in (SUCCESS, FAILURE):
            return False
        exit_code = data.get("exitCode")
        if isinstance(exit_code, bool) or not isinstance(exit_code, int):
            return False
        duration = data.get("duration", 0)
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            return False
        return True


class CommandHistory:
    """In-memory execution log with JSON persistence and corruption recovery"""

    def __init__(self, history_path: Optional[Union[str, Path]] = None, max_size: int = DEFAULT_MAX_SIZE):
        self.history_path = Path(history_path) if history_path else data_home() / "history.json"
        self.records: List[ExecutionRecord] = []
        self.max_size = self._check_size(max_size)

    @staticmethod
    def _check_size(size: int) -> int:
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise ValidationError("max_size must be a positive integer", field="max_size", value=size)
        return size

    def set_max_size(self, size: int) -> None:
        self.max_size = self._check_size(size)
        del self.records[self.max_size:]

    def add(self, command_name: str, exit_code: int, duration: Union[int, float] = 0,
            error: Any = None, error_stack: Optional[str] = None,
            error_code: Optional[str] = None) -> ExecutionRecord:
        """
        Record one execution at the front of the log.

        Args:
            command_name: Executed command identifier (required, non-empty)
            exit_code: Numeric exit code; zero means success
            duration: Wall-clock duration in milliseconds
            error: Failure message, exception or mapping with a ``message``
            error_stack: Formatted stack trace for failures
            error_code: Symbolic error code for failures

        Returns:
            The stored ExecutionRecord
        """
        if not isinstance(command_name, str) or not command_name:
            raise ValidationError("command_name is required and must be a string", field="command_name")
        if isinstance(exit_code, bool) or not isinstance(exit_code, int):
            raise ValidationError("exit_code is required and must be an integer", field="exit_code", value=exit_code)

        message = stack = code = None
        if exit_code != 0:
            if isinstance(error, BaseException):
                message = str(error) or type(error).__name__
                if error.__traceback__ is not None:
                    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
                code = getattr(error, "code", None) if isinstance(getattr(error, "code", None), str) else None
            elif isinstance(error, dict):
                message = error.get("message") or json.dumps(error, default=str)
            elif error:
                message = str(error)

            if isinstance(error_stack, str):
                stack = error_stack
            if isinstance(error_code, str):
                code = error_code
            if not message:
                message = f"Command failed with exit code {exit_code}"

        record = ExecutionRecord(
            command_name=command_name,
            timestamp=utc_timestamp(),
            status=SUCCESS if exit_code == 0 else FAILURE,
            duration=int(duration or 0),
            exit_code=exit_code,
            error=message,
            error_stack=stack,
            error_code=code,
        )

        self.records.insert(0, record)
        del self.records[self.max_size:]
        return record

    def get_all(self) -> List[ExecutionRecord]:
        return list(self.records)

    def get_recent(self, count: int = 10) -> List[ExecutionRecord]:
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValidationError("count must be a positive integer", field="count", value=count)
        return self.records[:count]

    def get_last_execution(self, command_name: str) -> Optional[ExecutionRecord]:
        if not isinstance(command_name, str) or not command_name:
            raise ValidationError("command_name is required and must be a string", field="command_name")
        return next((r for r in self.records if r.command_name == command_name), None)

    def get_statistics(self) -> Dict[str, Any]:
        stats = {
            "total_executions": len(self.records),
            "success_count": 0,
            "failure_count": 0,
            "success_rate": 0.0,
            "most_used": [],
        }

        counts: Dict[str, int] = {}
        for record in self.records:
            if record.status == SUCCESS:
                stats["success_count"] += 1
            else:
                stats["failure_count"] += 1
            counts[record.command_name] = counts.get(record.command_name, 0) + 1

        if stats["total_executions"]:
            stats["success_rate"] = stats["success_count"] / stats["total_executions"]

        stats["most_used"] = [
            {"command": command, "count": count}
            for command, count in sorted(counts.items(), key=lambda item: item[1], reverse=True)
        ]
        return stats

    def clear(self) -> int:
        removed = len(self.records)
        self.records = []
        return removed

    def save(self) -> Path:
        payload = {
            "version": HISTORY_VERSION,
            "maxSize": self.max_size,
            "lastUpdate": utc_timestamp(),
            "records": [r.to_dict() for r in self.records],
        }
        try:
            return atomic_write_json(self.history_path, payload)
        except OSError as e:
            raise PersistenceError(f"Failed to save history: {e}", self.history_path, "write") from e

    def load(self) -> None:
        """Load history from disk; never raises"""
        if not self.history_path.exists():
            self.records = []
            return

        try:
            content = self.history_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read history file {self.history_path}: {e}. Starting empty.")
            self.records = []
            return

        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"History file {self.history_path} is not valid JSON. Backing up and starting empty.")
            self._backup_corrupted_file()
            self.records = []
            return

        if not self._validate_history_file(data):
            logger.warning(f"History file {self.history_path} has invalid records. Backing up and starting empty.")
            self._backup_corrupted_file()
            self.records = []
            return

        self.records = [ExecutionRecord.from_dict(r) for r in data["records"]][:self.max_size]
        logger.debug(f"Loaded {len(self.records)} history records from {self.history_path}")

    @staticmethod
    def _validate_history_file(data: Any) -> bool:
        if not isinstance(data, dict):
            return False
        if not isinstance(data.get("version"), str) or not data["version"]:
            return False
        if not isinstance(data.get("records"), list):
            return False
        return all(ExecutionRecord.is_valid_dict(r) for r in data["records"])

    def _backup_corrupted_file(self) -> Optional[Path]:
        backup_path = self.history_path.with_name(
            f"{self.history_path.name}.corrupted.{int(time.time() * 1000)}"
        )
        try:
            shutil.copy2(self.history_path, backup_path)
        except OSError as e:
            logger.warning(f"Failed to back up corrupted history file: {e}")
            return None
        return backup_path

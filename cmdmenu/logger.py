#!/usr/bin/env python3
"""
cmdmenu Logging System
Centralized logging with file rotation, levels and operation timers
"""

import logging
import os
import time
from logging.handlers import RotatingFileHandler
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional
from rich.console import Console
from rich.logging import RichHandler


def data_home() -> Path:
    """Directory holding config, history and logs"""
    override = os.environ.get("CMDMENU_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".cmdmenu"


def debug_enabled() -> bool:
    for var in ("CMDMENU_DEBUG", "DEBUG"):
        if os.environ.get(var, "").lower() in ("1", "true", "yes"):
            return True
    return False


class MenuLogger:
    """Centralized logging system for cmdmenu"""

    _instance = None
    _initialized = False

    SLOW_OPERATION_MS = 1000

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if MenuLogger._initialized:
            return

        # stderr so log lines never interleave with the menu frame on stdout
        self.console = Console(stderr=True)
        self.logs_dir = data_home() / "logs"
        self.debug_mode = debug_enabled()
        self.timers: Dict[str, float] = {}

        self.logger = logging.getLogger("cmdmenu")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()
        self.logger.propagate = False

        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            log_file = self.logs_dir / f"cmdmenu_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(file_handler)
        except OSError:
            # read-only home: console logging only
            self.logs_dir = None

        console_handler = RichHandler(console=self.console, show_level=True, show_time=True)
        console_handler.setLevel(logging.DEBUG if self.debug_mode else logging.WARNING)
        self.logger.addHandler(console_handler)

        MenuLogger._initialized = True

    def debug(self, message, **kwargs):
        """Log debug message"""
        self.logger.debug(message, **kwargs)

    def info(self, message, **kwargs):
        """Log info message"""
        self.logger.info(message, **kwargs)

    def warning(self, message, **kwargs):
        """Log warning message"""
        self.logger.warning(message, **kwargs)

    def error(self, message, error: Optional[BaseException] = None, **context):
        """Log error message with the failing exception and context"""
        parts = [message]
        if error is not None:
            parts.append(f"{type(error).__name__}: {error}")
            code = getattr(error, "code", None)
            if code:
                context.setdefault("code", code)
        if context:
            parts.append(" ".join(f"{k}={v}" for k, v in context.items()))
        self.logger.error(" | ".join(parts), exc_info=error if (error is not None and self.debug_mode) else None)

    def critical(self, message, **kwargs):
        """Log critical message"""
        self.logger.critical(message, **kwargs)

    def start_timer(self, operation: str) -> None:
        self.timers[operation] = time.monotonic()

    def end_timer(self, operation: str) -> int:
        """Stop a timer and return the elapsed milliseconds (0 if unknown)"""
        started = self.timers.pop(operation, None)
        if started is None:
            self.warning(f"Timer not found for operation: {operation}")
            return 0
        duration = int((time.monotonic() - started) * 1000)
        self.performance(operation, duration)
        return duration

    def performance(self, operation: str, duration: int) -> None:
        message = f"Performance: {operation} completed in {duration}ms"
        if duration > self.SLOW_OPERATION_MS:
            self.warning(f"{message} (slow)")
        else:
            self.debug(message)

    def clear_old_logs(self, days=7) -> int:
        """Clear logs older than specified days; returns how many files were removed"""
        if self.logs_dir is None:
            return 0
        removed = 0
        current_time = time.time()
        for log_file in self.logs_dir.glob("*.log*"):
            if os.path.getmtime(log_file) < current_time - days * 86400:
                try:
                    os.remove(log_file)
                    removed += 1
                    self.info(f"Removed old log file: {log_file}")
                except OSError as e:
                    self.error("Failed to remove old log file", e)
        return removed


# Singleton instance
logger = MenuLogger()

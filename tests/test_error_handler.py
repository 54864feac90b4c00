"""
Tests for cmdmenu.error_handler
"""

import asyncio
import errno
import unittest
from unittest.mock import MagicMock

from cmdmenu.error_handler import (
    COMMAND_EXECUTION, RUNTIME, SYSTEM, USER_INPUT, DataSanitizer, ErrorHandler
)
from cmdmenu.exceptions import CommandExecutionError, MenuError, PersistenceError, ValidationError


class TestErrorHandler(unittest.TestCase):

    def setUp(self):
        self.logger = MagicMock()
        self.handler = ErrorHandler(self.logger)

    def test_categorize_error(self):
        self.assertEqual(self.handler.categorize_error(ValidationError("bad")), USER_INPUT)
        self.assertEqual(self.handler.categorize_error(PersistenceError("disk")), SYSTEM)
        self.assertEqual(self.handler.categorize_error(FileNotFoundError(errno.ENOENT, "gone")), SYSTEM)
        self.assertEqual(self.handler.categorize_error(CommandExecutionError("failed")), COMMAND_EXECUTION)
        self.assertEqual(self.handler.categorize_error(KeyError("x")), RUNTIME)

    def test_handle_logs_with_category(self):
        self.handler.handle(ValidationError("bad"), {"phase": "config"})
        args, kwargs = self.logger.error.call_args
        self.assertEqual(kwargs["category"], USER_INPUT)
        self.assertEqual(kwargs["phase"], "config")

    def test_user_input_response(self):
        response = self.handler.handle(ValidationError("Invalid index"))
        self.assertEqual(response.message, "Invalid index")
        self.assertTrue(response.recoverable)
        self.assertIsNone(response.details)

    def test_system_response(self):
        response = self.handler.handle(PermissionError(errno.EACCES, "denied"))
        self.assertEqual(response.message, "Permission denied")
        self.assertFalse(response.recoverable)

        response = self.handler.handle(FileNotFoundError(errno.ENOENT, "missing"))
        self.assertTrue(response.recoverable)

    def test_persistence_error_uses_cause_code(self):
        try:
            try:
                raise OSError(errno.ENOSPC, "full")
            except OSError as e:
                raise PersistenceError("Failed to save history") from e
        except PersistenceError as error:
            response = self.handler.handle(error)
        self.assertEqual(response.message, "No space left on device")

    def test_runtime_response_hides_details(self):
        response = self.handler.handle(KeyError("secret"))
        self.assertEqual(response.message, "Unexpected error")
        self.assertFalse(response.recoverable)
        self.assertIsNone(response.details)

    def test_debug_details_are_sanitized(self):
        handler = ErrorHandler(debug=True)
        response = handler.handle(RuntimeError("token=abc123 at https://example.com/x"))
        self.assertIn("stack", response.details)
        self.assertNotIn("abc123", response.details["error"])
        self.assertIn("[URL]", response.details["error"])
        text = handler.format_user_message(response)
        self.assertIn("Technical details:", text)

    def test_format_user_message(self):
        response = self.handler.handle(CommandExecutionError("deploy failed"))
        text = self.handler.format_user_message(response)
        self.assertTrue(text.startswith("✗ deploy failed"))
        self.assertIn("→ ", text)
        self.assertNotIn("Technical details", text)

    def test_recover(self):
        async def fallback():
            return "fallback value"

        result = asyncio.run(self.handler.recover(RuntimeError("x"), fallback))
        self.assertEqual(result, "fallback value")

    def test_recover_failure_raises_menu_error(self):
        async def fallback():
            raise OSError("still broken")

        with self.assertRaises(MenuError) as ctx:
            asyncio.run(self.handler.recover(RuntimeError("x"), fallback))
        self.assertEqual(ctx.exception.code, "RECOVERY_FAILED")


class TestDataSanitizer(unittest.TestCase):

    def test_sanitize(self):
        sanitizer = DataSanitizer()
        text = sanitizer.sanitize("user bob@example.com from 10.0.0.1 in /home/bob/project password=hunter2")
        self.assertIn("[EMAIL]", text)
        self.assertIn("[IP]", text)
        self.assertIn("/home/[USER]", text)
        self.assertIn("[CREDENTIAL]", text)
        self.assertNotIn("hunter2", text)

    def test_empty(self):
        self.assertEqual(DataSanitizer().sanitize(""), "")


if __name__ == "__main__":
    unittest.main()

#!/usr/bin/env python3
"""
cmdmenu Menu Orchestrator
Owns every menu component, runs the mode state machine and the session lifecycle
"""

import asyncio
import signal
from typing import Any, Callable, Dict, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .cli.input_handler import InputEvent, InputHandler
from .cli.keyboard import KeyboardMapper
from .command_runner import CommandExecutor, ExecutionResult
from .config import BOOLEAN_FIELDS, VALID_SPEEDS, VALID_THEMES, VALIDATORS, ConfigManager
from .error_handler import ErrorHandler
from .exceptions import (
    CommandExecutionError, ConfigurationError, InitializationError, MenuError, ShortcutConflictError,
    TerminalNotInteractiveError, ValidationError
)
from .history import CommandHistory
from .logger import debug_enabled, logger
from .options import ExternalCommand, IntrinsicAction, MenuOption, intrinsic_options, resolve_intent
from .registry import CommandRegistry, default_registry
from .state import MenuMode, StateManager
from .ui.animation import AnimationEngine
from .ui.renderer import UIRenderer
from .ui.theme import ThemeEngine


OPTION_ACTION_PREFIX = "option:"

# seconds the result line stays on screen before the next redraw
DEFAULT_FEEDBACK_DELAY = 1.5

INTRINSIC_MODES = {
    IntrinsicAction.HISTORY: MenuMode.HISTORY,
    IntrinsicAction.CONFIG: MenuMode.CONFIG,
    IntrinsicAction.HELP: MenuMode.HELP,
}


class MenuOrchestrator:
    """
    Top-level coordinator of the interactive menu.

    Sequences initialization, turns input events into mode transitions and
    command executions, records every execution and owns graceful shutdown.
    """

    def __init__(self, registry: Optional[CommandRegistry] = None, dispatch: Optional[Callable] = None,
                 options: Optional[Sequence[MenuOption]] = None, config_path=None, history_path=None,
                 console: Optional[Console] = None, stdin=None, debug: Optional[bool] = None,
                 return_to_menu: bool = True, feedback_delay: float = DEFAULT_FEEDBACK_DELAY,
                 custom_config: Optional[Dict[str, Any]] = None):
        if registry is None and dispatch is None:
            registry = default_registry()
        if registry is not None:
            dispatch = dispatch or registry.dispatch
            options = options or registry.menu_options()

        self.dispatch = dispatch
        self.options: List[MenuOption] = list(options or intrinsic_options())
        self.console = console or Console()
        self.stdin = stdin
        self.debug = debug_enabled() if debug is None else debug
        self.return_to_menu = return_to_menu
        self.feedback_delay = feedback_delay
        self.custom_config = dict(custom_config or {})

        self.config_manager = ConfigManager(config_path)
        self.command_history = CommandHistory(history_path)
        self.preferences: Dict[str, Any] = {}

        self.error_handler: Optional[ErrorHandler] = None
        self.theme_engine: Optional[ThemeEngine] = None
        self.animation_engine: Optional[AnimationEngine] = None
        self.keyboard_mapper: Optional[KeyboardMapper] = None
        self.state_manager: Optional[StateManager] = None
        self.input_handler: Optional[InputHandler] = None
        self.renderer: Optional[UIRenderer] = None
        self.executor: Optional[CommandExecutor] = None

        self.is_initialized = False
        self.is_running = False
        self.is_shutting_down = False
        self._result: Optional[Dict[str, Any]] = None
        self._execution_task: Optional[asyncio.Task] = None
        self._holding_feedback = False
        self._redraw_scheduled = False
        self._option_keys: List[str] = []
        self._signals: List[int] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    # -- lifecycle --

    async def initialize(self, menu_options: Optional[Sequence[MenuOption]] = None) -> None:
        """Create every component in dependency order; failures clean up and raise InitializationError"""
        if self.is_initialized:
            return

        phase = "logger"
        logger.start_timer("menu initialization")
        try:
            phase = "error-handler"
            self.error_handler = ErrorHandler(logger, debug=self.debug)

            phase = "config"
            self.config_manager.load()
            for key, value in self.custom_config.items():
                if key not in VALIDATORS:
                    raise ConfigurationError(f"Unknown preference: {key}", f"preferences.{key}")
                VALIDATORS[key](value)
            self.preferences = {
                **self.config_manager.get("preferences"),
                **self.config_manager.env_overrides(),
                **self.custom_config,
            }

            phase = "history"
            self.command_history.set_max_size(self.preferences["historySize"])
            self.command_history.load()

            phase = "theme"
            self.theme_engine = ThemeEngine(self.console)
            self.theme_engine.load_theme(self.preferences["theme"])

            phase = "animation"
            self.animation_engine = AnimationEngine(self.console, theme=self.theme_engine)
            self.animation_engine.respect_user_preferences(self.preferences)

            phase = "keyboard"
            self.keyboard_mapper = KeyboardMapper()
            self._apply_keymap_preferences()

            phase = "state"
            if menu_options:
                self.options = list(menu_options)
            self.state_manager = StateManager(self._with_projections(self.options))
            self.state_manager.set_preferences_view(self.preferences)
            self._register_option_shortcuts(self.options)
            self._unsubscribe = self.state_manager.subscribe(self._on_state_change)

            phase = "input"
            self.input_handler = InputHandler(self.state_manager, self.keyboard_mapper, stdin=self.stdin)

            phase = "renderer"
            self.renderer = UIRenderer(self.theme_engine, self.animation_engine, self.keyboard_mapper, self.console)

            phase = "executor"
            self.executor = CommandExecutor(self.dispatch, debug=self.debug)

            phase = "signals"
            self._install_signal_handlers()
        except Exception as e:
            handler = self.error_handler or ErrorHandler(logger, debug=self.debug)
            response = handler.handle(e, {"phase": phase})
            self.console.print(f"[red]{escape(handler.format_user_message(response))}[/red]")
            self.cleanup()
            raise InitializationError(f"Failed to initialize menu during {phase}: {e}", phase) from e

        self.is_initialized = True
        logger.end_timer("menu initialization")

    async def show(self, menu_options: Optional[Sequence[MenuOption]] = None) -> Dict[str, Any]:
        """
        Run the interactive session until the user leaves.

        Returns:
            {"action": "exit" | "cancelled" | "executed" | "interrupted", "option": MenuOption or None}
        """
        if not self.is_initialized:
            await self.initialize(menu_options)
        elif menu_options:
            self._register_option_shortcuts(menu_options)
            self.state_manager.set_options(self._with_projections(menu_options))

        if not self.input_handler.is_interactive():
            self.cleanup()
            raise TerminalNotInteractiveError()

        self._result = None
        self.is_running = True
        self.input_handler.start()
        self.redraw()

        try:
            while self._result is None:
                event = await self.input_handler.wait_for_input()
                await self.handle_event(event)
        finally:
            await self.shutdown()
        return self._result

    def _resolve(self, action: str, option: Optional[MenuOption] = None) -> None:
        if self._result is None:
            self._result = {"action": action, "option": option}
            if self.input_handler is not None:
                # wakes show() if it is waiting for a key
                self.input_handler.push_event(InputEvent("wake"))

    async def shutdown(self) -> None:
        """Stop input and animations, flush history and config, clear the screen; runs once"""
        if self.is_shutting_down:
            return
        self.is_shutting_down = True
        self.is_running = False
        logger.info("Shutting down menu")

        if self.input_handler is not None:
            self._shutdown_step("stop input", self.input_handler.stop)
        await self._wait_for_execution()
        if self.animation_engine is not None:
            self._shutdown_step("stop animations", self.animation_engine.cleanup)
        self._shutdown_step("flush history", self.command_history.save)
        if self.config_manager.config is not None:
            self._shutdown_step("flush configuration", self.config_manager.save)
        if self.renderer is not None:
            self._shutdown_step("clear screen", self.renderer.clear)
        self._remove_signal_handlers()

    async def _wait_for_execution(self) -> None:
        task = self._execution_task
        if task is None or task.done():
            return
        logger.info("Waiting for the running command to finish")
        await asyncio.wait([task])

    def _shutdown_step(self, name: str, step: Callable[[], Any]) -> None:
        try:
            step()
        except Exception as e:
            logger.error(f"Shutdown step failed: {name}", e)

    def cleanup(self) -> None:
        """Release terminal and signal resources without persisting anything"""
        if self.input_handler is not None:
            self.input_handler.cleanup()
        if self.animation_engine is not None:
            self.animation_engine.cleanup()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._remove_signal_handlers()
        self.is_running = False

    def is_active(self) -> bool:
        return self.is_running

    def get_state(self):
        return self.state_manager.get_state()

    # -- signals --

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        handlers = [(signal.SIGINT, self._on_terminate), (signal.SIGTERM, self._on_terminate)]
        if hasattr(signal, "SIGWINCH"):
            handlers.append((signal.SIGWINCH, self._on_resize))

        for signum, handler in handlers:
            try:
                loop.add_signal_handler(signum, handler, signum)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.debug(f"Signal handler for {signum} not installed: {e}")
            else:
                self._signals.append(signum)

    def _remove_signal_handlers(self) -> None:
        if not self._signals:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        for signum in self._signals:
            loop.remove_signal_handler(signum)
        self._signals = []

    def _on_terminate(self, signum: int) -> None:
        logger.info(f"Received signal {signum}, shutting down")
        self._resolve("interrupted")

    def _on_resize(self, signum: int) -> None:
        if not self.is_running or self._holding_feedback:
            return
        try:
            self.renderer.render(self.state_manager.get_state())
        except Exception as e:
            logger.debug(f"Redraw after resize failed: {e}")

    # -- rendering --

    def _on_state_change(self, event_type: str, data: Dict[str, Any]) -> None:
        if not self.is_running or self._redraw_scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        # coalesce several mutations into one frame
        self._redraw_scheduled = True
        loop.call_soon(self.redraw)

    def redraw(self) -> None:
        self._redraw_scheduled = False
        if not self.is_running or self._holding_feedback:
            return
        try:
            self.renderer.render(self.state_manager.get_state())
        except Exception as e:
            logger.error("Failed to render menu", e)

    # -- input --

    async def handle_event(self, event: InputEvent) -> None:
        """Apply one input event to the state machine"""
        mode = self.state_manager.get_state().mode
        try:
            await self._dispatch_event(event)
        except MenuError as e:
            response = self.error_handler.handle(e, {"event": event.type})
            self.state_manager.set_mode(MenuMode.NAVIGATION)
            self.state_manager.set_message("error", response.message)

        if self._result is None and self.state_manager.get_state().mode != mode:
            await self.animation_engine.animate_transition()

    async def _dispatch_event(self, event: InputEvent) -> None:
        mode = self.state_manager.get_state().mode

        if event.type in ("arrow-up", "arrow-down", "wake"):
            # navigation is applied by the input handler itself
            return
        if event.type == "interrupt":
            self._resolve("interrupted")
        elif event.type == "escape":
            if mode == MenuMode.NAVIGATION:
                self._resolve("cancelled")
            else:
                self._set_mode(MenuMode.NAVIGATION)
        elif event.type == "enter":
            await self._handle_select(mode, event)
        elif event.type == "shortcut":
            await self._handle_shortcut(mode, event)

    async def _handle_select(self, mode: MenuMode, event: InputEvent) -> None:
        if mode == MenuMode.NAVIGATION:
            await self.select_option(self.state_manager.get_selected_option())
        elif mode == MenuMode.PREVIEW:
            option = self.state_manager.get_selected_option()
            if self.state_manager.get_state().is_executing:
                logger.debug(f"Ignoring confirmation of {option.command}: a command is running")
                return
            self._set_mode(MenuMode.NAVIGATION)
            self.start_execution(option)
        elif mode == MenuMode.CONFIG and event.key == "space":
            self.cycle_preference("animationsEnabled")

    async def _handle_shortcut(self, mode: MenuMode, event: InputEvent) -> None:
        action = event.action

        if action in ("help", "history", "config"):
            self._enter_intrinsic(IntrinsicAction(action))
        elif action == "refresh":
            if mode == MenuMode.HISTORY:
                self._refresh_history_view()
            else:
                self.refresh_projections()
        elif action == "preview":
            option = self.state_manager.get_selected_option()
            if mode == MenuMode.NAVIGATION and isinstance(resolve_intent(option.command), ExternalCommand):
                self._set_mode(MenuMode.PREVIEW)
        elif action == "cycle":
            if mode == MenuMode.CONFIG:
                self.cycle_preference("theme")
        elif action == "direct-select":
            if mode == MenuMode.NAVIGATION and 1 <= event.value <= len(self.state_manager.get_state().options):
                self.state_manager.set_selected_index(event.value - 1)
                await self.select_option(self.state_manager.get_selected_option())
        elif action and action.startswith(OPTION_ACTION_PREFIX):
            if mode == MenuMode.NAVIGATION:
                await self._select_by_command(action[len(OPTION_ACTION_PREFIX):])
        else:
            logger.debug(f"No handler for shortcut action: {action}")

    async def _select_by_command(self, command: str) -> None:
        for index, option in enumerate(self.state_manager.get_state().options):
            if option.command == command:
                self.state_manager.set_selected_index(index)
                await self.select_option(option)
                return

    async def select_option(self, option: MenuOption) -> None:
        """Resolve the option's intent once and act on it"""
        intent = resolve_intent(option.command)
        if intent is IntrinsicAction.EXIT:
            self._resolve("exit", option)
        elif isinstance(intent, IntrinsicAction):
            self._enter_intrinsic(intent)
        elif self.state_manager.get_state().is_executing:
            logger.debug(f"Ignoring selection of {option.command}: a command is running")
        elif option.preview is not None and self.preferences.get("showPreviews", True):
            self._set_mode(MenuMode.PREVIEW)
        else:
            self.start_execution(option)

    def _enter_intrinsic(self, action: IntrinsicAction) -> None:
        if action is IntrinsicAction.HISTORY:
            self._refresh_history_view()
        elif action is IntrinsicAction.CONFIG:
            self.state_manager.set_preferences_view(self.preferences)
        self._set_mode(INTRINSIC_MODES[action])

    def _set_mode(self, mode: MenuMode) -> None:
        if self.state_manager.get_state().mode != mode:
            self.state_manager.clear_message()
        self.state_manager.set_mode(mode)

    # -- execution --

    def start_execution(self, option: MenuOption) -> Optional[asyncio.Task]:
        """Mark the option as executing and run it as its own task"""
        if self.state_manager.get_state().is_executing:
            return None
        self.state_manager.clear_message()
        self.state_manager.set_executing(option.command)
        self._execution_task = asyncio.create_task(self.execute_command(option))
        return self._execution_task

    async def execute_command(self, option: MenuOption) -> ExecutionResult:
        """
        Execute one external command and record the outcome.

        Recording, persisting, clearing the executing flag and refreshing the
        last-execution projections happen on success and failure alike.
        """
        if not self.state_manager.get_state().is_executing:
            self.state_manager.set_executing(option.command)

        failure: Optional[BaseException] = None
        result: Optional[ExecutionResult] = None
        try:
            result = await self.animation_engine.with_spinner(
                f"Running {option.label}...",
                lambda: self.executor.execute(option.command),
            )
        except Exception as e:
            failure = e
        finally:
            try:
                if result is not None or failure is not None:
                    self._record(option, result, failure)
                else:
                    logger.warning(f"Execution of {option.command} was cancelled, nothing recorded")
            finally:
                self.state_manager.clear_executing()
                self.refresh_projections()

        if result is None:
            response = self.error_handler.handle(failure, {"command": option.command})
            result = ExecutionResult(False, response.message, "", 0,
                                     error={"code": getattr(failure, "code", "EXECUTION_ERROR"),
                                            "message": response.message},
                                     exit_code=getattr(failure, "exit_code", 1) or 1)
            self.state_manager.set_message("error", f"{option.label}: {response.message}")
        elif result.success:
            self.state_manager.set_message("success", f"{option.label}: {result.message}")
        else:
            error = CommandExecutionError(result.message, command=option.command,
                                          code=(result.error or {}).get("code"), exit_code=result.exit_code)
            response = self.error_handler.handle(error, {"command": option.command})
            self.state_manager.set_message("error", f"{option.label} failed: {response.message}")

        if not self.return_to_menu:
            self._resolve("executed", option)
            return result

        await self._feedback_pause()
        return result

    def _record(self, option: MenuOption, result: Optional[ExecutionResult],
                failure: Optional[BaseException]) -> None:
        if result is not None:
            error = result.error or {}
            self.command_history.add(
                option.command,
                result.exit_code if not result.success else 0,
                result.duration,
                error=error.get("message") or (result.message if not result.success else None),
                error_stack=error.get("stack"),
                error_code=error.get("code"),
            )
        else:
            self.command_history.add(option.command, getattr(failure, "exit_code", 1) or 1, 0, error=failure)

        try:
            self.command_history.save()
        except MenuError as e:
            response = self.error_handler.handle(e, {"command": option.command})
            logger.warning(f"History not saved: {response.message}")

    async def _feedback_pause(self) -> None:
        """Keep the result frame on screen; input keeps flowing, redraw waits until the end"""
        if not self.is_running or self.is_shutting_down or self.feedback_delay <= 0:
            return
        self.redraw()
        self._holding_feedback = True
        try:
            await asyncio.sleep(self.feedback_delay)
        finally:
            self._holding_feedback = False
        self.redraw()

    def refresh_projections(self) -> None:
        options = self.state_manager.get_state().options
        self.state_manager.set_options(self._with_projections(options))

    def _with_projections(self, options: Sequence[MenuOption]) -> List[MenuOption]:
        return [
            option.with_last_execution(self.command_history.get_last_execution(option.command))
            for option in options
        ]

    def _refresh_history_view(self) -> None:
        self.state_manager.set_history_view(
            self.command_history.get_all(), self.command_history.get_statistics()
        )

    # -- preferences --

    def cycle_preference(self, key: str) -> Any:
        """Advance a preference to its next value and persist it"""
        current = self.preferences.get(key)
        if key == "theme":
            value = VALID_THEMES[(VALID_THEMES.index(current) + 1) % len(VALID_THEMES)]
        elif key == "animationSpeed":
            value = VALID_SPEEDS[(VALID_SPEEDS.index(current) + 1) % len(VALID_SPEEDS)]
        elif key in BOOLEAN_FIELDS:
            value = not current
        else:
            raise ValidationError(f"Preference cannot be cycled: {key}", field="key", value=key)

        self.config_manager.set(f"preferences.{key}", value)
        self.preferences[key] = value
        self._apply_preferences()
        return value

    def _apply_preferences(self) -> None:
        self.theme_engine.load_theme(self.preferences["theme"])
        self.animation_engine.respect_user_preferences(self.preferences)
        self.state_manager.set_preferences_view(self.preferences)

    def _apply_keymap_preferences(self) -> None:
        remap = self.preferences.get("keyboardShortcuts") or {}
        if not remap:
            return
        try:
            self.keyboard_mapper.customize_keymap(remap)
        except ValidationError as e:
            logger.warning(f"Ignoring custom keyboard shortcuts: {e.message}")

    def _register_option_shortcuts(self, options: Sequence[MenuOption]) -> None:
        for key in self._option_keys:
            self.keyboard_mapper.unregister_shortcut(key)
        self._option_keys = []

        for option in options:
            if not option.shortcut:
                continue
            try:
                self.keyboard_mapper.register_shortcut(
                    option.shortcut, f"{OPTION_ACTION_PREFIX}{option.command}", f"Run {option.label}"
                )
            except ShortcutConflictError as e:
                logger.warning(f"Shortcut for {option.command} skipped: {e.message}")
            else:
                self._option_keys.append(self.keyboard_mapper.normalize(option.shortcut))

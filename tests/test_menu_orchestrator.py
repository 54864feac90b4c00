"""
Tests for cmdmenu.menu.MenuOrchestrator
"""

import asyncio
import io
import json
import signal
from unittest.mock import AsyncMock, MagicMock

import pytest
from rich.console import Console

from cmdmenu.cli.input_handler import InputEvent
from cmdmenu.exceptions import (
    InitializationError, PersistenceError, ShortcutConflictError, TerminalNotInteractiveError, ValidationError
)
from cmdmenu.menu import MenuOrchestrator
from cmdmenu.options import MenuOption
from cmdmenu.registry import CommandRegistry
from cmdmenu.state import MenuMode


def build_registry(gate=None):
    registry = CommandRegistry()

    @registry.register("build", label="Build", description="Compile the project")
    def build(args, flags):
        return {"success": True, "message": "built"}

    @registry.register("boom", label="Boom")
    def boom(args, flags):
        raise RuntimeError("boom")

    @registry.register("deploy", label="Deploy", shortcut="d", category="destructive",
                       preview={"shell_command": "make deploy", "affected_paths": ["/srv/app"]})
    def deploy(args, flags):
        return True

    @registry.register("slow", label="Slow")
    async def slow(args, flags):
        await gate.wait()
        return True

    return registry


@pytest.fixture
def make_menu(tmp_path):
    def factory(**kwargs):
        kwargs.setdefault("registry", build_registry(kwargs.pop("gate", None)))
        return MenuOrchestrator(
            config_path=tmp_path / "config.json",
            history_path=tmp_path / "history.json",
            console=Console(file=io.StringIO(), width=100, color_system=None),
            stdin=io.StringIO(),
            debug=False,
            feedback_delay=0,
            **kwargs,
        )
    return factory


def run(coro):
    return asyncio.run(coro)


def fake_terminal(menu):
    menu.input_handler.is_interactive = lambda: True
    menu.input_handler.start = lambda: None


def press(menu, *keys):
    for key in keys:
        menu.input_handler.handle_key_press(key)


def select(menu, command):
    for index, option in enumerate(menu.get_state().options):
        if option.command == command:
            menu.state_manager.set_selected_index(index)
            return option
    raise AssertionError(f"no option {command}")


def test_initialize_builds_every_component(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        try:
            state = menu.get_state()
            assert menu.is_initialized
            assert [o.command for o in state.options][-4:] == ["history", "config", "help", "exit"]
            assert state.preferences["theme"] == "default"
            assert menu.theme_engine.get_current_theme_name() == "default"
            assert menu.keyboard_mapper.get_action("d") == "option:deploy"
            assert menu.is_active() is False
        finally:
            await menu.shutdown()

    run(scenario())


def test_default_registry_is_used_without_commands(tmp_path):
    menu = MenuOrchestrator(config_path=tmp_path / "c.json", history_path=tmp_path / "h.json")
    assert menu.options[0].command == "system:diagnostics"


def test_failed_command_is_recorded(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.select_option(select(menu, "boom"))
        await menu._execution_task

        record = menu.command_history.get_all()[0]
        assert record.command_name == "boom"
        assert record.status == "failure"
        assert record.exit_code != 0
        assert "boom" in record.error

        state = menu.get_state()
        assert state.mode is MenuMode.NAVIGATION
        assert state.is_executing is False
        assert state.message[0] == "error"
        assert state.selected_option.last_execution == record
        await menu.shutdown()

    run(scenario())


def test_successful_command_is_recorded_and_persisted(make_menu, tmp_path):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.select_option(select(menu, "build"))
        await menu._execution_task
        assert menu.get_state().message == ("success", "Build: built")
        await menu.shutdown()

    run(scenario())
    data = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert data["records"][0]["commandName"] == "build"
    assert data["records"][0]["status"] == "success"
    assert data["records"][0]["exitCode"] == 0


def test_history_size_preference_bounds_history(tmp_path, make_menu):
    registry = CommandRegistry()
    for name in ("A", "B", "C"):
        registry.register(name)(lambda args, flags: True)

    async def scenario():
        menu = make_menu(registry=registry, custom_config={"historySize": 2})
        await menu.initialize()
        for name in ("A", "B", "C"):
            await menu.select_option(select(menu, name))
            await menu._execution_task
        assert [r.command_name for r in menu.command_history.get_all()] == ["C", "B"]
        await menu.shutdown()

    run(scenario())


def test_option_shortcut_conflict(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        with pytest.raises(ShortcutConflictError):
            menu.keyboard_mapper.register_shortcut("d", "option:other")
        await menu.shutdown()

    run(scenario())


def test_option_shortcut_selects_command(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        press(menu, "d")
        await menu.handle_event(menu.input_handler.events.get_nowait())
        assert menu.get_state().mode is MenuMode.PREVIEW
        assert menu.get_state().selected_option.command == "deploy"
        await menu.shutdown()

    run(scenario())


def test_navigation_wraps(make_menu):
    options = [MenuOption(command=name, label=name) for name in ("a", "b", "c")]

    async def scenario():
        menu = make_menu(registry=None, dispatch=lambda name, args, flags: True, options=options)
        await menu.initialize()
        press(menu, "\x1b[B", "\x1b[B", "\x1b[B")
        assert menu.get_state().selected_index == 0
        press(menu, "\x1b[A")
        assert menu.get_state().selected_index == 2
        await menu.shutdown()

    run(scenario())


def test_preview_then_confirm_executes(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.select_option(select(menu, "deploy"))
        assert menu.get_state().mode is MenuMode.PREVIEW
        assert menu.command_history.get_all() == []

        await menu.handle_event(InputEvent("enter", "enter"))
        assert menu.get_state().mode is MenuMode.NAVIGATION
        await menu._execution_task
        assert menu.command_history.get_all()[0].command_name == "deploy"
        await menu.shutdown()

    run(scenario())


def test_previews_can_be_disabled(make_menu):
    async def scenario():
        menu = make_menu(custom_config={"showPreviews": False})
        await menu.initialize()
        await menu.select_option(select(menu, "deploy"))
        assert menu.get_state().mode is MenuMode.NAVIGATION
        await menu._execution_task
        assert menu.command_history.get_all()[0].command_name == "deploy"
        await menu.shutdown()

    run(scenario())


def test_preview_shortcut_and_escape(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        select(menu, "build")
        await menu.handle_event(InputEvent("shortcut", "p", "preview"))
        assert menu.get_state().mode is MenuMode.PREVIEW
        await menu.handle_event(InputEvent("escape", "escape"))
        assert menu.get_state().mode is MenuMode.NAVIGATION
        assert menu._result is None

        select(menu, "help")
        await menu.handle_event(InputEvent("shortcut", "p", "preview"))
        assert menu.get_state().mode is MenuMode.NAVIGATION
        await menu.shutdown()

    run(scenario())


def test_intrinsic_modes(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.handle_event(InputEvent("shortcut", "h", "help"))
        assert menu.get_state().mode is MenuMode.HELP
        await menu.handle_event(InputEvent("shortcut", "backspace", "history"))
        assert menu.get_state().mode is MenuMode.HISTORY
        await menu.handle_event(InputEvent("shortcut", "c", "config"))
        assert menu.get_state().mode is MenuMode.CONFIG
        await menu.handle_event(InputEvent("escape", "escape"))
        assert menu.get_state().mode is MenuMode.NAVIGATION

        await menu.select_option(select(menu, "history"))
        assert menu.get_state().mode is MenuMode.HISTORY
        assert menu.command_history.get_all() == []
        await menu.shutdown()

    run(scenario())


def test_history_view_is_refreshed(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.select_option(select(menu, "build"))
        await menu._execution_task
        await menu.handle_event(InputEvent("shortcut", "backspace", "history"))
        state = menu.get_state()
        assert [r.command_name for r in state.history] == ["build"]
        assert state.statistics["total_executions"] == 1
        await menu.shutdown()

    run(scenario())


def test_direct_select(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.handle_event(InputEvent("shortcut", "1", "direct-select", 1))
        await menu._execution_task
        assert menu.command_history.get_all()[0].command_name == "build"

        await menu.handle_event(InputEvent("shortcut", "9", "direct-select", 9))
        assert len(menu.command_history.get_all()) == 1
        await menu.shutdown()

    run(scenario())


def test_selection_ignored_while_executing(make_menu):
    async def scenario():
        gate = asyncio.Event()
        menu = make_menu(gate=gate)
        await menu.initialize()
        await menu.select_option(select(menu, "slow"))
        running = menu._execution_task
        await asyncio.sleep(0)
        assert menu.get_state().is_executing
        assert menu.get_state().executing_command == "slow"

        await menu.select_option(select(menu, "build"))
        assert menu._execution_task is running

        gate.set()
        await running
        assert [r.command_name for r in menu.command_history.get_all()] == ["slow"]
        assert menu.get_state().is_executing is False
        await menu.shutdown()

    run(scenario())


def test_cycle_preference_persists(make_menu, tmp_path):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.handle_event(InputEvent("shortcut", "c", "config"))
        await menu.handle_event(InputEvent("shortcut", "tab", "cycle"))
        assert menu.preferences["theme"] == "dark"
        assert menu.get_state().preferences["theme"] == "dark"
        assert menu.theme_engine.get_current_theme_name() == "dark"

        await menu.handle_event(InputEvent("enter", "space"))
        assert menu.preferences["animationsEnabled"] is False
        assert menu.animation_engine.animations_enabled is False

        assert menu.cycle_preference("animationSpeed") == "fast"
        with pytest.raises(ValidationError):
            menu.cycle_preference("historySize")
        await menu.shutdown()

    run(scenario())
    prefs = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))["preferences"]
    assert prefs["theme"] == "dark"
    assert prefs["animationsEnabled"] is False
    assert prefs["animationSpeed"] == "fast"


def test_cycle_ignored_outside_config(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.handle_event(InputEvent("shortcut", "tab", "cycle"))
        assert menu.preferences["theme"] == "default"
        await menu.shutdown()

    run(scenario())


def test_invalid_custom_config_fails_initialization(make_menu):
    async def scenario():
        menu = make_menu(custom_config={"theme": "neon"})
        with pytest.raises(InitializationError) as exc_info:
            await menu.initialize()
        assert exc_info.value.details == {"phase": "config"}
        assert menu.is_initialized is False

    run(scenario())


def test_unknown_custom_config_key_fails_initialization(make_menu):
    async def scenario():
        menu = make_menu(custom_config={"sparkles": True})
        with pytest.raises(InitializationError):
            await menu.initialize()

    run(scenario())


def test_show_refuses_non_interactive_terminal(make_menu):
    async def scenario():
        menu = make_menu()
        with pytest.raises(TerminalNotInteractiveError):
            await menu.show()
        assert menu.is_active() is False

    run(scenario())


def test_show_escape_cancels(make_menu, tmp_path):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        fake_terminal(menu)
        press(menu, "\x1b[B", "\x1b")
        result = await menu.show()
        assert result == {"action": "cancelled", "option": None}
        assert menu.is_active() is False
        assert "cmdmenu" in menu.console.file.getvalue()

    run(scenario())
    assert (tmp_path / "history.json").exists()
    assert (tmp_path / "config.json").exists()


def test_show_exit_option(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        fake_terminal(menu)
        select(menu, "exit")
        press(menu, "\r")
        return await menu.show()

    result = run(scenario())
    assert result["action"] == "exit"
    assert result["option"].command == "exit"


def test_show_interrupt(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        fake_terminal(menu)
        press(menu, "\x03")
        return await menu.show()

    assert run(scenario())["action"] == "interrupted"


def test_terminate_signal_resolves_interrupted(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        fake_terminal(menu)
        asyncio.get_running_loop().call_soon(menu._on_terminate, signal.SIGTERM)
        return await menu.show()

    assert run(scenario())["action"] == "interrupted"


def test_show_without_return_to_menu(make_menu):
    async def scenario():
        menu = make_menu(return_to_menu=False)
        await menu.initialize()
        fake_terminal(menu)
        select(menu, "build")
        press(menu, "\r")
        result = await menu.show()
        assert menu.command_history.get_all()[0].command_name == "build"
        return result

    result = run(scenario())
    assert result["action"] == "executed"
    assert result["option"].command == "build"


def test_feedback_pause_keeps_processing_input(make_menu):
    async def scenario():
        menu = make_menu()
        menu.feedback_delay = 0.3
        await menu.initialize()
        fake_terminal(menu)
        select(menu, "build")
        press(menu, "\r")

        async def leave_after_execution():
            while not menu.command_history.get_all():
                await asyncio.sleep(0.01)
            assert menu._holding_feedback
            press(menu, "\x1b[B")
            press(menu, "q")

        helper = asyncio.create_task(leave_after_execution())
        result = await menu.show()
        await helper
        await menu._execution_task
        return result

    assert run(scenario())["action"] == "cancelled"


def test_shutdown_is_idempotent(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        await menu.shutdown()
        await menu.shutdown()
        assert menu.is_shutting_down

    run(scenario())


def test_errors_in_events_return_to_navigation(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        menu.state_manager.set_mode(MenuMode.CONFIG)
        menu.config_manager.set = MagicMock(side_effect=PersistenceError("disk full"))
        await menu.handle_event(InputEvent("shortcut", "tab", "cycle"))
        state = menu.get_state()
        assert state.mode is MenuMode.NAVIGATION
        assert state.message[0] == "error"
        await menu.shutdown()

    run(scenario())


def test_mode_changes_animate_a_transition(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        menu.animation_engine.animate_transition = AsyncMock()
        await menu.handle_event(InputEvent("shortcut", "h", "help"))
        await menu.handle_event(InputEvent("shortcut", "h", "help"))
        menu.animation_engine.animate_transition.assert_awaited_once()
        await menu.shutdown()

    run(scenario())


def test_shutdown_waits_for_running_command(make_menu, tmp_path):
    registry = build_registry()
    completed = []

    @registry.register("work", label="Work")
    async def work(args, flags):
        await asyncio.sleep(0.2)
        completed.append(True)
        return {"success": True, "message": "done"}

    async def scenario():
        menu = make_menu(registry=registry)
        await menu.initialize()
        menu.start_execution(select(menu, "work"))
        await asyncio.sleep(0)
        menu._resolve("exit")
        await menu.shutdown()
        assert menu._execution_task.done()
        assert menu.get_state().is_executing is False

        records = menu.command_history.get_all()
        assert [(r.command_name, r.status, r.exit_code) for r in records] == [("work", "success", 0)]

    run(scenario())
    assert completed == [True]
    data = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert [(r["commandName"], r["status"]) for r in data["records"]] == [("work", "success")]


def test_leaving_menu_during_execution_keeps_outcome(make_menu, tmp_path):
    async def scenario():
        gate = asyncio.Event()
        menu = make_menu(gate=gate)
        menu.feedback_delay = 5
        await menu.initialize()
        fake_terminal(menu)
        select(menu, "slow")
        press(menu, "\r", "\x1b")
        asyncio.get_running_loop().call_later(0.1, gate.set)
        result = await menu.show()
        assert menu._execution_task.done()
        return result

    assert run(scenario())["action"] == "cancelled"
    data = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert [(r["commandName"], r["status"]) for r in data["records"]] == [("slow", "success")]


def test_cancelled_execution_is_not_recorded(make_menu):
    async def scenario():
        gate = asyncio.Event()
        menu = make_menu(gate=gate)
        await menu.initialize()
        task = menu.start_execution(select(menu, "slow"))
        await asyncio.sleep(0)
        task.cancel()
        await asyncio.wait([task])
        assert task.cancelled()
        assert menu.command_history.get_all() == []
        assert menu.get_state().is_executing is False
        await menu.shutdown()

    run(scenario())


def test_resize_swallows_render_errors(make_menu):
    async def scenario():
        menu = make_menu()
        await menu.initialize()
        menu.is_running = True
        menu.renderer.render = MagicMock(side_effect=RuntimeError("terminal gone"))
        menu._on_resize(getattr(signal, "SIGWINCH", 28))
        menu.renderer.render.assert_called_once()

        menu._holding_feedback = True
        menu._on_resize(getattr(signal, "SIGWINCH", 28))
        menu.renderer.render.assert_called_once()
        menu._holding_feedback = False
        await menu.shutdown()

    run(scenario())

"""
Tests for cmdmenu.ui.glyphs
"""

import io
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from cmdmenu.diagnostics import DiagnosticReport
from cmdmenu.ui.glyphs import GLYPHS, Glyphs, detect_level
from cmdmenu.ui.renderer import FrameBuffer


def test_utf8_console_gets_emoji():
    assert detect_level(Console(file=io.StringIO())) == "emoji"
    assert detect_level(None) == "emoji"


def test_non_utf_encoding_gets_ascii():
    assert detect_level(Console(file=FrameBuffer("ascii"))) == "ascii"
    assert detect_level(Console(file=FrameBuffer("cp437"))) == "ascii"
    assert detect_level(Console(file=FrameBuffer("UTF-8"))) == "emoji"


def test_legacy_windows_gets_ascii():
    assert detect_level(Console(file=io.StringIO(), legacy_windows=True)) == "ascii"


def test_linux_console_has_no_emoji(monkeypatch):
    monkeypatch.setenv("TERM", "linux")
    assert detect_level(Console(file=io.StringIO())) == "unicode"


def test_console_without_real_attributes():
    assert detect_level(MagicMock()) == "emoji"


def test_fallback_chain():
    emoji, unicode, ascii_ = Glyphs(level="emoji"), Glyphs(level="unicode"), Glyphs(level="ascii")
    assert emoji.get("executing") == "⏳"
    assert unicode.get("executing") == "…"
    assert ascii_.get("executing") == "*"
    # no emoji variant, so emoji falls through to unicode
    assert emoji.get("pointer") == unicode.get("pointer") == "❯"
    assert ascii_.get("pointer") == ">"
    assert ascii_.get("nonexistent") == ""


def test_every_glyph_has_an_ascii_form():
    ascii_ = Glyphs(level="ascii")
    for name in GLYPHS:
        assert ascii_.get(name).isascii(), name


def test_icon_degradation():
    assert Glyphs(level="emoji").icon("🚪") == "🚪"
    assert Glyphs(level="unicode").icon("🚪") == "×"
    assert Glyphs(level="ascii").icon("🚪") == "x"
    assert Glyphs(level="ascii").icon("⚙️") == "*"
    # unknown icons survive only when plain ASCII
    assert Glyphs(level="ascii").icon("🔨") == ""
    assert Glyphs(level="unicode").icon("🔨") == ""
    assert Glyphs(level="ascii").icon("[B]") == "[B]"
    assert Glyphs(level="ascii").icon(None) == ""


def test_key_label():
    assert Glyphs(level="ascii").key_label("↑↓") == "^v"
    assert Glyphs(level="ascii").key_label("←→ move") == "<> move"
    assert Glyphs(level="unicode").key_label("↑↓") == "↑↓"


def test_capability_flags():
    assert Glyphs(level="emoji").supports_emoji
    assert Glyphs(level="unicode").supports_unicode
    assert not Glyphs(level="unicode").supports_emoji
    assert not Glyphs(level="ascii").supports_unicode


def test_unknown_level_rejected():
    with pytest.raises(ValueError):
        Glyphs(level="braille")


def test_diagnostics_reports_symbol_level():
    report = DiagnosticReport(Console(file=FrameBuffer("ascii"), width=80))
    terminal = report._check_terminal()
    assert terminal["glyphs"] == "ascii"
    assert any("ASCII symbols" in warning for warning in report.warnings)

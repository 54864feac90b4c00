"""Shared fixtures: keep every test away from the real ~/.cmdmenu"""

import os
import tempfile

import pytest

# must happen before cmdmenu.logger creates its singleton
os.environ.setdefault("CMDMENU_HOME", tempfile.mkdtemp(prefix="cmdmenu-tests-"))

PREFERENCE_ENV_VARS = (
    "CMDMENU_THEME", "CMDMENU_ANIMATIONS_ENABLED", "CMDMENU_ANIMATION_SPEED", "CMDMENU_ICONS_ENABLED",
    "CMDMENU_SHOW_DESCRIPTIONS", "CMDMENU_SHOW_PREVIEWS", "CMDMENU_HISTORY_SIZE",
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point the data directory at a fresh temp dir and drop environment overrides"""
    monkeypatch.setenv("CMDMENU_HOME", str(tmp_path / "home"))
    for var in PREFERENCE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    # the Linux console TERM would turn off emoji icons
    monkeypatch.delenv("TERM", raising=False)
    return tmp_path / "home"

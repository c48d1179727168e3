"""Pytest configuration and shared fixtures for discord-term tests."""

import json

import pytest

from discord_term.core.controller import SessionController
from discord_term.core.options import AppOptions
from tests.harness import (
    OCEAN_THEME,
    FakeSurface,
    FakeTransport,
    ManualScheduler,
    make_guild,
    make_user,
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the real token, config dir and log dir."""
    monkeypatch.delenv("TOKEN", raising=False)
    for name in (
        "DISCORD_TERM_STATE_FILE",
        "DISCORD_TERM_THEMES_DIR",
        "DISCORD_TERM_PREFIX",
        "DISCORD_TERM_LOG_FILE",
        "DISCORD_TERM_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("DISCORD_TERM_LOG_DIR", str(tmp_path / "logs"))


# ---------------------------------------------------------------------------
# Theme catalog
# ---------------------------------------------------------------------------


@pytest.fixture
def themes_dir(tmp_path):
    """Catalog with one valid theme (ocean) and one unparsable one (broken)."""
    directory = tmp_path / "themes"
    directory.mkdir()
    (directory / "ocean.json").write_text(json.dumps(OCEAN_THEME, indent=2))
    (directory / "broken.json").write_text("{ not json")
    return directory


@pytest.fixture
def options(tmp_path, themes_dir):
    return AppOptions(state_file_path=tmp_path / "state.json", themes_dir=themes_dir)


# ---------------------------------------------------------------------------
# Controller wiring
# ---------------------------------------------------------------------------

@pytest.fixture
def me():
    return make_user("100", "me#0001")


@pytest.fixture
def guild():
    return make_guild()


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def transport(me, guild):
    return FakeTransport(user=me, guilds=[guild], users=[make_user("200", "bob#0002")])


@pytest.fixture
def controller(transport, surface, options, scheduler):
    """Controller on fakes, not yet set up or logged in."""
    return SessionController(transport, surface, options, scheduler=scheduler, clipboard=lambda: "")


@pytest.fixture
def ready_controller(controller, surface):
    """Controller after a successful ready event, with #general active."""
    controller.handle_ready()
    surface.lines.clear()
    return controller

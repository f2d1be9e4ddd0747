"""Shared test fixtures."""

from __future__ import annotations

import pytest

import deskclean.core.tracker as tracker
from deskclean.settings import Settings


@pytest.fixture(autouse=True)
def isolate_runtime_dir(tmp_path, monkeypatch):
    """Keep sweep lock files out of the real runtime directory."""
    runtime = tmp_path / "runtime"
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(runtime))
    return runtime


@pytest.fixture
def isolate_storage(tmp_path, monkeypatch):
    """Redirect sweep history to a temp directory."""
    data_dir = tmp_path / "deskclean_data"
    data_dir.mkdir()
    history_file = data_dir / "history.json"
    monkeypatch.setattr(tracker, "HISTORY_FILE", history_file)
    monkeypatch.setattr(tracker, "_DATA_DIR", data_dir)
    return history_file


@pytest.fixture
def isolate_settings(tmp_path, monkeypatch):
    """Point the settings singleton at a temp file with temp source/home dirs."""
    home = tmp_path / "home"
    desktop = home / "Desktop"
    desktop.mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("XDG_DESKTOP_DIR", raising=False)

    settings = Settings(tmp_path / "config" / "deskclean" / "settings.json")
    settings.set("home_dir", str(home))
    settings.set("source_path", str(desktop))
    monkeypatch.setattr(Settings, "_instance", settings)
    return settings


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def target(tmp_path):
    return tmp_path / "archive" / "2026-10-19-Archive"

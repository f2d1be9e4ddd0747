"""Tests for the settings store."""

from __future__ import annotations

import json

import pytest

from deskclean.settings import ConfigError, Settings, default_settings
from deskclean.utils import xdg_desktop_dir


@pytest.fixture
def settings(tmp_path):
    return Settings(tmp_path / "settings.json")


class TestSettings:
    def test_defaults_apply_for_missing_keys(self, settings):
        assert settings.get("run_interval") == "every hour"
        assert settings.get("target_folder_label") == "Archive"
        assert settings.get("app_folder") == "DeskClean"

    def test_explicit_default_wins(self, settings):
        assert settings.get("nope", "fallback") == "fallback"

    def test_set_persists(self, settings, tmp_path):
        settings.set("run_interval", "every 5 minutes")

        data = json.loads((tmp_path / "settings.json").read_text())
        assert data["run_interval"] == "every 5 minutes"
        assert Settings(tmp_path / "settings.json").get("run_interval") == "every 5 minutes"

    def test_dot_notation(self, settings):
        settings.set("window.width", 400)
        assert settings.get("window.width") == 400
        assert settings.get("window") == {"width": 400}

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        assert Settings(path).get("run_interval") == "every hour"

    def test_reset(self, settings):
        settings.set("target_folder_label", "Old")
        settings.reset()
        assert settings.get("target_folder_label") == "Archive"


class TestSetOption:
    def test_valid_interval(self, settings):
        settings.set_option("run_interval", "on demand")
        assert settings.get("run_interval") == "on demand"

    def test_invalid_interval(self, settings):
        with pytest.raises(ConfigError, match="Invalid value"):
            settings.set_option("run_interval", "every fortnight")

    def test_invalid_date_scheme(self, settings):
        with pytest.raises(ConfigError):
            settings.set_option("target_folder_date_scheme", "2006-01-02")

    def test_unknown_key(self, settings):
        with pytest.raises(ConfigError, match="Unknown setting"):
            settings.set_option("colour", "blue")

    def test_empty_label_rejected(self, settings):
        with pytest.raises(ConfigError):
            settings.set_option("target_folder_label", "  ")

    def test_empty_separator_allowed(self, settings):
        settings.set_option("target_folder_separator", "")
        assert settings.get("target_folder_separator") == ""


class TestListeners:
    def test_listener_called_on_change(self, settings):
        calls = []
        settings.subscribe("run_interval", lambda key, value: calls.append((key, value)))

        settings.set_option("run_interval", "every 15 minutes")

        assert calls == [("run_interval", "every 15 minutes")]

    def test_listener_not_called_when_unchanged(self, settings):
        calls = []
        settings.subscribe("run_interval", lambda key, value: calls.append(value))

        settings.set("run_interval", "every hour")

        assert calls == []

    def test_unsubscribe(self, settings):
        calls = []
        listener = lambda key, value: calls.append(value)  # noqa: E731
        settings.subscribe("run_interval", listener)
        settings.unsubscribe("run_interval", listener)

        settings.set("run_interval", "every minute")

        assert calls == []

    def test_failing_listener_does_not_block_others(self, settings):
        calls = []

        def broken(key, value):
            raise RuntimeError("boom")

        settings.subscribe("run_interval", broken)
        settings.subscribe("run_interval", lambda key, value: calls.append(value))

        settings.set("run_interval", "every minute")

        assert calls == ["every minute"]

    def test_reset_notifies_changed_keys(self, settings):
        calls = []
        settings.set("run_interval", "on demand")
        settings.subscribe("run_interval", lambda key, value: calls.append(value))

        settings.reset()

        assert calls == ["every hour"]


class TestReload:
    def test_unchanged_file_is_not_reread(self, settings):
        settings.set("run_interval", "every 5 minutes")
        assert settings.reload() is False

    def test_picks_up_write_from_another_instance(self, settings, tmp_path):
        seen = []
        settings.subscribe("run_interval", lambda key, value: seen.append(value))

        Settings(tmp_path / "settings.json").set_option("run_interval", "every 15 minutes")

        assert settings.reload() is True
        assert settings.get("run_interval") == "every 15 minutes"
        assert seen == ["every 15 minutes"]

    def test_only_changed_keys_notify(self, settings, tmp_path):
        seen = []
        settings.subscribe("run_interval", lambda key, value: seen.append(key))
        settings.subscribe("target_folder_label", lambda key, value: seen.append(key))

        Settings(tmp_path / "settings.json").set_option("target_folder_label", "Desk")
        settings.reload()

        assert seen == ["target_folder_label"]

    def test_deleted_file_reverts_to_defaults(self, settings, tmp_path):
        settings.set("run_interval", "every 5 minutes")
        (tmp_path / "settings.json").unlink()

        assert settings.reload() is True
        assert settings.get("run_interval") == "every hour"

    def test_save_leaves_no_temp_file(self, settings, tmp_path):
        settings.set("run_interval", "every 5 minutes")
        assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]


class TestDesktopDir:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_DESKTOP_DIR", str(tmp_path / "Plocha"))
        assert xdg_desktop_dir() == tmp_path / "Plocha"

    def test_user_dirs_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("XDG_DESKTOP_DIR", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
        (tmp_path / "cfg").mkdir()
        (tmp_path / "cfg" / "user-dirs.dirs").write_text('# comment\nXDG_DESKTOP_DIR="$HOME/Schreibtisch"\n')

        assert xdg_desktop_dir() == tmp_path / "Schreibtisch"

    def test_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("XDG_DESKTOP_DIR", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "missing"))

        assert xdg_desktop_dir() == tmp_path / "Desktop"
        assert default_settings()["source_path"] == str(tmp_path / "Desktop")

"""Tests for TOML configuration loading."""
from pathlib import Path

import pytest

from agendazk.config import Config


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "agendazk.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_all_sections(tmp_path) -> None:
    path = write_config(tmp_path, f"""
[General]
data_dir = "{tmp_path / 'data'}"
timezone = "America/Montreal"
installation_id = "abc123"

[Notifications]
enabled = false
match_tolerance_seconds = 90

[Storage]
backend = "memory"
""")

    config = Config.load(path)

    assert config.data_dir == tmp_path / "data"
    assert config.timezone == "America/Montreal"
    assert config.installation_id == "abc123"
    assert not config.notifications.enabled
    assert config.notifications.match_tolerance_seconds == 90
    assert config.storage.backend == "memory"
    assert config.documents_dir == tmp_path / "data" / "documents"
    assert config.device_file == tmp_path / "data" / "device.json"


def test_missing_sections_use_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "share"))
    config = Config.load(write_config(tmp_path, ""))

    assert config.data_dir == tmp_path / "share" / "agendazk"
    assert config.timezone == "Europe/Paris"
    assert config.notifications.enabled
    assert config.notifications.match_tolerance_seconds == 60
    assert config.storage.backend == "json"


def test_unknown_backend_falls_back_to_json(tmp_path, capsys) -> None:
    config = Config.load(write_config(tmp_path, '[Storage]\nbackend = "postgres"\n'))

    assert config.storage.backend == "json"
    assert "postgres" in capsys.readouterr().err


def test_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        Config.load(tmp_path / "absent.toml")


def test_default_config_path_respects_xdg(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert Config.get_default_config_path() == tmp_path / "agendazk" / "agendazk.toml"

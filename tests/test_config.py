"""Tests for :mod:`faceid.config` and the command line entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from faceid.cli import main
from faceid.config import Settings, load_settings, save_settings
from faceid.exceptions import ConfigError
from faceid.profiles import ProfileStore


def test_missing_file_gives_defaults(tmp_path: Path):
    settings = load_settings(tmp_path / "absent.toml", env={})

    assert settings == Settings()
    assert settings.face_api.person_group_id == "unity"
    assert settings.face_api.confidence_threshold == pytest.approx(0.70)
    assert settings.rosbridge.uri == "ws://192.168.1.166:9090"


def test_file_values_and_int_to_float_coercion(tmp_path: Path):
    path = tmp_path / "faceid.toml"
    path.write_text(
        "[face_api]\nlocation = \"westus\"\nmin_images_for_auth = 3\n\n[training]\npoll_interval = 2\n",
        encoding="utf-8",
    )

    settings = load_settings(path, env={})

    assert settings.face_api.location == "westus"
    assert settings.face_api.min_images_for_auth == 3
    assert settings.training.poll_interval == 2.0
    assert isinstance(settings.training.poll_interval, float)


def test_malformed_toml_raises_config_error(tmp_path: Path):
    path = tmp_path / "faceid.toml"
    path.write_text("[face_api\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(path, env={})


def test_wrong_value_type_raises_config_error(tmp_path: Path):
    path = tmp_path / "faceid.toml"
    path.write_text("[rosbridge]\nport = \"ninety\"\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(path, env={})


def test_environment_overrides(tmp_path: Path):
    settings = load_settings(
        None,
        env={
            "FACEID_API_KEY": "secret",
            "FACEID_STORAGE_ROOT": str(tmp_path),
            "FACEID_ROSBRIDGE_HOST": "localhost",
            "FACEID_ROSBRIDGE_PORT": "9191",
        },
    )

    assert settings.face_api.resolve_access_key() == "secret"
    assert settings.storage.root == str(tmp_path)
    assert settings.rosbridge.uri == "ws://localhost:9191"


def test_bad_port_override_raises(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_settings(None, env={"FACEID_ROSBRIDGE_PORT": "abc"})


def test_access_key_file_is_read(tmp_path: Path):
    key_file = tmp_path / "key.txt"
    key_file.write_text("from-file\n", encoding="utf-8")
    config = tmp_path / "faceid.toml"
    config.write_text(f"[face_api]\naccess_key_file = \"{key_file.as_posix()}\"\n", encoding="utf-8")

    assert load_settings(config, env={}).face_api.resolve_access_key() == "from-file"


def test_saved_settings_load_back(tmp_path: Path):
    path = tmp_path / "nested" / "faceid.toml"
    save_settings(path, Settings())

    assert load_settings(path, env={}) == Settings()


def test_init_config_refuses_to_overwrite(tmp_path: Path):
    path = tmp_path / "faceid.toml"

    assert main(["init-config", str(path)]) == 0
    assert path.exists()
    assert main(["init-config", str(path)]) == 1


def test_profiles_command_lists_store(tmp_path: Path, monkeypatch, capsys):
    root = tmp_path / "profiles"
    ProfileStore(root).create_profile("Ada", "p-ada")
    monkeypatch.setenv("FACEID_STORAGE_ROOT", str(root))

    assert main(["--config", str(tmp_path / "none.toml"), "profiles"]) == 0

    out = capsys.readouterr().out
    assert "Ada\tAda\tp-ada\t0 photo(s)" in out

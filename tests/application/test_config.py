from pathlib import Path

import pytest
from pydantic import ValidationError

from taaltuig.application import config as config_module
from taaltuig.application.config import AppConfig, resolve_config
from taaltuig.application.factory import create_store
from taaltuig.infrastructure.adapters import JsonFileStore, MemoryStore


def test_defaults():
    config = resolve_config()

    assert config.data_file is None
    assert config.user_id == "local"
    assert config.hold_horizon_hours == 24.0
    assert config.port == 8787


def test_env_overrides_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("TAALTUIG_USER_ID", "anna")
    monkeypatch.setenv("TAALTUIG_DATA_FILE", str(tmp_path / "data.json"))

    config = resolve_config()

    assert config.user_id == "anna"
    assert config.data_file == (tmp_path / "data.json").resolve()


def test_toml_file_then_env_then_cli(monkeypatch, tmp_path):
    toml = tmp_path / "config.toml"
    toml.write_text('user_id = "from-file"\nport = 9000\nhold_horizon_hours = 12\n')
    monkeypatch.setattr(config_module, "CONFIG_FILES", [tmp_path / "nope.toml", toml])

    config = resolve_config()
    assert config.user_id == "from-file"
    assert config.port == 9000
    assert config.hold_horizon_hours == 12

    monkeypatch.setenv("TAALTUIG_PORT", "9100")
    assert resolve_config().port == 9100

    config = resolve_config({"port": 9200, "user_id": None})
    assert config.port == 9200
    assert config.user_id == "from-file"


def test_empty_data_file_means_memory():
    assert AppConfig(data_file="").data_file is None


def test_data_file_expands_home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))

    config = AppConfig(data_file="~/cards.json")

    assert config.data_file == (tmp_path / "cards.json").resolve()
    assert isinstance(config.data_file, Path)


def test_invalid_horizon_rejected():
    with pytest.raises(ValidationError):
        AppConfig(hold_horizon_hours=0)


def test_create_store_picks_backend(tmp_path):
    assert type(create_store(AppConfig())) is MemoryStore

    store = create_store(AppConfig(data_file=tmp_path / "data.json"))
    assert isinstance(store, JsonFileStore)
    assert store.path == (tmp_path / "data.json").resolve()

"""Tests for loading and saving the client configuration."""

import json
from pathlib import Path

import pytest

from freemind.config import AppConfig, AuthMethod, load_config, save_config
from freemind.errors import ConfigError


def test_save_then_load_gives_same_config(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "freemind-cli.config"
    config = AppConfig("https://h", "alice", "pw", AuthMethod.PASSWORD)

    save_config(config, path)

    assert load_config(path) == config
    assert json.loads(path.read_text())["auth_method"] == "password"


def test_missing_file_gives_empty_config(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.config")
    assert config.is_empty()
    assert config.needs_setup()


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "bad.config"
    path.write_text("{not json")
    with pytest.raises(ConfigError, match="not valid JSON"):
        load_config(path)


def test_non_object_raises(tmp_path: Path) -> None:
    path = tmp_path / "list.config"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigError, match="JSON object"):
        load_config(path)


def test_missing_key_raises(tmp_path: Path) -> None:
    path = tmp_path / "partial.config"
    path.write_text(json.dumps({"server_address": "https://h"}))
    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_config(path)


def test_auth_method_defaults_to_token_and_ignores_case() -> None:
    base = {"server_address": "https://h", "username": "u", "secret": "s"}
    assert AppConfig.from_dict(base).auth_method is AuthMethod.TOKEN
    assert AppConfig.from_dict({**base, "auth_method": "Password"}).auth_method is AuthMethod.PASSWORD
    with pytest.raises(ConfigError):
        AppConfig.from_dict({**base, "auth_method": "kerberos"})


def test_placeholder_config_needs_setup() -> None:
    assert AppConfig.default().needs_setup()
    assert not AppConfig("https://h", "u", "s").needs_setup()


def test_str_masks_secret() -> None:
    text = str(AppConfig("https://h", "alice", "hunter2", AuthMethod.PASSWORD))
    assert "hunter2" not in text
    assert "Secret: *******" in text
    assert "Auth Method: Password" in text

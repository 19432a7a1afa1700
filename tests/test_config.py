import dataclasses
import os
from unittest import mock

import pytest

from client import config as client_config
from server import config as server_config
from shared import settings as shared_settings
from shared.protocol import constants


@pytest.fixture(autouse=True)
def isolated_config():
    saved_settings = dataclasses.replace(shared_settings.SETTINGS)
    saved_client = client_config.CLIENT_CONFIG.copy()
    saved_server = server_config.SERVER_CONFIG.copy()
    with mock.patch.dict(os.environ):
        for key in list(os.environ):
            if key.startswith(("BRIDGE_", "CLIENT_", "SERVER_")):
                del os.environ[key]
        yield
    for field in dataclasses.fields(saved_settings):
        setattr(shared_settings.SETTINGS, field.name, getattr(saved_settings, field.name))
    client_config.CLIENT_CONFIG.clear()
    client_config.CLIENT_CONFIG.update(saved_client)
    server_config.SERVER_CONFIG.clear()
    server_config.SERVER_CONFIG.update(saved_server)


def test_client_defaults(tmp_path):
    config = client_config.load_config(str(tmp_path / "missing.env"))
    assert config["server_port"] == constants.DEFAULT_PORT
    assert config["reconnect_backoff"] == 0.5
    assert config["max_reconnect_backoff"] == 10.0
    assert config["chunk_size"] == 256 * 1024


def test_client_env_overrides_are_coerced(tmp_path):
    os.environ["CLIENT_SERVER_PORT"] = "9700"
    os.environ["CLIENT_HEARTBEAT_INTERVAL"] = "5"
    config = client_config.load_config(str(tmp_path / "missing.env"))
    assert config["server_port"] == 9700
    assert config["heartbeat_interval"] == 5.0
    assert client_config.get("server_port") == 9700


def test_shared_bridge_settings_feed_client(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("BRIDGE_PORT=9811\nBRIDGE_HOST=0.0.0.0\n")
    config = client_config.load_config(str(env_file))
    assert config["server_host"] == "0.0.0.0"
    assert config["server_port"] == 9811


@pytest.mark.parametrize(
    "key, value",
    [
        ("CLIENT_SERVER_PORT", "70000"),
        ("CLIENT_SERVER_PORT", "not-a-port"),
        ("CLIENT_CHUNK_SIZE", "0"),
        ("CLIENT_CHUNK_SIZE", "600000"),
        ("CLIENT_MAX_RECONNECT_BACKOFF", "0.1"),
    ],
)
def test_client_rejects_bad_values(tmp_path, key, value):
    os.environ[key] = value
    with pytest.raises(client_config.ConfigError):
        client_config.load_config(str(tmp_path / "missing.env"))


def test_server_env_overrides(tmp_path):
    os.environ["BRIDGE_PORT"] = "9900"
    os.environ["SERVER_REQUEST_TIMEOUT"] = "12.5"
    os.environ["SERVER_HEARTBEAT_GRACE"] = "3"
    config = server_config.load_server_config(str(tmp_path / "missing.env"))
    assert config["port"] == 9900
    assert config["request_timeout"] == 12.5
    assert config["heartbeat_grace"] == 3.0
    assert config["ping_interval"] == constants.SERVER_PING_INTERVAL

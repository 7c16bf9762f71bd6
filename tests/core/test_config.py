from __future__ import annotations

import pytest
from sqlalchemy.engine import make_url

from telemetry_server.core import config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SERVER_ADDRESS", "DATABASE_URL", "LOG_LEVEL", "LOG_FILE", "RELOAD", config.CONFIG_PATH_ENV):
        monkeypatch.delenv(name, raising=False)
    config.load_settings.cache_clear()
    yield
    config.load_settings.cache_clear()


def test_defaults_when_environment_is_empty():
    settings = config.load_settings()

    assert settings.server_address == "0.0.0.0:8080"
    assert settings.database_url == "sqlite:////data/telemetry.db"
    assert settings.host == "0.0.0.0"
    assert settings.port == 8080
    assert settings.reload is False


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("SERVER_ADDRESS", "127.0.0.1:9000")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp/other.db")
    monkeypatch.setenv("RELOAD", "true")

    settings = config.load_settings()

    assert settings.host == "127.0.0.1"
    assert settings.port == 9000
    assert settings.database_url == "sqlite:///tmp/other.db"
    assert settings.reload is True


def test_yaml_file_is_overridden_by_environment(monkeypatch, tmp_path):
    config_file = tmp_path / "telemetry.yaml"
    config_file.write_text(
        "server_address: '10.0.0.5:7000'\ndatabase_url: 'sqlite:///from-file.db'\n"
    )
    monkeypatch.setenv(config.CONFIG_PATH_ENV, str(config_file))
    monkeypatch.setenv("DATABASE_URL", "sqlite:///from-env.db")

    settings = config.load_settings()

    assert settings.server_address == "10.0.0.5:7000"
    assert settings.database_url == "sqlite:///from-env.db"


def test_yaml_file_must_be_a_mapping(tmp_path):
    config_file = tmp_path / "telemetry.yaml"
    config_file.write_text("- not\n- a mapping\n")

    with pytest.raises(ValueError):
        config.load_settings(config_file)


@pytest.mark.parametrize("address", ["localhost", "localhost:http", ""])
def test_invalid_server_address_is_rejected(address):
    settings = config.Settings(server_address=address)

    with pytest.raises(ValueError):
        _ = settings.port


def test_address_without_host_binds_all_interfaces():
    assert config.Settings(server_address=":8081").host == "0.0.0.0"


def test_default_database_url_resolves_to_absolute_data_volume():
    url = make_url(config.load_settings().database_url)

    assert url.get_backend_name() == "sqlite"
    assert url.database == "/data/telemetry.db"

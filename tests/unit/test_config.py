"""Unit tests for settings loading."""

from pathlib import Path

import pytest

from frontgate.config import DEFAULT_BACKEND_URL, Settings, load_settings
from frontgate.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PORT", "HOST", "BACKEND_URL", "STATIC_DIR", "PROXY_READ_TIMEOUT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings(_env_file=None)

    assert settings.PORT == 8080
    assert settings.BACKEND_URL == DEFAULT_BACKEND_URL
    assert settings.STATIC_DIR == Path("build")
    assert settings.PROXY_CONNECT_TIMEOUT == 10.0
    assert settings.PROXY_READ_TIMEOUT is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("BACKEND_URL", "http://localhost:8000/")
    monkeypatch.setenv("PROXY_READ_TIMEOUT", "30")

    settings = load_settings(_env_file=None)

    assert settings.PORT == 9090
    assert settings.BACKEND_URL == "http://localhost:8000"
    assert settings.PROXY_READ_TIMEOUT == 30.0


def test_empty_read_timeout_means_none(monkeypatch):
    monkeypatch.setenv("PROXY_READ_TIMEOUT", "")
    assert load_settings(_env_file=None).PROXY_READ_TIMEOUT is None


@pytest.mark.parametrize(
    "backend_url, ws_url",
    [
        ("https://api.example.com", "wss://api.example.com"),
        ("http://localhost:8000", "ws://localhost:8000"),
    ],
)
def test_ws_backend_url_swaps_scheme(backend_url, ws_url):
    settings = Settings(_env_file=None, BACKEND_URL=backend_url)
    assert settings.ws_backend_url == ws_url


def test_backend_host_includes_port():
    settings = Settings(_env_file=None, BACKEND_URL="http://localhost:8000")
    assert settings.backend_host == "localhost:8000"


def test_invalid_port(monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")

    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(_env_file=None)

    assert exc_info.value.setting == "PORT"


def test_port_out_of_range():
    with pytest.raises(ConfigurationError):
        load_settings(_env_file=None, PORT=70000)


@pytest.mark.parametrize("url", ["ftp://backend.test", "backend.test", "http://"])
def test_invalid_backend_url(url):
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(_env_file=None, BACKEND_URL=url)

    assert exc_info.value.setting == "BACKEND_URL"

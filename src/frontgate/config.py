"""Configuration for the frontgate edge process."""

from functools import cached_property
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError


DEFAULT_BACKEND_URL = "https://content-generator-backend-969486604732.us-central1.run.app"


class Settings(BaseSettings):
    """Process-wide settings, fixed at startup."""

    # Listener
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Backend origin for /api and /ws
    BACKEND_URL: str = DEFAULT_BACKEND_URL

    # Built single-page application (must contain index.html)
    STATIC_DIR: Path = Path("build")

    # Upstream timeouts in seconds; no read timeout unless set
    PROXY_CONNECT_TIMEOUT: float = 10.0
    PROXY_READ_TIMEOUT: Optional[float] = None

    # Largest WebSocket frame relayed in either direction
    WS_MAX_MESSAGE_SIZE: int = 16 * 1024 * 1024

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("BACKEND_URL")
    @classmethod
    def _check_backend_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https"):
            raise ValueError("scheme must be http or https")
        if not parts.netloc:
            raise ValueError("missing host")
        return value

    @field_validator("PORT")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError("port out of range")
        return value

    @field_validator("PROXY_READ_TIMEOUT", mode="before")
    @classmethod
    def _empty_means_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @cached_property
    def ws_backend_url(self) -> str:
        """BACKEND_URL with the scheme swapped to ws/wss."""
        return self.BACKEND_URL.replace("https://", "wss://", 1).replace("http://", "ws://", 1)

    @cached_property
    def backend_host(self) -> str:
        """host[:port] of the backend, sent as the outbound Host header."""
        return urlsplit(self.BACKEND_URL).netloc

    @property
    def index_file(self) -> Path:
        return self.STATIC_DIR / "index.html"


def load_settings(**overrides) -> Settings:
    """Read settings from the environment, raising ConfigurationError on bad values."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        error = e.errors()[0]
        setting = ".".join(str(part) for part in error.get("loc", ())) or "settings"
        raise ConfigurationError(setting, error.get("msg", str(e))) from e

"""
Exception hierarchy for the frontgate edge process.

All custom exceptions inherit from FrontgateException so the app can turn
them into HTTP responses in one place.
"""

from typing import Any


class FrontgateException(Exception):
    """
    Base exception for all frontgate errors.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status returned to the client
        context: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        context: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ConfigurationError(FrontgateException):
    """Startup configuration is invalid."""

    def __init__(self, setting: str, reason: str):
        super().__init__(
            f"Invalid setting {setting}: {reason}",
            context={"setting": setting},
        )
        self.setting = setting


# ============================================================================
# Upstream Exceptions
# ============================================================================

class UpstreamException(FrontgateException):
    """Base class for failures talking to the backend origin."""

    def __init__(self, message: str, url: str, status_code: int):
        super().__init__(message, status_code=status_code, context={"url": url})
        self.url = url


class UpstreamUnavailableError(UpstreamException):
    """Backend could not be reached or broke the protocol."""

    def __init__(self, url: str, original_error: Exception):
        super().__init__(f"Backend unavailable: {url}", url, status_code=502)
        self.original_error = original_error


class UpstreamTimeoutError(UpstreamException):
    """Backend did not answer in time."""

    def __init__(self, url: str, original_error: Exception):
        super().__init__(f"Backend timed out: {url}", url, status_code=504)
        self.original_error = original_error

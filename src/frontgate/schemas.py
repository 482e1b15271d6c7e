"""Pydantic schemas for the gateway's own responses."""

from pydantic import BaseModel

from . import __version__


class HealthResponse(BaseModel):
    """Schema for the liveness check."""
    status: str = "ok"
    version: str = __version__
    backend: str


class ErrorResponse(BaseModel):
    """Schema for gateway-generated errors."""
    detail: str

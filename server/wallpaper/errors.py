"""Failure types raised by the endpoint adapters and the orchestrator."""
from __future__ import annotations

from typing import Optional


class WallpaperError(Exception):
    """Base class for failures the orchestrator converts into ``last_error``."""

    kind = "error"


class ValidationError(WallpaperError):
    """An operation was asked to run with an empty prompt."""

    kind = "validation"


class EndpointError(WallpaperError):
    """The model endpoint could not be reached or answered with a non-success status."""

    kind = "endpoint"

    def __init__(self, message: str, *, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ResponseShapeError(WallpaperError):
    """The endpoint answered successfully but the payload lacked the expected fields."""

    kind = "response_shape"

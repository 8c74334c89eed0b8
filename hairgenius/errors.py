"""Exceptions raised by the relay service and the generation client."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import status


class RelayError(Exception):
    """Failure that the relay reports to its caller as ``{error, details}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, error: str, details: Optional[str] = None) -> None:
        super().__init__(error)
        self.error = error
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class MissingInputError(RelayError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConfigurationError(RelayError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class RateLimitError(RelayError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class UpstreamError(RelayError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class GenerationError(Exception):
    """A single generation call through the relay failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

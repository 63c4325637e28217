"""Error taxonomy shared by the API and its services.

Every failure that leaves the process is rendered through `error_response`, so
clients always see ``{error, message, code, timestamp, request_id}``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.shared.clock import utc_timestamp


GENERIC_MESSAGE = "An error occurred"

ERROR_INTERNAL = "internal_error"
ERROR_VALIDATION = "validation_error"
ERROR_NOT_FOUND = "not_found"

TITLE_INVALID_REQUEST = "Invalid request"
TITLE_INTERNAL = "Internal server error"
TITLE_NOT_FOUND = "Not found"
TITLE_PAYLOAD_TOO_LARGE = "Payload too large"
TITLE_REQUEST_TIMEOUT = "Request timeout"


@dataclass(frozen=True)
class AppError(Exception):
    code: str
    message: str
    status_code: int = 400
    details: dict[str, Any] | None = None
    title: str = TITLE_INVALID_REQUEST
    # False means the message may leak internals and is masked outside development
    public: bool = True

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


@dataclass(frozen=True)
class ValidationError(AppError):
    """Malformed transform input. Always safe to show."""


@dataclass(frozen=True)
class UpstreamError(AppError):
    """The provider call failed or returned something unusable."""

    status_code: int = 500
    title: str = TITLE_INTERNAL
    public: bool = False


@dataclass(frozen=True)
class NotFoundError(AppError):
    status_code: int = 404
    title: str = TITLE_NOT_FOUND


@dataclass(frozen=True)
class InternalError(AppError):
    status_code: int = 500
    title: str = TITLE_INTERNAL
    public: bool = False


@dataclass(frozen=True)
class PayloadTooLargeError(AppError):
    status_code: int = 413
    title: str = TITLE_PAYLOAD_TOO_LARGE


def visible_message(exc: AppError, *, development: bool) -> str:
    if exc.public or development:
        return exc.message
    return GENERIC_MESSAGE


def error_response(
    *,
    error: str,
    message: str,
    code: str,
    request_id: str | None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": error,
        "message": message,
        "code": code,
        "timestamp": utc_timestamp(),
        "request_id": request_id,
    }
    if details is not None:
        payload["details"] = details
    return payload

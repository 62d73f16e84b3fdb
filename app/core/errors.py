"""Error types raised by the annotation service and its adapters.

Every failure that reaches the HTTP layer is an ``AppError``; the global
handlers turn it into ``{"error": {code, message, request_id, details}}``.
Formula queue failures are logged and never surface here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Optional context attached to an error response."""

    hint: str
    retry_after: int
    limit: int
    window_ms: int
    route: str
    spreadsheet_id: str
    http_status: int


@dataclass
class AppError(Exception):
    """Base for failures rendered as a JSON error body.

    Attributes:
        code: Machine-readable error code (``rate_limit_exceeded``, ...).
        message: Text shown to the caller.
        details: Extra context, omitted from the body when empty.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Bad request payload or misconfigured adapter."""


class AuthenticationAppError(AppError):
    """Unknown API key, or an annotator acting on someone else's row."""


class SheetsAppError(AppError):
    """The spreadsheet store rejected or failed a request."""


class RateLimitExceededError(AppError):
    """Caller exceeded the admission window of a route.

    ``details["retry_after"]`` holds the whole seconds to wait.
    """

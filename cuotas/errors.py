"""Domain exception classes.

Every error carries a machine-readable code and the HTTP status the API layer
answers with, so services can raise them without knowing about FastAPI.
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    http_status = 500
    default_code = "internal_error"

    def __init__(self, message: str, code: str | None = None, **context: Any):
        self.message = message
        self.code = code or self.default_code
        self.context = context
        super().__init__(message)


class ValidationError(AppError):
    """Bad input shape or range."""

    http_status = 400
    default_code = "validation_error"


class NotFoundError(AppError):
    """Concept, due, worker or payment does not exist."""

    http_status = 404
    default_code = "not_found"


class ConflictError(AppError):
    """Duplicate key, already paid, or an immutable record."""

    http_status = 409
    default_code = "conflict"


class UpstreamError(AppError):
    """Roster, payment or email provider failed."""

    http_status = 502
    default_code = "upstream_error"


class InternalError(AppError):
    """Unexpected failure."""

    http_status = 500
    default_code = "internal_error"


class ReportRenderError(InternalError):
    """PDF or spreadsheet rendering failed."""

    default_code = "report_render_error"


__all__ = [
    "AppError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "UpstreamError",
    "InternalError",
    "ReportRenderError",
]

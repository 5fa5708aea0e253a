"""Domain error taxonomy mapped onto HTTP status codes at the API boundary."""

from __future__ import annotations

from fastapi import status


class CatalogError(Exception):
    """Base class for failures surfaced to API clients as ``{message, error}``."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error: str | None = None):
        self.message = message
        self.error = error
        super().__init__(message)

    def to_body(self) -> dict[str, str]:
        body = {"message": self.message}
        if self.error is not None:
            body["error"] = self.error
        return body


class ValidationError(CatalogError):
    """Missing or invalid input."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(CatalogError):
    """Missing or incorrect admin secret."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(CatalogError):
    """No product row for the requested id."""

    status_code = status.HTTP_404_NOT_FOUND


class UpstreamError(CatalogError):
    """Object storage or relational store call failed."""


class InternalError(CatalogError):
    """Unexpected condition, e.g. storage returned no public URL."""

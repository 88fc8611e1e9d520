"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    """Use-case level error with stable code and HTTP mapping."""

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class AuthenticationError(DomainError):
    """Missing, invalid or expired credential or token."""

    code: str = "AUTHENTICATION_REQUIRED"
    http_status: int = 401
    message: str = "Authentication required"
    details: dict[str, Any] | None = None


@dataclass(eq=False)
class AuthorizationError(DomainError):
    """Role or ownership check failed."""

    code: str = "ACCESS_DENIED"
    http_status: int = 403
    message: str = "Access denied"
    details: dict[str, Any] | None = None


@dataclass(eq=False)
class ValidationError(DomainError):
    """Input rejected before (or instead of) any persistence."""

    code: str = "VALIDATION_FAILED"
    http_status: int = 400
    message: str = "Validation failed"
    details: dict[str, Any] | None = None


@dataclass(eq=False)
class BackendError(DomainError):
    """Persistence failure reported by the active backend."""

    code: str = "BACKEND_FAILURE"
    http_status: int = 500
    message: str = "Operation failed"
    details: dict[str, Any] | None = None


@dataclass(eq=False)
class NotFoundError(BackendError):
    code: str = "NOT_FOUND"
    http_status: int = 404
    message: str = "Not found"
    details: dict[str, Any] | None = None


def error_for_status(
    http_status: int,
    *,
    message: str | None = None,
    code: str | None = None,
    details: dict[str, Any] | None = None,
) -> DomainError:
    """Map an HTTP status (as reported by a remote backend) onto the error taxonomy."""
    if http_status == 401:
        cls: type[DomainError] = AuthenticationError
    elif http_status == 403:
        cls = AuthorizationError
    elif http_status == 404:
        cls = NotFoundError
    elif http_status in (400, 422):
        cls = ValidationError
    else:
        cls = BackendError

    kwargs: dict[str, Any] = {"http_status": http_status, "details": details}
    if message:
        kwargs["message"] = message
    if code:
        kwargs["code"] = code
    return cls(**kwargs)

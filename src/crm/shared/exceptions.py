"""
Shared application exceptions.

Every error raised by the contact pipeline is an AppError carrying a stable
machine-readable code; the HTTP layer maps each subclass to a status code.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    default_message = "Application error"
    default_code = "ERR_APP"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(AppError):
    """Malformed input (missing name, non-digit number, bad email...)."""

    default_message = "Validation error"
    default_code = "ERR_VALIDATION"


class NotFoundError(AppError):
    """Tenant-scoped resource does not exist."""

    default_message = "Resource not found"
    default_code = "ERR_NOT_FOUND"


class InvalidContactError(AppError):
    """Number rejected by the tenant's acceptability rules."""

    default_message = "Contact number is not acceptable"
    default_code = "ERR_WAPP_INVALID_CONTACT"


class UnreachableNumberError(AppError):
    """Number could not be resolved on the messaging network."""

    default_message = "Number is not reachable on the messaging network"
    default_code = "ERR_CHECK_NUMBER"

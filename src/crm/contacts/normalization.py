"""
Phone number normalization and pure format checks for contact input.

The checks never raise: each returns a FieldError describing the first
problem found, or None when the value is acceptable.
"""

import re
from dataclasses import dataclass
from typing import Any

from email_validator import EmailNotValidError, validate_email

# Formatting characters users type between digit groups
_SEPARATORS = re.compile(r"[\s\-]+")
# ASCII digits only
DIGITS_ONLY = re.compile(r"^[0-9]+$")

# Column sizes of the contacts table
NAME_MAX_LENGTH = 255
NUMBER_MAX_LENGTH = 50

INVALID_NUMBER_MESSAGE = "Invalid number format. Only numbers are allowed."


@dataclass(frozen=True)
class FieldError:
    """A single input field that failed its format check."""

    field: str
    message: str
    value: str | None = None


def normalize_number(raw: Any) -> str:
    """Strip whitespace and hyphens from a raw phone number.

    Non-string input (spreadsheet cells) is converted with str() first. The
    result is not guaranteed to be digits only; see check_number().
    """
    if raw is None:
        return ""
    return _SEPARATORS.sub("", str(raw))


def check_name(name: str | None) -> FieldError | None:
    if name is None or not name.strip():
        return FieldError(field="name", message="name is a required field")
    if len(name.strip()) > NAME_MAX_LENGTH:
        return FieldError(
            field="name",
            message=f"name must be at most {NAME_MAX_LENGTH} characters",
            value=name,
        )
    return None


def check_number(number: str | None) -> FieldError | None:
    """Check an already-normalized number is a non-empty digit string."""
    if not number:
        return FieldError(field="number", message="number is a required field")
    if not DIGITS_ONLY.match(number):
        return FieldError(field="number", message=INVALID_NUMBER_MESSAGE, value=number)
    if len(number) > NUMBER_MAX_LENGTH:
        return FieldError(
            field="number",
            message=f"number must be at most {NUMBER_MAX_LENGTH} digits",
            value=number,
        )
    return None


def check_email(email: str | None) -> FieldError | None:
    """Check an optional email address; empty means not provided."""
    if email is None or not email.strip():
        return None
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        return FieldError(field="email", message=f"email must be a valid email: {e}", value=email)
    return None


def check_contact_fields(
    name: str | None,
    number: str | None,
    email: str | None = None,
) -> FieldError | None:
    """Run the create-time checks in order and return the first failure."""
    return check_name(name) or check_number(number) or check_email(email)

"""
Messaging network identity resolver interface.

The resolver asks the messaging network whether a number is registered and
returns the canonical routable identifier (jid) the network uses for it.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

_NON_DIGITS = re.compile(r"[^0-9]")


@dataclass(frozen=True)
class CanonicalIdentity:
    """Identity of a number as known by the messaging network."""

    jid: str
    exists: bool = True
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def number(self) -> str:
        """Digits of the jid; the value stored as a contact's number."""
        user = self.jid.split("@", 1)[0]
        # Multi-device jids carry a ":device" suffix on the user part
        user = user.split(":", 1)[0]
        return _NON_DIGITS.sub("", user)


class IdentityLookupError(Exception):
    """Base exception for identity resolver failures."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider_response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.provider_response = provider_response or {}


class NumberNotRegisteredError(IdentityLookupError):
    """The network answered, but the number has no account on it."""


class IdentityResolver(ABC):
    """Abstract interface for messaging network identity lookups."""

    @abstractmethod
    async def check_number(self, number: str, company_id: int) -> CanonicalIdentity:
        """Resolve a digit string to its canonical identity.

        Raises:
            NumberNotRegisteredError: number is unknown to the network.
            IdentityLookupError: the lookup itself failed.
        """
        ...

    @abstractmethod
    async def get_profile_pic_url(self, jid: str, company_id: int) -> str:
        """Return the profile picture URL of a jid, or an empty string."""
        ...

    async def aclose(self) -> None:
        """Release network resources held by the resolver."""
        return None

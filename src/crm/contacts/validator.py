"""
Two-stage contact number validation.

check_is_valid_contact() applies the company's local acceptability rules and
never touches the network. check_contact_number() then asks the messaging
network for the canonical identity of the number; its digits, not the
caller's input, become the stored number.
"""

import asyncio
from typing import Protocol

from crm.contacts.normalization import DIGITS_ONLY
from crm.messaging.interface import (
    CanonicalIdentity,
    IdentityLookupError,
    IdentityResolver,
    NumberNotRegisteredError,
)
from crm.shared.exceptions import InvalidContactError, UnreachableNumberError
from crm.shared.logging import get_logger

logger = get_logger(__name__)


class BlocklistChecker(Protocol):
    async def is_blocked(self, company_id: int, number: str) -> bool: ...


class ContactValidator:
    """Validates and resolves contact numbers for one request or batch."""

    def __init__(
        self,
        resolver: IdentityResolver,
        blocklist: BlocklistChecker | None = None,
        min_number_length: int = 8,
    ) -> None:
        self._resolver = resolver
        self._blocklist = blocklist
        self._min_number_length = min_number_length
        # The blocklist shares the request session, which allows one query at a time
        self._blocklist_lock = asyncio.Lock()

    async def check_is_valid_contact(self, number: str, company_id: int) -> None:
        """Reject numbers the company does not accept.

        Raises:
            InvalidContactError: number is malformed, too short, or blocked.
        """
        if not number or not DIGITS_ONLY.match(number):
            raise InvalidContactError(
                f"Invalid contact number: {number!r}",
                details={"reason": "malformed"},
            )

        if len(number) < self._min_number_length:
            raise InvalidContactError(
                f"Contact number is too short: {number}",
                details={"reason": "too_short", "min_length": self._min_number_length},
            )

        if self._blocklist is not None and await self._is_blocked(company_id, number):
            logger.info(
                "Rejected blocked number",
                extra={"company_id": company_id, "number": number},
            )
            raise InvalidContactError(
                f"Contact number is blocked: {number}",
                details={"reason": "blocked"},
            )

    async def _is_blocked(self, company_id: int, number: str) -> bool:
        async with self._blocklist_lock:
            return await self._blocklist.is_blocked(company_id, number)  # type: ignore[union-attr]

    async def check_contact_number(self, number: str, company_id: int) -> CanonicalIdentity:
        """Resolve a number on the messaging network.

        Raises:
            UnreachableNumberError: number is unknown to the network or the
                lookup failed. Failures are not retried.
        """
        try:
            identity = await self._resolver.check_number(number, company_id)
        except NumberNotRegisteredError as e:
            raise UnreachableNumberError(
                f"Number {number} is not registered on the messaging network",
                details={"provider_code": e.error_code},
            ) from e
        except IdentityLookupError as e:
            logger.warning(
                "Number lookup failed",
                extra={
                    "company_id": company_id,
                    "number": number,
                    "error_code": e.error_code,
                    "error": str(e),
                },
            )
            raise UnreachableNumberError(
                f"Could not verify number {number}: {e}",
                details={"provider_code": e.error_code},
            ) from e

        if not identity.exists or not identity.number:
            raise UnreachableNumberError(
                f"Number {number} is not registered on the messaging network",
                details={"jid": identity.jid},
            )

        return identity

    async def resolve_canonical_number(self, number: str, company_id: int) -> CanonicalIdentity:
        """Run both stages; the returned identity's .number is what gets stored."""
        await self.check_is_valid_contact(number, company_id)
        identity = await self.check_contact_number(number, company_id)

        if identity.number != number:
            logger.info(
                "Number rewritten by messaging network",
                extra={
                    "company_id": company_id,
                    "input_number": number,
                    "canonical_number": identity.number,
                },
            )
        return identity

    async def fetch_profile_pic_url(self, identity: CanonicalIdentity, company_id: int) -> str:
        """Best-effort profile picture lookup; failures yield an empty URL."""
        try:
            return await self._resolver.get_profile_pic_url(identity.jid, company_id)
        except IdentityLookupError as e:
            logger.warning(
                "Profile picture lookup failed",
                extra={"company_id": company_id, "jid": identity.jid, "error": str(e)},
            )
            return ""

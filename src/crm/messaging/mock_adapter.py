"""
Mock identity resolver for development and testing.
"""

import logging

from crm.messaging.config import MessagingConfig
from crm.messaging.interface import (
    CanonicalIdentity,
    IdentityLookupError,
    IdentityResolver,
    NumberNotRegisteredError,
)

logger = logging.getLogger(__name__)

JID_SUFFIX = "@s.whatsapp.net"


class MockIdentityResolver(IdentityResolver):
    """Deterministic in-process resolver.

    Every number resolves to ``<country_code><number>@s.whatsapp.net`` unless
    it was registered as unknown or the resolver is configured to fail.
    """

    def __init__(self, config: MessagingConfig | None = None) -> None:
        self._country_code = config.mock_country_code if config else ""
        self._checked: list[tuple[int, str]] = []
        self._unknown_numbers: set[str] = set()
        self._profile_pictures: dict[str, str] = {}
        self._should_fail: bool = False
        self._fail_error: str = "Mock failure"
        self._fail_code: str = "MOCK_ERROR"

    def reset(self) -> None:
        self._checked.clear()
        self._unknown_numbers.clear()
        self._profile_pictures.clear()
        self._should_fail = False
        self._fail_error = "Mock failure"
        self._fail_code = "MOCK_ERROR"

    def configure_failure(
        self,
        should_fail: bool = True,
        error_message: str = "Mock failure",
        error_code: str = "MOCK_ERROR",
    ) -> None:
        self._should_fail = should_fail
        self._fail_error = error_message
        self._fail_code = error_code

    def configure_country_code(self, country_code: str) -> None:
        self._country_code = country_code

    def mark_unknown(self, *numbers: str) -> None:
        self._unknown_numbers.update(numbers)

    def set_profile_picture(self, jid: str, url: str) -> None:
        self._profile_pictures[jid] = url

    @property
    def checked(self) -> list[tuple[int, str]]:
        """(company_id, number) pairs looked up so far, in call order."""
        return self._checked.copy()

    async def check_number(self, number: str, company_id: int) -> CanonicalIdentity:
        logger.info(
            "Mock: checking number",
            extra={"company_id": company_id, "number": number},
        )
        self._checked.append((company_id, number))

        if self._should_fail:
            raise IdentityLookupError(message=self._fail_error, error_code=self._fail_code)

        if number in self._unknown_numbers:
            raise NumberNotRegisteredError(
                message=f"Number {number} is not registered on the messaging network",
                error_code="NOT_REGISTERED",
            )

        canonical = number
        if self._country_code and not number.startswith(self._country_code):
            canonical = f"{self._country_code}{number}"

        return CanonicalIdentity(
            jid=f"{canonical}{JID_SUFFIX}",
            exists=True,
            raw_response={"mock": True, "number": number},
        )

    async def get_profile_pic_url(self, jid: str, company_id: int) -> str:
        if self._should_fail:
            raise IdentityLookupError(message=self._fail_error, error_code=self._fail_code)
        return self._profile_pictures.get(jid, "")

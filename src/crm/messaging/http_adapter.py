"""
HTTP identity resolver backed by the messaging gateway API.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from crm.messaging.config import MessagingConfig, get_messaging_config
from crm.messaging.interface import (
    CanonicalIdentity,
    IdentityLookupError,
    IdentityResolver,
    NumberNotRegisteredError,
)

logger = logging.getLogger(__name__)


class HttpIdentityResolver(IdentityResolver):
    """Identity resolver talking to the messaging gateway over HTTP.

    The gateway exposes the network session of each company:

    - ``POST /companies/{company_id}/numbers/check`` with ``{"number": "..."}``
      answers ``{"exists": bool, "jid": "..."}``.
    - ``GET /companies/{company_id}/contacts/{jid}/profile-picture`` answers
      ``{"url": "..."}``.
    """

    def __init__(
        self,
        config: MessagingConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_messaging_config()
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers=self._get_headers(),
            )
        return self._http_client

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._config.api_token:
            headers["Authorization"] = f"Bearer {self._config.api_token}"
        return headers

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def check_number(self, number: str, company_id: int) -> CanonicalIdentity:
        client = self._get_client()

        logger.debug(
            "Checking number on messaging network",
            extra={"company_id": company_id, "number": number},
        )

        try:
            response = await client.post(
                f"/companies/{company_id}/numbers/check",
                json={"number": number},
            )
        except httpx.HTTPError as e:
            logger.warning(
                "HTTP error during number check",
                extra={"company_id": company_id, "error": str(e)},
            )
            raise IdentityLookupError(
                message=f"HTTP error: {e!s}",
                error_code="HTTP_ERROR",
            ) from e

        data = self._parse_body(response)

        if response.status_code >= 400:
            logger.error(
                "Number check failed",
                extra={
                    "company_id": company_id,
                    "status_code": response.status_code,
                    "error": data,
                },
            )
            raise IdentityLookupError(
                message=data.get("message", "Number check failed"),
                error_code=str(data.get("code", response.status_code)),
                provider_response=data,
            )

        if not data.get("exists"):
            raise NumberNotRegisteredError(
                message=f"Number {number} is not registered on the messaging network",
                error_code="NOT_REGISTERED",
                provider_response=data,
            )

        jid = data.get("jid")
        if not jid:
            raise IdentityLookupError(
                message="Gateway response is missing jid",
                error_code="MISSING_JID",
                provider_response=data,
            )

        return CanonicalIdentity(jid=jid, exists=True, raw_response=data)

    async def get_profile_pic_url(self, jid: str, company_id: int) -> str:
        client = self._get_client()
        try:
            response = await client.get(
                f"/companies/{company_id}/contacts/{quote(jid, safe='')}/profile-picture"
            )
        except httpx.HTTPError as e:
            raise IdentityLookupError(
                message=f"HTTP error: {e!s}",
                error_code="HTTP_ERROR",
            ) from e

        if response.status_code == 404:
            return ""

        data = self._parse_body(response)
        if response.status_code >= 400:
            raise IdentityLookupError(
                message=data.get("message", "Profile picture lookup failed"),
                error_code=str(data.get("code", response.status_code)),
                provider_response=data,
            )
        return data.get("url") or ""

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {"message": response.text}
        return data if isinstance(data, dict) else {"data": data}

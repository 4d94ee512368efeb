"""
Identity resolver factory.

Single source of truth for configuration: MessagingConfig (Pydantic Settings),
never raw os.getenv("MESSAGING_*") here.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from crm.messaging.config import ProviderType, get_messaging_config
from crm.messaging.http_adapter import HttpIdentityResolver
from crm.messaging.interface import IdentityResolver
from crm.messaging.mock_adapter import MockIdentityResolver

logger = logging.getLogger(__name__)


def _mask(s: str, keep: int = 4) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


@lru_cache(maxsize=1)
def get_identity_resolver() -> IdentityResolver:
    """Create and cache the identity resolver selected by MessagingConfig."""
    cfg = get_messaging_config()

    logger.info(
        "Messaging config resolved",
        extra={
            "provider_type": cfg.provider_type.value,
            "base_url": cfg.base_url,
            "api_token": _mask(cfg.api_token),
            "timeout_seconds": cfg.timeout_seconds,
            "fetch_profile_pictures": cfg.fetch_profile_pictures,
        },
    )

    if cfg.provider_type == ProviderType.HTTP:
        return HttpIdentityResolver(cfg)

    if cfg.provider_type == ProviderType.MOCK:
        return MockIdentityResolver(cfg)

    raise ValueError(f"Unsupported messaging provider_type: {cfg.provider_type}")

"""
Messaging network gateway configuration.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported identity resolver implementations."""

    HTTP = "http"
    MOCK = "mock"


class MessagingConfig(BaseSettings):
    """Messaging gateway configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="MESSAGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider_type: ProviderType = Field(default=ProviderType.HTTP)

    base_url: str = Field(
        default="http://localhost:8081",
        description="Base URL of the messaging gateway API",
    )
    api_token: str = Field(
        default="",
        description="Bearer token sent to the gateway",
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for a single gateway request",
    )

    # Disabled by default: the lookup adds a second round-trip per contact
    fetch_profile_pictures: bool = Field(default=False)

    # Mock provider only: prefix added to numbers lacking it, emulating the
    # network's country-code normalization
    mock_country_code: str = Field(default="")


@lru_cache(maxsize=1)
def get_messaging_config() -> MessagingConfig:
    """Return cached MessagingConfig loaded from OS env + .env."""
    return MessagingConfig()

"""
Pydantic schemas for blocklist management.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BlockNumberRequest(BaseModel):
    """Request to block a number."""

    number: str = Field(..., min_length=1, max_length=50)
    reason: str | None = Field(default=None, max_length=255)

    @field_validator("number", mode="before")
    @classmethod
    def strip_number(cls, v: object) -> object:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v.strip() if isinstance(v, str) else v


class BlockedNumberResponse(BaseModel):
    """Blocked number as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    number: str
    reason: str | None
    created_at: datetime | None = None


class BlockedNumberListResponse(BaseModel):
    """Paginated blocklist."""

    items: list[BlockedNumberResponse]
    total: int
    page: int
    page_size: int
    total_pages: int

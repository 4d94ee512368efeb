"""
Pydantic schemas for contact management.

Request schemas stay permissive on name/number so that the service's format
checks, not request parsing, decide what is malformed.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from crm.contacts.models import ImportPolicy, ImportState, RowStatus


def _stringify(v: Any) -> Any:
    # Spreadsheet exports often deliver phone numbers as integers
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        # Fractional cells keep their dot and fail the digit check
        return str(int(v)) if v.is_integer() else str(v)
    return v


InputNumber = Annotated[str, BeforeValidator(_stringify)]


class CustomFieldIn(BaseModel):
    """Custom field as sent by clients."""

    id: int | None = Field(default=None, description="Existing field id (update only)")
    name: str = Field(..., min_length=1, max_length=255)
    value: str = Field(default="", max_length=1024)


class CustomFieldResponse(BaseModel):
    """Custom field as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    name: str
    value: str


class ContactCreate(BaseModel):
    """Schema for creating a contact."""

    name: str = Field(default="", max_length=255)
    number: InputNumber = Field(default="", max_length=50)
    email: str | None = Field(default=None, max_length=255)
    extra_info: list[CustomFieldIn] = Field(default_factory=list)


class ContactUpdate(BaseModel):
    """Schema for a partial contact update; omitted fields stay unchanged."""

    name: str | None = Field(default=None, max_length=255)
    number: InputNumber | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=255)
    extra_info: list[CustomFieldIn] | None = Field(
        default=None,
        description="Replaces all custom fields when present",
    )


class ContactLookupRequest(BaseModel):
    """Lookup of a contact by name and number."""

    name: str = ""
    number: InputNumber = ""


class ContactResponse(BaseModel):
    """Schema for contact response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    name: str
    number: str
    email: str = ""
    profile_pic_url: str = ""
    extra_info: list[CustomFieldResponse] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContactListResponse(BaseModel):
    """One page of the contact list."""

    contacts: list[ContactResponse]
    count: int
    has_more: bool


class ContactImportRow(BaseModel):
    """One row of a bulk import."""

    name: str = ""
    number: InputNumber = ""
    email: str | None = None
    row_number: int | None = Field(
        default=None,
        ge=1,
        description="Data row in the uploaded file; defaults to the position in the batch",
    )


class ContactImportRequest(BaseModel):
    """JSON body of a bulk import."""

    contacts: list[ContactImportRow] = Field(..., max_length=10_000)
    policy: ImportPolicy | None = Field(
        default=None,
        description="Batch policy; defaults to the configured policy",
    )


class ImportRowOutcome(BaseModel):
    """Outcome of one import row (row numbers are 1-based)."""

    row: int
    status: RowStatus
    number: str | None = None
    contact_id: int | None = None
    error_code: str | None = None
    error: str | None = None


class ImportResultResponse(BaseModel):
    """Result of a bulk import batch."""

    state: ImportState
    policy: ImportPolicy
    total_rows: int
    created_count: int
    failed_count: int
    created: list[ContactResponse] = Field(default_factory=list)
    outcomes: list[ImportRowOutcome] = Field(default_factory=list)
    message: str = ""

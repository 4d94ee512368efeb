"""
API router for contact management.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from crm.config import get_settings
from crm.contacts.blocklist.service import BlocklistService
from crm.contacts.csv_parser import CSVParser
from crm.contacts.models import ImportPolicy, ImportState
from crm.contacts.repository import ContactRepository
from crm.contacts.schemas import (
    ContactCreate,
    ContactImportRequest,
    ContactListResponse,
    ContactLookupRequest,
    ContactResponse,
    ContactUpdate,
    ImportResultResponse,
)
from crm.contacts.service import ContactService
from crm.contacts.validator import ContactValidator
from crm.messaging.config import get_messaging_config
from crm.messaging.factory import get_identity_resolver
from crm.messaging.interface import IdentityResolver
from crm.realtime.router import get_event_broadcaster
from crm.realtime.broadcaster import EventBroadcaster
from crm.shared.database import get_db_session
from crm.shared.exceptions import ValidationError
from crm.shared.logging import get_logger
from crm.shared.tenant import get_company_id

logger = get_logger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])

MAX_IMPORT_ROWS = 10_000

_FAILED_IMPORT_STATES = {ImportState.REJECTED, ImportState.ABORTED_WITH_PARTIAL_COMMIT}


def get_contact_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
    broadcaster: Annotated[EventBroadcaster, Depends(get_event_broadcaster)],
) -> ContactService:
    """Dependency for contact service."""
    settings = get_settings()
    validator = ContactValidator(
        resolver,
        blocklist=BlocklistService(session=session),
        min_number_length=settings.contacts_min_number_length,
    )
    return ContactService(
        repository=ContactRepository(session),
        validator=validator,
        broadcaster=broadcaster,
        page_size=settings.contacts_page_size,
        fetch_profile_pictures=get_messaging_config().fetch_profile_pictures,
        import_policy=ImportPolicy(settings.contacts_import_policy),
        import_max_concurrency=settings.contacts_import_max_concurrency,
    )


CompanyId = Annotated[int, Depends(get_company_id)]
Service = Annotated[ContactService, Depends(get_contact_service)]


@router.get(
    "",
    response_model=ContactListResponse,
    summary="List contacts",
)
async def list_contacts(
    company_id: CompanyId,
    service: Service,
    search_param: Annotated[str | None, Query(description="Name or number fragment")] = None,
    page_number: Annotated[int, Query(ge=1, description="Page number")] = 1,
) -> ContactListResponse:
    return await service.list_contacts(company_id, search_param, page_number)


@router.get(
    "/list",
    response_model=list[ContactResponse],
    summary="List all contacts, optionally filtered by name",
)
async def simple_list_contacts(
    company_id: CompanyId,
    service: Service,
    name: Annotated[str | None, Query(description="Name fragment")] = None,
) -> list[ContactResponse]:
    return await service.simple_list(company_id, name)


@router.post(
    "/lookup",
    response_model=ContactResponse,
    responses={404: {"description": "Contact not found"}},
    summary="Find a contact by name and number",
)
async def lookup_contact(
    request: ContactLookupRequest,
    company_id: CompanyId,
    service: Service,
) -> ContactResponse:
    return await service.get_contact_by_name_and_number(company_id, request.name, request.number)


@router.post(
    "",
    response_model=ContactResponse,
    responses={400: {"description": "Invalid or unreachable contact"}},
    summary="Create a contact",
)
async def create_contact(
    request: ContactCreate,
    company_id: CompanyId,
    service: Service,
) -> ContactResponse:
    return await service.create_contact(company_id, request)


def _import_response(result: ImportResultResponse, response: Response) -> ImportResultResponse:
    if result.state in _FAILED_IMPORT_STATES:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return result


@router.post(
    "/upload",
    response_model=ImportResultResponse,
    responses={400: {"model": ImportResultResponse, "description": "Batch rejected or aborted"}},
    summary="Import contacts from JSON rows",
)
async def import_contacts(
    request: ContactImportRequest,
    company_id: CompanyId,
    service: Service,
    response: Response,
) -> ImportResultResponse:
    result = await service.import_contacts(company_id, request.contacts, request.policy)
    return _import_response(result, response)


@router.post(
    "/upload/csv",
    response_model=ImportResultResponse,
    responses={400: {"model": ImportResultResponse, "description": "Batch rejected or aborted"}},
    summary="Import contacts from a CSV file",
)
async def import_contacts_csv(
    company_id: CompanyId,
    service: Service,
    response: Response,
    file: Annotated[UploadFile, File(description="CSV file with name, number and email columns")],
    policy: Annotated[ImportPolicy | None, Query(description="Batch policy")] = None,
) -> ImportResultResponse:
    content = await file.read()
    rows = list(CSVParser().parse(content))
    if len(rows) > MAX_IMPORT_ROWS:
        raise ValidationError(f"CSV file has more than {MAX_IMPORT_ROWS} rows")

    logger.info(
        "CSV import received",
        extra={"company_id": company_id, "filename": file.filename, "rows": len(rows)},
    )
    result = await service.import_contacts(company_id, rows, policy)
    return _import_response(result, response)


@router.get(
    "/{contact_id}",
    response_model=ContactResponse,
    responses={404: {"description": "Contact not found"}},
    summary="Get a contact",
)
async def show_contact(
    contact_id: int,
    company_id: CompanyId,
    service: Service,
) -> ContactResponse:
    return await service.show_contact(company_id, contact_id)


@router.put(
    "/{contact_id}",
    response_model=ContactResponse,
    responses={
        400: {"description": "Invalid or unreachable contact"},
        404: {"description": "Contact not found"},
    },
    summary="Update a contact",
)
async def update_contact(
    contact_id: int,
    request: ContactUpdate,
    company_id: CompanyId,
    service: Service,
) -> ContactResponse:
    return await service.update_contact(company_id, contact_id, request)


@router.delete(
    "/{contact_id}",
    responses={404: {"description": "Contact not found"}},
    summary="Delete a contact",
)
async def delete_contact(
    contact_id: int,
    company_id: CompanyId,
    service: Service,
) -> dict[str, str]:
    await service.delete_contact(company_id, contact_id)
    return {"message": "Contact deleted"}

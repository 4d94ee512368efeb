"""
API router for blocklist management.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crm.contacts.blocklist.schemas import (
    BlockedNumberListResponse,
    BlockedNumberResponse,
    BlockNumberRequest,
)
from crm.contacts.blocklist.service import BlocklistService
from crm.shared.database import get_db_session
from crm.shared.logging import get_logger
from crm.shared.tenant import get_company_id

logger = get_logger(__name__)

router = APIRouter(prefix="/api/blocklist", tags=["blocklist"])


def get_blocklist_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> BlocklistService:
    """Dependency for blocklist service."""
    return BlocklistService(session=session)


@router.post(
    "",
    response_model=BlockedNumberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Block a number",
)
async def block_number(
    request: BlockNumberRequest,
    company_id: Annotated[int, Depends(get_company_id)],
    service: Annotated[BlocklistService, Depends(get_blocklist_service)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> BlockedNumberResponse:
    entry = await service.block_number(company_id, request)
    await session.commit()
    return BlockedNumberResponse.model_validate(entry)


@router.get(
    "",
    response_model=BlockedNumberListResponse,
    summary="List blocked numbers",
)
async def list_blocked_numbers(
    company_id: Annotated[int, Depends(get_company_id)],
    service: Annotated[BlocklistService, Depends(get_blocklist_service)],
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 50,
) -> BlockedNumberListResponse:
    entries, total = await service.list_blocked(company_id, page=page, page_size=page_size)

    return BlockedNumberListResponse(
        items=[BlockedNumberResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unblock a number",
)
async def unblock_number(
    entry_id: int,
    company_id: Annotated[int, Depends(get_company_id)],
    service: Annotated[BlocklistService, Depends(get_blocklist_service)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> None:
    await service.unblock_number(company_id, entry_id)
    await session.commit()

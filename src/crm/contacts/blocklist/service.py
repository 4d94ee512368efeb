"""
Service layer for blocklist management.

A blocked number is rejected by the contact validator before the messaging
network is ever asked about it.
"""

from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from crm.contacts.blocklist.models import BlockedNumber
from crm.contacts.blocklist.repository import (
    BlocklistRepository,
    BlocklistRepositoryProtocol,
)
from crm.contacts.blocklist.schemas import BlockNumberRequest
from crm.contacts.normalization import check_number, normalize_number
from crm.shared.exceptions import NotFoundError, ValidationError
from crm.shared.logging import get_logger

logger = get_logger(__name__)


class BlocklistService:
    """Service for blocklist management operations."""

    def __init__(
        self,
        session: AsyncSession | None = None,
        repository: BlocklistRepositoryProtocol | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session: Async database session (used when no repository is given).
            repository: Optional repository (for DI).
        """
        if repository is None:
            if session is None:
                raise ValueError("BlocklistService needs a session or a repository")
            repository = BlocklistRepository(session)
        self._repository = repository

    async def is_blocked(self, company_id: int, number: str) -> bool:
        """Check if a number is blocked for the company.

        Args:
            company_id: Tenant id.
            number: Raw or normalized number.

        Returns:
            True if blocked, False otherwise.
        """
        return await self._repository.exists(company_id, normalize_number(number))

    async def block_number(
        self,
        company_id: int,
        request: BlockNumberRequest,
    ) -> BlockedNumber:
        """Add a number to the company blocklist.

        Raises:
            ValidationError: If the number is malformed or already blocked.
        """
        number = normalize_number(request.number)
        error = check_number(number)
        if error:
            raise ValidationError(error.message, details={"field": error.field})

        existing = await self._repository.get_by_number(company_id, number)
        if existing:
            raise ValidationError(f"Number already blocked: {number}")

        entry = await self._repository.create(company_id, number, reason=request.reason)

        logger.info(
            "Blocked number",
            extra={"company_id": company_id, "blocked_id": entry.id, "number": number},
        )
        return entry

    async def unblock_number(self, company_id: int, entry_id: int) -> None:
        """Remove a number from the company blocklist.

        Raises:
            NotFoundError: If the entry does not exist for the company.
        """
        entry = await self._repository.get_by_id(company_id, entry_id)
        if entry is None:
            raise NotFoundError("Blocked number not found", code="ERR_NO_BLOCKED_NUMBER_FOUND")

        await self._repository.delete(entry)
        logger.info(
            "Unblocked number",
            extra={"company_id": company_id, "blocked_id": entry_id},
        )

    async def list_blocked(
        self,
        company_id: int,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[Sequence[BlockedNumber], int]:
        return await self._repository.list_all(company_id, page=page, page_size=page_size)

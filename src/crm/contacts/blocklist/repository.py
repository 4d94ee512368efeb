"""
Repository for blocked number database operations.
"""

from typing import Protocol, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crm.contacts.blocklist.models import BlockedNumber


class BlocklistRepositoryProtocol(Protocol):
    """Protocol for blocklist repository operations."""

    async def get_by_id(self, company_id: int, entry_id: int) -> BlockedNumber | None: ...

    async def get_by_number(self, company_id: int, number: str) -> BlockedNumber | None: ...

    async def exists(self, company_id: int, number: str) -> bool: ...

    async def create(
        self, company_id: int, number: str, reason: str | None = None
    ) -> BlockedNumber: ...

    async def delete(self, entry: BlockedNumber) -> None: ...

    async def list_all(
        self, company_id: int, page: int = 1, page_size: int = 50
    ) -> tuple[Sequence[BlockedNumber], int]: ...


class BlocklistRepository:
    """Repository for blocked number database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def get_by_id(self, company_id: int, entry_id: int) -> BlockedNumber | None:
        stmt = select(BlockedNumber).where(
            BlockedNumber.id == entry_id,
            BlockedNumber.company_id == company_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_number(self, company_id: int, number: str) -> BlockedNumber | None:
        stmt = select(BlockedNumber).where(
            BlockedNumber.company_id == company_id,
            BlockedNumber.number == number,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def exists(self, company_id: int, number: str) -> bool:
        """Check if a number is blocked for the company.

        Args:
            company_id: Tenant id.
            number: Digits-only number.

        Returns:
            True if blocked, False otherwise.
        """
        stmt = select(func.count(BlockedNumber.id)).where(
            BlockedNumber.company_id == company_id,
            BlockedNumber.number == number,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one() > 0

    async def create(
        self,
        company_id: int,
        number: str,
        reason: str | None = None,
    ) -> BlockedNumber:
        entry = BlockedNumber(company_id=company_id, number=number, reason=reason)
        self._session.add(entry)
        await self._session.flush()
        await self._session.refresh(entry)
        return entry

    async def delete(self, entry: BlockedNumber) -> None:
        await self._session.delete(entry)
        await self._session.flush()

    async def list_all(
        self,
        company_id: int,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[Sequence[BlockedNumber], int]:
        """List a company's blocked numbers, newest first.

        Returns:
            Tuple of (entries, total count).
        """
        count_stmt = select(func.count(BlockedNumber.id)).where(
            BlockedNumber.company_id == company_id
        )
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = (
            select(BlockedNumber)
            .where(BlockedNumber.company_id == company_id)
            .order_by(BlockedNumber.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all(), total

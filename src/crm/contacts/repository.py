"""
Contact repository for database operations.

Every method takes the company id explicitly; a contact belonging to another
company is indistinguishable from a missing one. Methods only flush: the
caller owns the unit of work and decides when to commit or roll back.
"""

from typing import Protocol, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crm.contacts.models import Contact, ContactCustomField
from crm.contacts.schemas import CustomFieldIn


class ContactRepositoryProtocol(Protocol):
    """Protocol for the tenant-scoped contact store."""

    async def create(
        self,
        company_id: int,
        *,
        name: str,
        number: str,
        email: str = "",
        profile_pic_url: str = "",
        extra_info: Sequence[CustomFieldIn] = (),
    ) -> Contact: ...

    async def get(self, company_id: int, contact_id: int) -> Contact | None: ...

    async def get_by_number(self, company_id: int, number: str) -> Contact | None: ...

    async def update(
        self,
        company_id: int,
        contact_id: int,
        *,
        name: str | None = None,
        number: str | None = None,
        email: str | None = None,
        extra_info: Sequence[CustomFieldIn] | None = None,
    ) -> Contact | None: ...

    async def delete(self, company_id: int, contact_id: int) -> bool: ...

    async def list_page(
        self,
        company_id: int,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[Sequence[Contact], int]: ...

    async def simple_list(self, company_id: int, name: str | None = None) -> Sequence[Contact]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class ContactRepository:
    """Repository for contact database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    def _select(self, company_id: int):
        return (
            select(Contact)
            .where(Contact.company_id == company_id)
            .options(selectinload(Contact.extra_info))
        )

    async def _reload(self, company_id: int, contact_id: int) -> Contact | None:
        stmt = (
            self._select(company_id)
            .where(Contact.id == contact_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        company_id: int,
        *,
        name: str,
        number: str,
        email: str = "",
        profile_pic_url: str = "",
        extra_info: Sequence[CustomFieldIn] = (),
    ) -> Contact:
        """Create a contact with its custom fields.

        Args:
            company_id: Owning company.
            name: Display name.
            number: Canonical digits-only number.
            email: Email address or empty string.
            profile_pic_url: Profile picture URL or empty string.
            extra_info: Custom fields, stored in the given order.

        Returns:
            Created contact with ID and custom fields loaded.
        """
        contact = Contact(
            company_id=company_id,
            name=name,
            number=number,
            email=email,
            profile_pic_url=profile_pic_url,
            extra_info=[ContactCustomField(name=f.name, value=f.value) for f in extra_info],
        )
        self._session.add(contact)
        await self._session.flush()
        return await self._reload(company_id, contact.id)  # type: ignore[return-value]

    async def get(self, company_id: int, contact_id: int) -> Contact | None:
        """Get a contact by ID within a company.

        Returns:
            Contact if found, None otherwise.
        """
        result = await self._session.execute(
            self._select(company_id).where(Contact.id == contact_id)
        )
        return result.scalar_one_or_none()

    async def get_by_number(self, company_id: int, number: str) -> Contact | None:
        """Get the oldest contact with the given number within a company."""
        stmt = self._select(company_id).where(Contact.number == number).order_by(Contact.id).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def update(
        self,
        company_id: int,
        contact_id: int,
        *,
        name: str | None = None,
        number: str | None = None,
        email: str | None = None,
        extra_info: Sequence[CustomFieldIn] | None = None,
    ) -> Contact | None:
        """Apply a partial update.

        When extra_info is given it replaces the custom fields: entries with a
        known id are updated in place, entries without one are added, and
        fields not mentioned are removed.

        Returns:
            Updated contact, or None if it does not exist for the company.
        """
        contact = await self.get(company_id, contact_id)
        if contact is None:
            return None

        if name is not None:
            contact.name = name
        if number is not None:
            contact.number = number
        if email is not None:
            contact.email = email

        if extra_info is not None:
            current = {field.id: field for field in contact.extra_info}
            replacement: list[ContactCustomField] = []
            for incoming in extra_info:
                field = current.get(incoming.id) if incoming.id is not None else None
                if field is None:
                    field = ContactCustomField(name=incoming.name, value=incoming.value)
                else:
                    field.name = incoming.name
                    field.value = incoming.value
                replacement.append(field)
            contact.extra_info = replacement

        await self._session.flush()
        return await self._reload(company_id, contact_id)

    async def delete(self, company_id: int, contact_id: int) -> bool:
        """Delete a contact and its custom fields.

        Returns:
            True if deleted, False if not found for the company.
        """
        contact = await self.get(company_id, contact_id)
        if contact is None:
            return False
        await self._session.delete(contact)
        await self._session.flush()
        return True

    async def list_page(
        self,
        company_id: int,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[Sequence[Contact], int]:
        """List contacts ordered by name, optionally filtered.

        The search text matches the name case-insensitively, or the number
        once whitespace and hyphens are removed.

        Returns:
            Tuple of (contacts on the page, total matching count).
        """
        conditions = [Contact.company_id == company_id]
        term = (search or "").strip()
        if term:
            digits = "".join(term.split()).replace("-", "")
            conditions.append(
                or_(
                    Contact.name.ilike(f"%{term}%"),
                    Contact.number.like(f"%{digits}%"),
                )
            )

        count_stmt = select(func.count(Contact.id)).where(*conditions)
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = (
            select(Contact)
            .where(*conditions)
            .options(selectinload(Contact.extra_info))
            .order_by(Contact.name.asc(), Contact.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all(), total

    async def simple_list(self, company_id: int, name: str | None = None) -> Sequence[Contact]:
        """List every contact of a company whose name contains the filter."""
        stmt = self._select(company_id).order_by(Contact.name.asc(), Contact.id.asc())
        if name:
            stmt = stmt.where(Contact.name.ilike(f"%{name.strip()}%"))
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

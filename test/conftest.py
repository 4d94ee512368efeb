"""
Shared fixtures: in-memory fakes for the contact pipeline and an aiosqlite
database for repository and API tests.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any, Sequence

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import crm.contacts.blocklist.models  # noqa: F401
from crm.contacts.models import Contact, ContactCustomField
from crm.contacts.schemas import CustomFieldIn
from crm.contacts.service import ContactService
from crm.contacts.validator import ContactValidator
from crm.messaging.mock_adapter import MockIdentityResolver
from crm.shared.database import Base


class InMemoryContactStore:
    """ContactRepositoryProtocol fake with commit/rollback staging.

    Writes go to a working copy of the committed state; commit() publishes the
    working copy and rollback() discards it.
    """

    def __init__(self) -> None:
        self.committed: dict[int, Contact] = {}
        self._working: dict[int, Contact] | None = None
        self._next_id = 1
        self._next_field_id = 1
        self.commits = 0
        self.rollbacks = 0
        self.fail_on_create: set[str] = set()

    def _view(self) -> dict[int, Contact]:
        return self._working if self._working is not None else self.committed

    def _write(self) -> dict[int, Contact]:
        if self._working is None:
            self._working = dict(self.committed)
        return self._working

    def _fields(self, extra_info: Sequence[CustomFieldIn]) -> list[ContactCustomField]:
        fields = []
        for f in extra_info:
            fields.append(ContactCustomField(id=self._next_field_id, name=f.name, value=f.value))
            self._next_field_id += 1
        return fields

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
        if number in self.fail_on_create:
            raise RuntimeError(f"store failure for {number}")
        now = datetime.now(timezone.utc)
        contact = Contact(
            id=self._next_id,
            company_id=company_id,
            name=name,
            number=number,
            email=email,
            profile_pic_url=profile_pic_url,
            created_at=now,
            updated_at=now,
            extra_info=self._fields(extra_info),
        )
        self._next_id += 1
        self._write()[contact.id] = contact
        return contact

    async def get(self, company_id: int, contact_id: int) -> Contact | None:
        contact = self._view().get(contact_id)
        if contact is None or contact.company_id != company_id:
            return None
        return contact

    async def get_by_number(self, company_id: int, number: str) -> Contact | None:
        for contact in sorted(self._view().values(), key=lambda c: c.id):
            if contact.company_id == company_id and contact.number == number:
                return contact
        return None

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
        current = await self.get(company_id, contact_id)
        if current is None:
            return None
        updated = Contact(
            id=current.id,
            company_id=company_id,
            name=name if name is not None else current.name,
            number=number if number is not None else current.number,
            email=email if email is not None else current.email,
            profile_pic_url=current.profile_pic_url,
            created_at=current.created_at,
            updated_at=datetime.now(timezone.utc),
            extra_info=(
                self._fields(extra_info)
                if extra_info is not None
                else [ContactCustomField(id=f.id, name=f.name, value=f.value) for f in current.extra_info]
            ),
        )
        self._write()[contact_id] = updated
        return updated

    async def delete(self, company_id: int, contact_id: int) -> bool:
        if await self.get(company_id, contact_id) is None:
            return False
        del self._write()[contact_id]
        return True

    async def list_page(
        self,
        company_id: int,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[Sequence[Contact], int]:
        term = (search or "").strip().lower()
        matches = [
            c
            for c in self._view().values()
            if c.company_id == company_id and (not term or term in c.name.lower() or term in c.number)
        ]
        matches.sort(key=lambda c: (c.name, c.id))
        start = (page - 1) * page_size
        return matches[start : start + page_size], len(matches)

    async def simple_list(self, company_id: int, name: str | None = None) -> Sequence[Contact]:
        contacts, _ = await self.list_page(company_id, name, page=1, page_size=10_000)
        return contacts

    async def commit(self) -> None:
        self.commits += 1
        if self._working is not None:
            self.committed = self._working
            self._working = None

    async def rollback(self) -> None:
        self.rollbacks += 1
        self._working = None

    def contacts_of(self, company_id: int) -> list[Contact]:
        return sorted(
            (c for c in self.committed.values() if c.company_id == company_id),
            key=lambda c: c.id,
        )


class RecordingBroadcaster:
    """EventBroadcaster fake remembering every publish call."""

    def __init__(self) -> None:
        self.events: list[tuple[int, str, dict[str, Any]]] = []

    def publish(self, company_id: int, event_name: str, payload: dict[str, Any]) -> None:
        self.events.append((company_id, event_name, payload))

    def for_company(self, company_id: int) -> list[dict[str, Any]]:
        return [payload for cid, _, payload in self.events if cid == company_id]


class FakeBlocklist:
    """BlocklistChecker fake backed by a set of (company_id, number)."""

    def __init__(self, *entries: tuple[int, str]) -> None:
        self.entries = set(entries)

    async def is_blocked(self, company_id: int, number: str) -> bool:
        return (company_id, number) in self.entries


@pytest.fixture
def store() -> InMemoryContactStore:
    return InMemoryContactStore()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def resolver() -> MockIdentityResolver:
    return MockIdentityResolver()


@pytest.fixture
def blocklist() -> FakeBlocklist:
    return FakeBlocklist()


@pytest.fixture
def validator(resolver: MockIdentityResolver, blocklist: FakeBlocklist) -> ContactValidator:
    return ContactValidator(resolver, blocklist=blocklist, min_number_length=8)


@pytest.fixture
def contact_service(
    store: InMemoryContactStore,
    validator: ContactValidator,
    broadcaster: RecordingBroadcaster,
) -> ContactService:
    return ContactService(
        repository=store,
        validator=validator,
        broadcaster=broadcaster,
        page_size=20,
    )


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[Any, None]:
    """Create test database engine."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: Any) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session

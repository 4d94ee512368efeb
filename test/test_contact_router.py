"""
API integration tests for the contact, blocklist and health endpoints.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from crm.contacts.normalization import INVALID_NUMBER_MESSAGE
from crm.main import create_app
from crm.messaging.factory import get_identity_resolver
from crm.messaging.mock_adapter import MockIdentityResolver
from crm.shared.database import get_db_session

TENANT = {"X-Company-Id": "1"}
OTHER_TENANT = {"X-Company-Id": "2"}


@pytest.fixture
def app() -> FastAPI:
    return create_app()


@pytest_asyncio.fixture
async def client(
    app: FastAPI,
    db_session: AsyncSession,
    resolver: MockIdentityResolver,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client backed by aiosqlite and the mock resolver."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_identity_resolver] = lambda: resolver

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


async def create(client: AsyncClient, name: str, number: str, headers: dict[str, str] = TENANT) -> dict:
    response = await client.post("/api/contacts", json={"name": name, "number": number}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


class TestCreateContact:
    """Tests for POST /api/contacts."""

    @pytest.mark.asyncio
    async def test_create_success_broadcasts(self, app: FastAPI, client: AsyncClient) -> None:
        async with app.state.broadcaster.subscribe(1) as subscription:
            response = await client.post(
                "/api/contacts",
                json={
                    "name": "Ana",
                    "number": "55 11 99999-9999",
                    "email": "ana@acme.com",
                    "extra_info": [{"name": "cpf", "value": "123"}],
                },
                headers=TENANT,
            )

            assert response.status_code == 200
            data = response.json()
            assert data["number"] == "5511999999999"
            assert data["company_id"] == 1
            assert data["extra_info"][0]["name"] == "cpf"

            assert subscription.pending() == 1
            message = await subscription.get()
            assert message.event == "company-1-contact"
            assert message.data["action"] == "create"
            assert message.data["contact"]["id"] == data["id"]

    @pytest.mark.asyncio
    async def test_numeric_number_accepted(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/contacts",
            json={"name": "Ana", "number": 5511999999999},
            headers=TENANT,
        )

        assert response.status_code == 200
        assert response.json()["number"] == "5511999999999"

    @pytest.mark.asyncio
    async def test_invalid_number_format(self, client: AsyncClient, resolver: MockIdentityResolver) -> None:
        response = await client.post(
            "/api/contacts",
            json={"name": "Ana", "number": "+55 (11) 9999"},
            headers=TENANT,
        )

        assert response.status_code == 400
        assert response.json() == {"detail": INVALID_NUMBER_MESSAGE, "code": "ERR_VALIDATION"}
        assert resolver.checked == []

    @pytest.mark.asyncio
    async def test_missing_name(self, client: AsyncClient) -> None:
        response = await client.post("/api/contacts", json={"number": "5511999999999"}, headers=TENANT)

        assert response.status_code == 400
        assert response.json()["detail"] == "name is a required field"

    @pytest.mark.asyncio
    async def test_unreachable_number(self, client: AsyncClient, resolver: MockIdentityResolver) -> None:
        resolver.mark_unknown("5511999999999")

        response = await client.post(
            "/api/contacts",
            json={"name": "Ana", "number": "5511999999999"},
            headers=TENANT,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_CHECK_NUMBER"

    @pytest.mark.asyncio
    async def test_too_short_number(self, client: AsyncClient) -> None:
        response = await client.post("/api/contacts", json={"name": "Ana", "number": "1234"}, headers=TENANT)

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_WAPP_INVALID_CONTACT"

    @pytest.mark.asyncio
    async def test_missing_company_header(self, client: AsyncClient) -> None:
        response = await client.post("/api/contacts", json={"name": "Ana", "number": "5511999999999"})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_invalid_company_header(self, client: AsyncClient) -> None:
        response = await client.get("/api/contacts", headers={"X-Company-Id": "0"})

        assert response.status_code == 422


class TestReadContacts:
    """Tests for the read endpoints."""

    @pytest.mark.asyncio
    async def test_list_is_tenant_scoped(self, client: AsyncClient) -> None:
        await create(client, "Bia", "5511888888888")
        await create(client, "Ana", "5511999999999")
        await create(client, "Other", "5511777777777", headers=OTHER_TENANT)

        response = await client.get("/api/contacts", headers=TENANT)

        assert response.status_code == 200
        data = response.json()
        assert [c["name"] for c in data["contacts"]] == ["Ana", "Bia"]
        assert data["count"] == 2
        assert data["has_more"] is False

    @pytest.mark.asyncio
    async def test_list_search(self, client: AsyncClient) -> None:
        await create(client, "Ana", "5511999999999")
        await create(client, "Bia", "5511888888888")

        response = await client.get("/api/contacts", params={"search_param": "bi"}, headers=TENANT)

        assert [c["name"] for c in response.json()["contacts"]] == ["Bia"]

    @pytest.mark.asyncio
    async def test_simple_list(self, client: AsyncClient) -> None:
        await create(client, "Ana", "5511999999999")

        response = await client.get("/api/contacts/list", headers=TENANT)

        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Ana"]

    @pytest.mark.asyncio
    async def test_show_other_tenant_not_found(self, client: AsyncClient) -> None:
        contact = await create(client, "Ana", "5511999999999")

        mine = await client.get(f"/api/contacts/{contact['id']}", headers=TENANT)
        theirs = await client.get(f"/api/contacts/{contact['id']}", headers=OTHER_TENANT)

        assert mine.status_code == 200
        assert theirs.status_code == 404
        assert theirs.json()["code"] == "ERR_NO_CONTACT_FOUND"

    @pytest.mark.asyncio
    async def test_lookup(self, client: AsyncClient) -> None:
        contact = await create(client, "Ana", "5511999999999")

        found = await client.post(
            "/api/contacts/lookup",
            json={"name": "Ana", "number": "55 11 99999-9999"},
            headers=TENANT,
        )
        missing = await client.post(
            "/api/contacts/lookup",
            json={"name": "Zoe", "number": "5511000000000"},
            headers=TENANT,
        )

        assert found.status_code == 200
        assert found.json()["id"] == contact["id"]
        assert missing.status_code == 404


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient) -> None:
        contact = await create(client, "Ana", "5511999999999")

        response = await client.put(
            f"/api/contacts/{contact['id']}",
            json={"name": "Ana Maria", "extra_info": [{"name": "plan", "value": "gold"}]},
            headers=TENANT,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Ana Maria"
        assert data["number"] == "5511999999999"
        assert [(f["name"], f["value"]) for f in data["extra_info"]] == [("plan", "gold")]

    @pytest.mark.asyncio
    async def test_delete(self, app: FastAPI, client: AsyncClient) -> None:
        contact = await create(client, "Ana", "5511999999999")

        async with app.state.broadcaster.subscribe(1) as subscription:
            response = await client.delete(f"/api/contacts/{contact['id']}", headers=TENANT)
            assert response.status_code == 200
            assert response.json() == {"message": "Contact deleted"}

            message = await subscription.get()
            assert message.data == {"action": "delete", "contactId": contact["id"]}

            again = await client.delete(f"/api/contacts/{contact['id']}", headers=TENANT)
            assert again.status_code == 404
            assert subscription.pending() == 0


class TestImport:
    """Tests for the bulk import endpoints."""

    @pytest.mark.asyncio
    async def test_json_import_best_effort(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/contacts/upload",
            json={
                "contacts": [
                    {"name": "A", "number": "11999999999"},
                    {"name": "", "number": "11888888888"},
                    {"name": "B", "number": "11777777777"},
                ]
            },
            headers=TENANT,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "completed_with_errors"
        assert data["policy"] == "best_effort"
        assert data["created_count"] == 2
        assert [o["status"] for o in data["outcomes"]] == ["created", "failed", "created"]

    @pytest.mark.asyncio
    async def test_json_import_abort_on_error(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/contacts/upload",
            json={
                "policy": "abort_on_error",
                "contacts": [
                    {"name": "A", "number": "11999999999"},
                    {"name": "", "number": "11888888888"},
                    {"name": "B", "number": "11777777777"},
                ],
            },
            headers=TENANT,
        )

        assert response.status_code == 400
        data = response.json()
        assert data["state"] == "aborted_with_partial_commit"
        assert [c["number"] for c in data["created"]] == ["11999999999"]

        listed = await client.get("/api/contacts", headers=TENANT)
        assert [c["name"] for c in listed.json()["contacts"]] == ["A"]

    @pytest.mark.asyncio
    async def test_json_import_all_or_nothing_rejected(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/contacts/upload",
            json={
                "policy": "all_or_nothing",
                "contacts": [
                    {"name": "A", "number": "11999999999"},
                    {"name": "B", "number": "abc"},
                ],
            },
            headers=TENANT,
        )

        assert response.status_code == 400
        assert response.json()["state"] == "rejected"

        listed = await client.get("/api/contacts", headers=TENANT)
        assert listed.json()["count"] == 0

    @pytest.mark.asyncio
    async def test_csv_import(self, client: AsyncClient) -> None:
        content = b"Nome,Telefone,Email\nAna,11 99999-9999,ana@acme.com\nBia,11888888888,\n"

        response = await client.post(
            "/api/contacts/upload/csv",
            files={"file": ("contacts.csv", content, "text/csv")},
            headers=TENANT,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "completed"
        assert data["total_rows"] == 2
        assert [c["number"] for c in data["created"]] == ["11999999999", "11888888888"]

    @pytest.mark.asyncio
    async def test_csv_failures_report_file_rows(self, client: AsyncClient) -> None:
        content = b"name,number\nA,11999999999\n\nB,12\n"

        response = await client.post(
            "/api/contacts/upload/csv",
            files={"file": ("contacts.csv", content, "text/csv")},
            headers=TENANT,
        )

        assert response.status_code == 200
        outcomes = response.json()["outcomes"]
        assert [(o["row"], o["status"]) for o in outcomes] == [(1, "created"), (3, "failed")]

    @pytest.mark.asyncio
    async def test_csv_import_with_policy(self, client: AsyncClient) -> None:
        content = b"name,number\nAna,11999999999\n,11888888888\n"

        response = await client.post(
            "/api/contacts/upload/csv",
            params={"policy": "all_or_nothing"},
            files={"file": ("contacts.csv", content, "text/csv")},
            headers=TENANT,
        )

        assert response.status_code == 400
        assert response.json()["policy"] == "all_or_nothing"

    @pytest.mark.asyncio
    async def test_csv_missing_number_column(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/contacts/upload/csv",
            files={"file": ("contacts.csv", b"name,email\nAna,ana@acme.com\n", "text/csv")},
            headers=TENANT,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_INVALID_CSV"


class TestBlocklistEndpoints:
    @pytest.mark.asyncio
    async def test_blocked_number_cannot_be_added(self, client: AsyncClient) -> None:
        blocked = await client.post(
            "/api/blocklist",
            json={"number": "55 11 99999-9999", "reason": "opted out"},
            headers=TENANT,
        )
        assert blocked.status_code == 201
        entry = blocked.json()
        assert entry["number"] == "5511999999999"

        response = await client.post(
            "/api/contacts",
            json={"name": "Ana", "number": "5511999999999"},
            headers=TENANT,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "ERR_WAPP_INVALID_CONTACT"

        # Blocklists are per company
        await create(client, "Ana", "5511999999999", headers=OTHER_TENANT)

        listed = await client.get("/api/blocklist", headers=TENANT)
        assert listed.json()["total"] == 1

        removed = await client.delete(f"/api/blocklist/{entry['id']}", headers=TENANT)
        assert removed.status_code == 204

        await create(client, "Ana", "5511999999999")

    @pytest.mark.asyncio
    async def test_duplicate_block(self, client: AsyncClient) -> None:
        first = await client.post("/api/blocklist", json={"number": "5511999999999"}, headers=TENANT)
        second = await client.post("/api/blocklist", json={"number": "5511999999999"}, headers=TENANT)

        assert first.status_code == 201
        assert second.status_code == 400
        assert second.json()["code"] == "ERR_VALIDATION"

    @pytest.mark.asyncio
    async def test_unblock_missing(self, client: AsyncClient) -> None:
        response = await client.delete("/api/blocklist/999", headers=TENANT)

        assert response.status_code == 404
        assert response.json()["code"] == "ERR_NO_BLOCKED_NUMBER_FOUND"


class TestAppSurface:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient) -> None:
        given = await client.get("/health", headers={"X-Request-ID": "req-123"})
        generated = await client.get("/health")

        assert given.headers["X-Request-ID"] == "req-123"
        assert generated.headers["X-Request-ID"]

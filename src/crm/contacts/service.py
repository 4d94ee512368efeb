"""
Contact service: tenant-scoped reads and validated, broadcast mutations.

A mutation runs normalize -> format check -> validate -> resolve -> persist ->
commit -> publish. Nothing is written before every check has passed, and
nothing is published before the write is committed.
"""

from typing import Any, Sequence

from crm.contacts.importer import BulkImportCoordinator
from crm.contacts.models import Contact, ImportPolicy
from crm.contacts.normalization import (
    FieldError,
    check_contact_fields,
    check_email,
    check_name,
    check_number,
    normalize_number,
)
from crm.contacts.repository import ContactRepositoryProtocol
from crm.contacts.schemas import (
    ContactCreate,
    ContactImportRow,
    ContactListResponse,
    ContactResponse,
    ContactUpdate,
    ImportResultResponse,
)
from crm.contacts.validator import ContactValidator
from crm.realtime.broadcaster import EventBroadcaster, contact_event_name
from crm.shared.exceptions import NotFoundError, ValidationError
from crm.shared.logging import get_logger

logger = get_logger(__name__)

CONTACT_NOT_FOUND = "ERR_NO_CONTACT_FOUND"


def raise_for_field_error(error: FieldError | None) -> None:
    """Turn a failed format check into the ValidationError callers see."""
    if error is None:
        return
    raise ValidationError(
        error.message,
        details={"field": error.field, "value": error.value},
    )


class ContactService:
    """Service for contact management operations."""

    def __init__(
        self,
        repository: ContactRepositoryProtocol,
        validator: ContactValidator,
        broadcaster: EventBroadcaster,
        page_size: int = 20,
        fetch_profile_pictures: bool = False,
        import_policy: ImportPolicy = ImportPolicy.BEST_EFFORT,
        import_max_concurrency: int = 4,
    ) -> None:
        """Initialize contact service.

        Args:
            repository: Tenant-scoped contact store.
            validator: Number validator bound to the company's resolver.
            broadcaster: Real-time publisher for change events.
            page_size: Contacts per page of list_contacts().
            fetch_profile_pictures: Look up the profile picture on create.
            import_policy: Default policy for import_contacts().
            import_max_concurrency: Rows validated at once during imports.
        """
        self._repo = repository
        self._validator = validator
        self._broadcaster = broadcaster
        self._page_size = page_size
        self._fetch_profile_pictures = fetch_profile_pictures
        self._import_policy = import_policy
        self._import_max_concurrency = import_max_concurrency

    def _publish(self, company_id: int, payload: dict[str, Any]) -> None:
        self._broadcaster.publish(company_id, contact_event_name(company_id), payload)

    def publish_created(self, company_id: int, contact: ContactResponse) -> None:
        self._publish(company_id, {"action": "create", "contact": contact.model_dump(mode="json")})

    async def list_contacts(
        self,
        company_id: int,
        search_param: str | None = None,
        page_number: int = 1,
    ) -> ContactListResponse:
        page_number = max(page_number, 1)
        contacts, count = await self._repo.list_page(
            company_id,
            search=search_param,
            page=page_number,
            page_size=self._page_size,
        )
        offset = (page_number - 1) * self._page_size
        return ContactListResponse(
            contacts=[ContactResponse.model_validate(c) for c in contacts],
            count=count,
            has_more=count > offset + len(contacts),
        )

    async def simple_list(self, company_id: int, name: str | None = None) -> list[ContactResponse]:
        contacts: Sequence[Contact] = await self._repo.simple_list(company_id, name=name)
        return [ContactResponse.model_validate(c) for c in contacts]

    async def show_contact(self, company_id: int, contact_id: int) -> ContactResponse:
        """Get a single contact.

        Raises:
            NotFoundError: If the contact does not exist for the company.
        """
        contact = await self._repo.get(company_id, contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {contact_id} not found", code=CONTACT_NOT_FOUND)
        return ContactResponse.model_validate(contact)

    async def get_contact_by_name_and_number(
        self,
        company_id: int,
        name: str,
        number: str,
    ) -> ContactResponse:
        """Find a contact by number; the name is only reported when missing.

        Raises:
            NotFoundError: If no contact of the company has that number.
        """
        normalized = normalize_number(number)
        contact = await self._repo.get_by_number(company_id, normalized) if normalized else None
        if contact is None:
            raise NotFoundError(
                f"Contact {name!r} with number {normalized!r} not found",
                code=CONTACT_NOT_FOUND,
            )
        return ContactResponse.model_validate(contact)

    async def create_contact(self, company_id: int, data: ContactCreate) -> ContactResponse:
        """Validate, resolve, persist and broadcast a new contact.

        Raises:
            ValidationError: name/number/email malformed.
            InvalidContactError: number rejected by the company's rules.
            UnreachableNumberError: number unknown to the messaging network.
        """
        number = normalize_number(data.number)
        raise_for_field_error(check_contact_fields(data.name, number, data.email))

        identity = await self._validator.resolve_canonical_number(number, company_id)

        profile_pic_url = ""
        if self._fetch_profile_pictures:
            profile_pic_url = await self._validator.fetch_profile_pic_url(identity, company_id)

        try:
            contact = await self._repo.create(
                company_id,
                name=data.name.strip(),
                number=identity.number,
                email=(data.email or "").strip(),
                profile_pic_url=profile_pic_url,
                extra_info=data.extra_info,
            )
            response = ContactResponse.model_validate(contact)
            await self._repo.commit()
        except Exception:
            await self._repo.rollback()
            raise

        logger.info(
            "Contact created",
            extra={"company_id": company_id, "contact_id": response.id},
        )
        self.publish_created(company_id, response)
        return response

    async def update_contact(
        self,
        company_id: int,
        contact_id: int,
        data: ContactUpdate,
    ) -> ContactResponse:
        """Apply a partial update; a supplied number is re-validated.

        Raises:
            ValidationError, InvalidContactError, UnreachableNumberError: as
                for create_contact().
            NotFoundError: If the contact does not exist for the company.
        """
        if data.name is not None:
            raise_for_field_error(check_name(data.name))
        raise_for_field_error(check_email(data.email))

        number: str | None = None
        if data.number is not None:
            number = normalize_number(data.number)
            raise_for_field_error(check_number(number))
            identity = await self._validator.resolve_canonical_number(number, company_id)
            number = identity.number

        try:
            contact = await self._repo.update(
                company_id,
                contact_id,
                name=data.name.strip() if data.name is not None else None,
                number=number,
                email=data.email.strip() if data.email is not None else None,
                extra_info=data.extra_info,
            )
            if contact is None:
                raise NotFoundError(f"Contact {contact_id} not found", code=CONTACT_NOT_FOUND)
            response = ContactResponse.model_validate(contact)
            await self._repo.commit()
        except Exception:
            await self._repo.rollback()
            raise

        logger.info(
            "Contact updated",
            extra={"company_id": company_id, "contact_id": contact_id},
        )
        self._publish(company_id, {"action": "update", "contact": response.model_dump(mode="json")})
        return response

    async def delete_contact(self, company_id: int, contact_id: int) -> None:
        """Delete a contact of the company.

        Raises:
            NotFoundError: If the contact does not exist for the company.
        """
        contact = await self._repo.get(company_id, contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {contact_id} not found", code=CONTACT_NOT_FOUND)

        try:
            await self._repo.delete(company_id, contact_id)
            await self._repo.commit()
        except Exception:
            await self._repo.rollback()
            raise

        logger.info(
            "Contact deleted",
            extra={"company_id": company_id, "contact_id": contact_id},
        )
        self._publish(company_id, {"action": "delete", "contactId": contact_id})

    async def import_contacts(
        self,
        company_id: int,
        rows: Sequence[ContactImportRow],
        policy: ImportPolicy | None = None,
    ) -> ImportResultResponse:
        """Bulk-create contacts from uploaded rows under a batch policy."""
        coordinator = BulkImportCoordinator(
            repository=self._repo,
            validator=self._validator,
            on_created=self.publish_created,
            max_concurrency=self._import_max_concurrency,
        )
        return await coordinator.run(company_id, rows, policy or self._import_policy)

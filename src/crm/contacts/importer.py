"""
Bulk contact import.

Each row goes through the same pipeline as a single create. How a failing row
affects the rest of the batch is decided by ImportPolicy:

- BEST_EFFORT skips failing rows and creates the others.
- ALL_OR_NOTHING creates nothing unless every row is valid.
- ABORT_ON_ERROR stops at the first failing row, keeping the rows already
  committed. It exists for clients that depend on the old upload behaviour.

Validation may run concurrently; creation, events and outcomes always follow
input order.
"""

from dataclasses import dataclass
from typing import Callable, Sequence

import anyio

from crm.contacts.models import ImportPolicy, ImportState, RowStatus
from crm.contacts.normalization import check_contact_fields, normalize_number
from crm.contacts.repository import ContactRepositoryProtocol
from crm.contacts.schemas import (
    ContactImportRow,
    ContactResponse,
    ImportResultResponse,
    ImportRowOutcome,
)
from crm.contacts.validator import ContactValidator
from crm.shared.exceptions import AppError, ValidationError
from crm.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _RowCheck:
    """Result of validating one row; number is canonical when error is None."""

    row: int
    name: str
    number: str
    email: str
    error: AppError | None = None


class BulkImportCoordinator:
    """Runs one import batch for one company."""

    def __init__(
        self,
        repository: ContactRepositoryProtocol,
        validator: ContactValidator,
        on_created: Callable[[int, ContactResponse], None],
        max_concurrency: int = 4,
    ) -> None:
        """Initialize the coordinator.

        Args:
            repository: Contact store; the coordinator commits through it.
            validator: Number validator for the batch's company.
            on_created: Called once per committed contact, in input order.
            max_concurrency: Rows validated at once (1 means sequential).
        """
        self._repo = repository
        self._validator = validator
        self._on_created = on_created
        self._max_concurrency = max(1, max_concurrency)

    async def run(
        self,
        company_id: int,
        rows: Sequence[ContactImportRow],
        policy: ImportPolicy = ImportPolicy.BEST_EFFORT,
    ) -> ImportResultResponse:
        if policy is ImportPolicy.ABORT_ON_ERROR:
            result = await self._run_abort_on_error(company_id, rows)
        elif policy is ImportPolicy.ALL_OR_NOTHING:
            result = await self._run_all_or_nothing(company_id, rows)
        else:
            result = await self._run_best_effort(company_id, rows)

        logger.info(
            "Contact import finished",
            extra={
                "company_id": company_id,
                "policy": policy.value,
                "state": result.state.value,
                "total_rows": result.total_rows,
                "created_count": result.created_count,
                "failed_count": result.failed_count,
            },
        )
        return result

    async def _check_row(self, company_id: int, row_number: int, row: ContactImportRow) -> _RowCheck:
        number = normalize_number(row.number)
        check = _RowCheck(
            row=row_number,
            name=row.name.strip(),
            number=number,
            email=(row.email or "").strip(),
        )

        field_error = check_contact_fields(row.name, number, row.email)
        if field_error is not None:
            check.error = ValidationError(
                field_error.message,
                details={"field": field_error.field, "value": field_error.value},
            )
            return check

        try:
            identity = await self._validator.resolve_canonical_number(number, company_id)
        except AppError as e:
            check.error = e
            return check

        check.number = identity.number
        return check

    async def _check_rows(
        self,
        company_id: int,
        rows: Sequence[ContactImportRow],
    ) -> list[_RowCheck]:
        results: list[_RowCheck | None] = [None] * len(rows)
        limiter = anyio.CapacityLimiter(self._max_concurrency)

        async def check(index: int, row: ContactImportRow) -> None:
            async with limiter:
                results[index] = await self._check_row(company_id, _row_number(index, row), row)

        async with anyio.create_task_group() as tg:
            for index, row in enumerate(rows):
                tg.start_soon(check, index, row)

        return [r for r in results if r is not None]

    async def _create_all(
        self,
        company_id: int,
        checks: Sequence[_RowCheck],
    ) -> list[ContactResponse]:
        """Create the rows in one unit of work and commit once."""
        created: list[ContactResponse] = []
        try:
            for check in checks:
                contact = await self._repo.create(
                    company_id,
                    name=check.name,
                    number=check.number,
                    email=check.email,
                )
                created.append(ContactResponse.model_validate(contact))
            await self._repo.commit()
        except Exception:
            await self._repo.rollback()
            raise
        return created

    async def _run_best_effort(
        self,
        company_id: int,
        rows: Sequence[ContactImportRow],
    ) -> ImportResultResponse:
        checks = await self._check_rows(company_id, rows)
        valid = [c for c in checks if c.error is None]
        created = await self._create_all(company_id, valid)

        created_contacts = iter(created)
        outcomes = []
        for check in checks:
            if check.error is None:
                contact = next(created_contacts)
                self._on_created(company_id, contact)
                outcomes.append(_created_outcome(check.row, contact))
            else:
                outcomes.append(_failed_outcome(check))

        failed = len(checks) - len(created)
        return ImportResultResponse(
            state=ImportState.COMPLETED_WITH_ERRORS if failed else ImportState.COMPLETED,
            policy=ImportPolicy.BEST_EFFORT,
            total_rows=len(rows),
            created_count=len(created),
            failed_count=failed,
            created=created,
            outcomes=outcomes,
            message=f"{len(created)} of {len(rows)} contacts imported",
        )

    async def _run_all_or_nothing(
        self,
        company_id: int,
        rows: Sequence[ContactImportRow],
    ) -> ImportResultResponse:
        checks = await self._check_rows(company_id, rows)
        failures = [c for c in checks if c.error is not None]

        if failures:
            outcomes = [
                _failed_outcome(c)
                if c.error is not None
                else ImportRowOutcome(row=c.row, status=RowStatus.NOT_ATTEMPTED, number=c.number)
                for c in checks
            ]
            return ImportResultResponse(
                state=ImportState.REJECTED,
                policy=ImportPolicy.ALL_OR_NOTHING,
                total_rows=len(rows),
                created_count=0,
                failed_count=len(failures),
                outcomes=outcomes,
                message=f"{len(failures)} of {len(rows)} rows are invalid; nothing was imported",
            )

        created = await self._create_all(company_id, checks)
        for contact in created:
            self._on_created(company_id, contact)

        return ImportResultResponse(
            state=ImportState.COMPLETED,
            policy=ImportPolicy.ALL_OR_NOTHING,
            total_rows=len(rows),
            created_count=len(created),
            failed_count=0,
            created=created,
            outcomes=[_created_outcome(c.row, contact) for c, contact in zip(checks, created)],
            message=f"{len(created)} of {len(rows)} contacts imported",
        )

    async def _run_abort_on_error(
        self,
        company_id: int,
        rows: Sequence[ContactImportRow],
    ) -> ImportResultResponse:
        logger.warning(
            "Contact import uses abort_on_error; rows before a failure stay committed",
            extra={"company_id": company_id, "total_rows": len(rows)},
        )

        created: list[ContactResponse] = []
        outcomes: list[ImportRowOutcome] = []

        for index, row in enumerate(rows):
            check = await self._check_row(company_id, _row_number(index, row), row)
            if check.error is not None:
                outcomes.append(_failed_outcome(check))
                outcomes.extend(
                    ImportRowOutcome(row=_row_number(later, rest), status=RowStatus.NOT_ATTEMPTED)
                    for later, rest in enumerate(rows[index + 1 :], start=index + 1)
                )
                return ImportResultResponse(
                    state=ImportState.ABORTED_WITH_PARTIAL_COMMIT,
                    policy=ImportPolicy.ABORT_ON_ERROR,
                    total_rows=len(rows),
                    created_count=len(created),
                    failed_count=1,
                    created=created,
                    outcomes=outcomes,
                    message=(
                        f"Import stopped at row {check.row}: {check.error.message}. "
                        f"{len(created)} contacts were already imported"
                    ),
                )

            [contact] = await self._create_all(company_id, [check])
            self._on_created(company_id, contact)
            created.append(contact)
            outcomes.append(_created_outcome(check.row, contact))

        return ImportResultResponse(
            state=ImportState.COMPLETED,
            policy=ImportPolicy.ABORT_ON_ERROR,
            total_rows=len(rows),
            created_count=len(created),
            failed_count=0,
            created=created,
            outcomes=outcomes,
            message=f"{len(created)} of {len(rows)} contacts imported",
        )


def _row_number(index: int, row: ContactImportRow) -> int:
    return row.row_number or index + 1


def _created_outcome(row: int, contact: ContactResponse) -> ImportRowOutcome:
    return ImportRowOutcome(
        row=row,
        status=RowStatus.CREATED,
        number=contact.number,
        contact_id=contact.id,
    )


def _failed_outcome(check: _RowCheck) -> ImportRowOutcome:
    assert check.error is not None
    return ImportRowOutcome(
        row=check.row,
        status=RowStatus.FAILED,
        number=check.number or None,
        error_code=check.error.code,
        error=check.error.message,
    )

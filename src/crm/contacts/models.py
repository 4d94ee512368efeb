"""
SQLAlchemy models for contacts.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.shared.database import Base


class Contact(Base):
    """A tenant-scoped contact reachable on the messaging network."""

    __tablename__ = "contacts"
    __table_args__ = (Index("ix_contacts_company_id_number", "company_id", "number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    profile_pic_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    extra_info: Mapped[list["ContactCustomField"]] = relationship(
        "ContactCustomField",
        back_populates="contact",
        cascade="all, delete-orphan",
        order_by="ContactCustomField.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, company_id={self.company_id}, number={self.number})>"


class ContactCustomField(Base):
    """Free-form name/value annotation attached to a contact."""

    __tablename__ = "contact_custom_fields"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[str] = mapped_column(String(1024), nullable=False, default="")

    contact: Mapped[Contact] = relationship("Contact", back_populates="extra_info")


class ImportPolicy(str, Enum):
    """How a bulk import reacts to an invalid row."""

    BEST_EFFORT = "best_effort"
    ALL_OR_NOTHING = "all_or_nothing"
    # Legacy behaviour: stop at the first bad row, keep what was already committed
    ABORT_ON_ERROR = "abort_on_error"


class ImportState(str, Enum):
    """Terminal state of a bulk import batch."""

    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    REJECTED = "rejected"
    ABORTED_WITH_PARTIAL_COMMIT = "aborted_with_partial_commit"


class RowStatus(str, Enum):
    """Outcome of a single import row."""

    CREATED = "created"
    FAILED = "failed"
    NOT_ATTEMPTED = "not_attempted"

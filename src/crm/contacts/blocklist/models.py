"""
SQLAlchemy model for blocked numbers.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from crm.shared.database import Base


class BlockedNumber(Base):
    """A number a company refuses to keep as a contact."""

    __tablename__ = "blocked_numbers"
    __table_args__ = (
        UniqueConstraint("company_id", "number", name="uq_blocked_numbers_company_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<BlockedNumber(id={self.id}, company_id={self.company_id}, number={self.number})>"

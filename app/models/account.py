"""
Account model — an account known to the cross-reference service.

Accounts are owned by the account lifecycle service; this table is the
resolver the integrity auditor consults to decide whether a cross-reference
still points at a live account. Only the fields that matter for that check
(and for display) are kept.

Account ids are the legacy 11-digit numeric keys, stored as BIGINT.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint(
            "id > 0 AND id <= 99999999999",
            name="ck_accounts_id_range",
        ),
    )

    # Caller-assigned legacy account number, not autoincremented
    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
    )

    # Owning customer. Not a foreign key: dangling links are reported by the
    # integrity auditor rather than blocked by the database
    customer_id: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        index=True,
    )

    # "Y" / "N", as in the legacy account record
    active_status: Mapped[str] = mapped_column(
        String(1),
        nullable=False,
        default="Y",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

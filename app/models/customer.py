"""
Customer model — the identity that owns accounts and cards.

Like Account, this table is a resolver for the integrity auditor: a
cross-reference whose customer_id has no row here is an orphan. Customer
ids are the legacy 9-digit numeric keys.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Customer(Base):
    __tablename__ = "customers"

    __table_args__ = (
        CheckConstraint(
            "id > 0 AND id <= 999999999",
            name="ck_customers_id_range",
        ),
    )

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
    )

    first_name: Mapped[str] = mapped_column(
        String(25),
        nullable=False,
    )

    last_name: Mapped[str] = mapped_column(
        String(25),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

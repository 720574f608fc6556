"""
Card cross-reference — the card <-> account <-> customer association.

Two representations live here:

  - CardXref: the canonical immutable value type. Every layer (index,
    auditor, pager, routers) passes these around; there is exactly one
    constructor and no optional "kitchen sink" fields.
  - CardXrefRow: the persisted row in the card_xrefs table.

Persisted layout (legacy VSAM equivalent):
  card_number is the primary key (the KSDS key). account_id and
  customer_id each carry a secondary index — the two alternate index
  paths used for "cards by account" and "cards by customer".

account_id and customer_id are nullable in the table so that records
imported from a legacy extract with a missing link can still be stored and
reported as orphans. The index never accepts such a record through its
normal write operations.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


@dataclass(frozen=True)
class CardXref:
    """One card's association with an account and a customer."""
    card_number: str
    customer_id: int | None
    account_id: int | None

    @classmethod
    def from_row(cls, row: "CardXrefRow") -> "CardXref":
        return cls(
            card_number=row.card_number,
            customer_id=row.customer_id,
            account_id=row.account_id,
        )

    def to_row(self) -> "CardXrefRow":
        return CardXrefRow(
            card_number=self.card_number,
            customer_id=self.customer_id,
            account_id=self.account_id,
        )


class CardXrefRow(Base):
    __tablename__ = "card_xrefs"

    # Fixed-width 16-digit key; string ordering equals numeric ordering
    card_number: Mapped[str] = mapped_column(
        String(16),
        primary_key=True,
    )

    # Alternate index: cards by customer
    customer_id: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        index=True,
    )

    # Alternate index: cards by account
    account_id: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        index=True,
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

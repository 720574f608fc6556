"""
Pydantic schemas for card list endpoints.

Card numbers are NEVER returned in full. Every card leaves the API as a
CardSummary carrying the masked form (****-****-****-NNNN); the full
number stays inside the cross-reference engine, where it is the lookup key.
"""

from pydantic import BaseModel

from app.models.card_xref import CardXref
from app.validation import mask_card_number


class CardSummary(BaseModel):
    """Public representation of a cross-referenced card (masked)."""
    masked_card_number: str
    account_id: int | None
    customer_id: int | None

    @classmethod
    def from_xref(cls, xref: CardXref) -> "CardSummary":
        return cls(
            masked_card_number=mask_card_number(xref.card_number),
            account_id=xref.account_id,
            customer_id=xref.customer_id,
        )


class CardPageResponse(BaseModel):
    """One page of the card list, with legacy browse flags."""
    items: list[CardSummary]
    page: int
    size: int
    total_elements: int
    total_pages: int
    has_next: bool
    has_previous: bool
    is_first: bool
    is_last: bool

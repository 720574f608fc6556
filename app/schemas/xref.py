"""
Pydantic schemas for cross-reference endpoints.

Requests carry full card numbers (they are keys); responses carry the
masked form only. Field types are checked here, strictly (JSON `true` or
`"123"` is not an id); field formats (16 digits, id ranges) by the engine's
validation policy, so both paths answer 422.
"""

from pydantic import BaseModel, Field

from app.models.card_xref import CardXref
from app.validation import mask_card_number


class CardXrefCreateRequest(BaseModel):
    """Request body for POST /xref and items of POST /xref/bulk."""
    card_number: str = Field(..., description="16-digit card number")
    customer_id: int = Field(..., strict=True, description="Owning customer (up to 9 digits)")
    account_id: int = Field(..., strict=True, description="Linked account (up to 11 digits)")

    def to_xref(self) -> CardXref:
        return CardXref(
            card_number=self.card_number,
            customer_id=self.customer_id,
            account_id=self.account_id,
        )


class CardXrefUpdateRequest(BaseModel):
    """Request body for PUT /xref/{card_number}."""
    customer_id: int = Field(..., strict=True)
    account_id: int = Field(..., strict=True)


class BulkCreateRequest(BaseModel):
    records: list[CardXrefCreateRequest]


class BulkCreateResponse(BaseModel):
    submitted: int
    created: int


class CardXrefResponse(BaseModel):
    """A stored cross-reference, card number masked."""
    masked_card_number: str
    customer_id: int | None
    account_id: int | None

    @classmethod
    def from_xref(cls, xref: CardXref) -> "CardXrefResponse":
        return cls(
            masked_card_number=mask_card_number(xref.card_number),
            customer_id=xref.customer_id,
            account_id=xref.account_id,
        )


class LinkValidationResponse(BaseModel):
    masked_card_number: str
    account_id: int
    valid: bool


class CardCountResponse(BaseModel):
    account_id: int
    card_count: int


class PrimaryCardRequest(BaseModel):
    card_number: str


class PrimaryCardResponse(BaseModel):
    account_id: int
    masked_card_number: str

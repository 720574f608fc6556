"""
Cross-reference router — card <-> account <-> customer lookups and writes.

Endpoints:
  POST   /xref                                         — Create a cross-reference
  POST   /xref/bulk                                    — Create many (skips bad rows)
  PUT    /xref/{card_number}                           — Create or reassign
  DELETE /xref/{card_number}                           — Remove (no-op if absent)
  GET    /xref/card/{card_number}                      — Account/customer of a card
  GET    /xref/account/{account_id}/cards              — Cards of an account
  GET    /xref/customer/{customer_id}/cards            — Cards of a customer
  GET    /xref/account/{account_id}/count              — Card count of an account
  GET    /xref/account/{account_id}/cards/{card}/valid — Is the card linked here?
  GET    /xref/account/{account_id}/primary-card       — Primary card
  PUT    /xref/account/{account_id}/primary-card       — Designate primary card

Card numbers come in full (they are keys) and go out masked. The engine
answers "not found" with None / []; only the single-card lookups turn that
into a 404 here. List lookups for an unknown account return [].
"""

from fastapi import APIRouter, Depends, Response, status

from app.dependencies import get_integrity_validator, get_xref_index
from app.exceptions import XrefError
from app.models.card_xref import CardXref
from app.schemas.card import CardSummary
from app.schemas.xref import (
    BulkCreateRequest,
    BulkCreateResponse,
    CardCountResponse,
    CardXrefCreateRequest,
    CardXrefResponse,
    CardXrefUpdateRequest,
    LinkValidationResponse,
    PrimaryCardRequest,
    PrimaryCardResponse,
)
from app.services.integrity_service import IntegrityValidator
from app.services.xref_index import CrossReferenceIndex
from app.validation import mask_card_number

router = APIRouter()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=CardXrefResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a card cross-reference",
)
async def create_xref(
    request: CardXrefCreateRequest,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    """Link a card to an account and customer. 409 if the card is already linked."""
    xref = await index.create(request.to_xref())
    return CardXrefResponse.from_xref(xref)


@router.post(
    "/bulk",
    response_model=BulkCreateResponse,
    summary="Create many cross-references in one batch",
)
async def bulk_create_xrefs(
    request: BulkCreateRequest,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    """
    Load a batch of cross-references atomically.

    Rows with malformed fields, duplicates within the batch and cards that
    are already linked are skipped; the response says how many were created.
    """
    created = await index.bulk_create(r.to_xref() for r in request.records)
    return BulkCreateResponse(submitted=len(request.records), created=created)


@router.put(
    "/{card_number}",
    response_model=CardXrefResponse,
    summary="Create or reassign a card cross-reference",
)
async def upsert_xref(
    card_number: str,
    request: CardXrefUpdateRequest,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    """Store the association, replacing any previous one for this card."""
    xref = await index.upsert(
        CardXref(
            card_number=card_number,
            customer_id=request.customer_id,
            account_id=request.account_id,
        )
    )
    return CardXrefResponse.from_xref(xref)


@router.delete(
    "/{card_number}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a card cross-reference",
)
async def delete_xref(
    card_number: str,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    """Remove the card from all views. Removing an unknown card is not an error."""
    await index.remove_by_card(card_number)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

@router.get(
    "/card/{card_number}",
    response_model=CardXrefResponse,
    summary="Find the account and customer of a card",
)
async def find_by_card(
    card_number: str,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    xref = await index.get(card_number)
    if xref is None:
        raise XrefError.not_found(
            f"No account found for card number {mask_card_number(card_number)}"
        )
    return CardXrefResponse.from_xref(xref)


@router.get(
    "/account/{account_id}/cards",
    response_model=list[CardSummary],
    summary="List the cards of an account",
)
async def find_cards_by_account(
    account_id: int,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    """Cards in ascending card number order; [] for an account without cards."""
    records = await index.snapshot(account_id=account_id)
    return [CardSummary.from_xref(r) for r in records]


@router.get(
    "/customer/{customer_id}/cards",
    response_model=list[CardSummary],
    summary="List the cards of a customer",
)
async def find_cards_by_customer(
    customer_id: int,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    records = await index.snapshot(customer_id=customer_id)
    return [CardSummary.from_xref(r) for r in records]


@router.get(
    "/account/{account_id}/count",
    response_model=CardCountResponse,
    summary="Count the cards of an account",
)
async def count_cards(
    account_id: int,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    return CardCountResponse(account_id=account_id, card_count=await index.card_count(account_id))


@router.get(
    "/account/{account_id}/cards/{card_number}/valid",
    response_model=LinkValidationResponse,
    summary="Check a card-to-account link",
)
async def validate_link(
    account_id: int,
    card_number: str,
    validator: IntegrityValidator = Depends(get_integrity_validator),
):
    """`valid` is false both for a card linked elsewhere and for an unknown card."""
    valid = await validator.validate_link(card_number, account_id)
    return LinkValidationResponse(
        masked_card_number=mask_card_number(card_number),
        account_id=account_id,
        valid=valid,
    )


@router.get(
    "/account/{account_id}/primary-card",
    response_model=PrimaryCardResponse,
    summary="Get the primary card of an account",
)
async def get_primary_card(
    account_id: int,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    card_number = await index.get_primary_card(account_id)
    if card_number is None:
        raise XrefError.not_found(f"Account {account_id} has no cards")
    return PrimaryCardResponse(
        account_id=account_id,
        masked_card_number=mask_card_number(card_number),
    )


@router.put(
    "/account/{account_id}/primary-card",
    response_model=PrimaryCardResponse,
    summary="Designate the primary card of an account",
)
async def set_primary_card(
    account_id: int,
    request: PrimaryCardRequest,
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    """The card must already be linked to the account (422 otherwise)."""
    card_number = await index.set_primary_card(account_id, request.card_number)
    return PrimaryCardResponse(
        account_id=account_id,
        masked_card_number=mask_card_number(card_number),
    )

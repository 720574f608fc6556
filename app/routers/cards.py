"""
Cards router — the paged card list.

Endpoints:
  GET /cards — One page of cards, optionally filtered by account and/or
               card number, with legacy browse flags

Paging is zero-based. `size` defaults to the legacy screen size (7 rows)
and may not exceed XREF_MAX_PAGE_SIZE. A page past the end returns an empty
item list with correct flags, not an error.
"""

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_cursor_pager
from app.schemas.card import CardPageResponse
from app.services import card_list_service
from app.services.pagination import CursorPager, KeySpace

router = APIRouter()


@router.get(
    "",
    response_model=CardPageResponse,
    summary="List cards, one page at a time",
)
async def list_cards(
    account_id: int | None = Query(default=None, description="Only cards of this account"),
    card_number: str | None = Query(default=None, description="Only this card"),
    page: int = Query(default=0, description="Zero-based page number"),
    size: int | None = Query(default=None, description="Rows per page"),
    key_space: KeySpace = Query(default=KeySpace.CARD_NUMBER, description="Sort order"),
    pager: CursorPager = Depends(get_cursor_pager),
):
    result = await card_list_service.list_cards_page(
        pager,
        account_id=account_id,
        card_number=card_number,
        page=page,
        size=size,
        key_space=key_space,
    )
    return CardPageResponse(
        items=result.items,
        page=result.page_number,
        size=result.page_size,
        total_elements=result.total_elements,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_previous=result.has_previous,
        is_first=result.is_first,
        is_last=result.is_last,
    )

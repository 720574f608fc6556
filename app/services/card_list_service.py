"""
Card list service — the paged card list behind GET /cards.

Filter rules (as on the legacy card list screen):
  - account and card number: the one card, if it belongs to that account
  - card number only:        the one card, if it exists
  - account only:            every card of the account
  - neither:                 every card

Filters are validated with the same policy as the index. Page sizes are
capped at XREF_MAX_PAGE_SIZE here, on the way in from a screen or an API
caller; the pager itself accepts any positive size. Results are
CardSummary objects: masking happens here, in the presentation layer; the
pager and index only ever see full card numbers.
"""

import logging

from app.config import settings
from app.schemas.card import CardSummary
from app.services.pagination import (
    BrowseResult,
    CursorPager,
    Direction,
    KeySpace,
    Page,
)
from app.validation import (
    mask_card_number,
    validate_card_number,
    validate_page_request,
)

logger = logging.getLogger(__name__)


async def list_cards_page(
    pager: CursorPager,
    account_id: int | None = None,
    card_number: str | None = None,
    page: int = 0,
    size: int | None = None,
    key_space: KeySpace = KeySpace.CARD_NUMBER,
    max_page_size: int | None = None,
) -> Page[CardSummary]:
    """
    One page of masked card summaries.

    Args:
        pager: The CursorPager over the application's index.
        account_id: Optional account filter.
        card_number: Optional exact card number filter.
        page: Zero-based page number.
        size: Page size; XREF_DEFAULT_PAGE_SIZE when omitted.
        key_space: Ordering of the list.
        max_page_size: Largest allowed size; XREF_MAX_PAGE_SIZE when omitted.

    Raises:
        XrefError(VALIDATION): Malformed filter or paging parameters.
    """
    if size is None:
        size = settings.XREF_DEFAULT_PAGE_SIZE
    if max_page_size is None:
        max_page_size = settings.XREF_MAX_PAGE_SIZE
    validate_page_request(page, size, max_page_size)

    result = await pager.page(
        key_space,
        page,
        size,
        account_id=account_id,
        card_number=card_number,
    )
    logger.debug(
        "Card list page %d (size %d, account=%s, card=%s): %d of %d",
        page, size, account_id,
        mask_card_number(card_number) if card_number else None,
        len(result.items), result.total_elements,
    )
    return result.map(CardSummary.from_xref)


async def browse_cards(
    pager: CursorPager,
    start_card_number: str | None = None,
    direction: Direction = Direction.FORWARD,
    size: int | None = None,
    account_id: int | None = None,
    max_page_size: int | None = None,
) -> BrowseResult[CardSummary]:
    """
    Keyset browse in card number order, from `start_card_number`.

    The returned first_key/last_key are full card numbers: they are the
    cursor for the next READNEXT/READPREV and must stay server-side.
    """
    if start_card_number is not None:
        validate_card_number(start_card_number)
    if size is None:
        size = settings.XREF_DEFAULT_PAGE_SIZE
    if max_page_size is None:
        max_page_size = settings.XREF_MAX_PAGE_SIZE
    validate_page_request(0, size, max_page_size)
    result = await pager.browse(
        KeySpace.CARD_NUMBER,
        start_card_number,
        direction,
        size,
        account_id=account_id,
    )
    return result.map(CardSummary.from_xref)

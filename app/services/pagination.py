"""
Cursor pager — fixed-size page browsing over the cross-reference index.

Two ways to walk an ordered key space, both reproducing the legacy
screen-list browse (STARTBR / READNEXT / READPREV):

  page()    page-number addressing. Slice [page*size, page*size+size) of
            the ordered records, with the usual boundary flags:
                has_next     = (page + 1) * size < total
                has_previous = page > 0
                is_first     = page == 0
                is_last      = not has_next
            A page past the end is empty (not an error); an empty key
            space is a single empty page that is both first and last.

  browse()  keyset addressing. Start from a key and read `size` records
            forward (keys after it) or backward (keys before it), the way
            the legacy screens page from the first/last key on display.

Each call takes one snapshot of the index, so a single page never loses or
repeats a record even if writes land between calls. Two calls may see
different data; there is no cross-call isolation, as with legacy browse
cursors.

paginate() and browse_keys() are the pure slicing steps, usable on any
sorted sequence.
"""

import bisect
import enum
from dataclasses import dataclass
from typing import Any, Callable, Generic, Sequence, TypeVar

from app.exceptions import XrefError
from app.models.card_xref import CardXref
from app.services.xref_index import CrossReferenceIndex
from app.validation import validate_page_request

T = TypeVar("T")


class KeySpace(str, enum.Enum):
    CARD_NUMBER = "card_number"
    ACCOUNT_ID = "account_id"


class Direction(str, enum.Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


def key_for(key_space: KeySpace) -> Callable[[CardXref], Any]:
    if key_space is KeySpace.ACCOUNT_ID:
        # Imported orphans may lack an account; they sort first
        return lambda xref: (xref.account_id or 0, xref.card_number)
    return lambda xref: xref.card_number


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page_number: int
    page_size: int
    total_elements: int
    total_pages: int
    has_next: bool
    has_previous: bool
    is_first: bool
    is_last: bool

    def map(self, fn: Callable[[T], Any]) -> "Page":
        return Page(
            items=[fn(item) for item in self.items],
            page_number=self.page_number,
            page_size=self.page_size,
            total_elements=self.total_elements,
            total_pages=self.total_pages,
            has_next=self.has_next,
            has_previous=self.has_previous,
            is_first=self.is_first,
            is_last=self.is_last,
        )


@dataclass(frozen=True)
class BrowseResult(Generic[T]):
    items: list[T]
    first_key: Any
    last_key: Any
    has_more: bool

    def map(self, fn: Callable[[T], Any]) -> "BrowseResult":
        return BrowseResult(
            items=[fn(item) for item in self.items],
            first_key=self.first_key,
            last_key=self.last_key,
            has_more=self.has_more,
        )


def paginate(items: Sequence[T], page_number: int, page_size: int) -> Page[T]:
    """Cut one page out of an already ordered sequence."""
    total = len(items)
    start = page_number * page_size
    window = list(items[start:start + page_size]) if start < total else []
    has_next = (page_number + 1) * page_size < total
    return Page(
        items=window,
        page_number=page_number,
        page_size=page_size,
        total_elements=total,
        total_pages=max(1, -(-total // page_size)),
        has_next=has_next,
        has_previous=page_number > 0,
        is_first=page_number == 0,
        is_last=not has_next,
    )


def browse_keys(
    items: Sequence[T],
    key: Callable[[T], Any],
    start_key: Any,
    direction: Direction,
    size: int,
    inclusive: bool = False,
) -> BrowseResult[T]:
    """
    Keyset read over a sequence sorted by `key`.

    Forward returns up to `size` items with key > start_key (>= when
    inclusive), from the beginning when start_key is None. Backward returns
    up to `size` items with key < start_key (<=), from the end when
    start_key is None. Items are always in ascending order. has_more tells
    whether more items lie further in the browse direction.
    """
    keys = [key(item) for item in items]
    if direction is Direction.FORWARD:
        if start_key is None:
            lo = 0
        elif inclusive:
            lo = bisect.bisect_left(keys, start_key)
        else:
            lo = bisect.bisect_right(keys, start_key)
        hi = min(lo + size, len(items))
        has_more = hi < len(items)
    else:
        if start_key is None:
            hi = len(items)
        elif inclusive:
            hi = bisect.bisect_right(keys, start_key)
        else:
            hi = bisect.bisect_left(keys, start_key)
        lo = max(0, hi - size)
        has_more = lo > 0

    window = list(items[lo:hi])
    return BrowseResult(
        items=window,
        first_key=keys[lo] if window else None,
        last_key=keys[hi - 1] if window else None,
        has_more=has_more,
    )


class CursorPager:

    def __init__(self, index: CrossReferenceIndex):
        self._index = index

    async def page(
        self,
        key_space: KeySpace,
        page_number: int,
        page_size: int,
        *,
        account_id: int | None = None,
        customer_id: int | None = None,
        card_number: str | None = None,
    ) -> Page[CardXref]:
        """
        One page of records ordered by `key_space`.

        Raises:
            XrefError(VALIDATION): negative page number, page size below 1,
                or a malformed filter.
        """
        key_space = self._key_space(key_space)
        validate_page_request(page_number, page_size)
        records = await self._index.snapshot(
            account_id=account_id, customer_id=customer_id, card_number=card_number,
        )
        if key_space is KeySpace.ACCOUNT_ID:
            records.sort(key=key_for(key_space))
        return paginate(records, page_number, page_size)

    async def browse(
        self,
        key_space: KeySpace,
        start_key: Any,
        direction: Direction,
        size: int,
        *,
        inclusive: bool = False,
        account_id: int | None = None,
        customer_id: int | None = None,
    ) -> BrowseResult[CardXref]:
        """
        Keyset read of `size` records from `start_key` in `direction`.

        For KeySpace.CARD_NUMBER the key is a card number; for
        KeySpace.ACCOUNT_ID it is an (account_id, card_number) tuple.
        """
        key_space = self._key_space(key_space)
        try:
            direction = Direction(direction)
        except ValueError as exc:
            raise XrefError.validation(
                f"Unknown browse direction: {direction!r}", field="direction"
            ) from exc
        validate_page_request(0, size)
        records = await self._index.snapshot(account_id=account_id, customer_id=customer_id)
        key = key_for(key_space)
        if key_space is KeySpace.ACCOUNT_ID:
            records.sort(key=key)
        try:
            return browse_keys(records, key, start_key, direction, size, inclusive)
        except TypeError as exc:
            raise XrefError.validation(
                f"Start key does not match the {key_space.value} key space",
                field="start_key",
            ) from exc

    @staticmethod
    def _key_space(value) -> KeySpace:
        try:
            return KeySpace(value)
        except ValueError as exc:
            raise XrefError.validation(
                f"Unknown key space: {value!r}", field="key_space"
            ) from exc

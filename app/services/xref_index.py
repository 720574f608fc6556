"""
Cross-reference index — the single owner of the card/account/customer relation.

The index keeps one canonical relation and the views derived from it:

    _by_card       card_number -> CardXref         (primary, KSDS key)
    _ordered       sorted list of all card numbers  (key-sequenced order)
    _by_account    account_id  -> sorted [card_number]   (alternate index)
    _by_customer   customer_id -> sorted [card_number]   (alternate index)
    _primary       account_id  -> designated primary card_number

Consistency:
  Every mutation goes through a Batch. A batch is opened under the write
  side of the ReadWriteLock, stages its puts and removals, then on exit
  (1) writes them through to the store in one transaction and (2) applies
  them to every view. If the body raises, or the store rejects the batch,
  nothing is applied. A batch cancelled mid-commit still applies what the
  store committed. Readers take the read side, so no reader can ever see
  a card in one view and not in another.

Ordering:
  Card numbers are fixed-width digit strings, so plain string ordering is
  the numeric ordering and the legacy key-sequenced file ordering. All
  reverse views are kept sorted with bisect; lookups return copies.

Not-found is not an error: lookups return None or an empty list. Malformed
keys raise XrefError(VALIDATION) before the lock is taken.
"""

import asyncio
import bisect
import logging
from contextlib import asynccontextmanager
from typing import Iterable

from app.exceptions import XrefError
from app.models.card_xref import CardXref
from app.services.rwlock import ReadWriteLock
from app.services.xref_store import XrefStore
from app.validation import (
    is_card_number,
    mask_card_number,
    validate_account_id,
    validate_card_number,
    validate_customer_id,
    validate_xref,
)

logger = logging.getLogger(__name__)


def _insort(cards: list[str], card_number: str) -> None:
    position = bisect.bisect_left(cards, card_number)
    if position == len(cards) or cards[position] != card_number:
        cards.insert(position, card_number)


def _discard(cards: list[str], card_number: str) -> None:
    position = bisect.bisect_left(cards, card_number)
    if position < len(cards) and cards[position] == card_number:
        del cards[position]


class Batch:
    """
    Staged changes against the index, applied atomically on exit.

    Obtained from `CrossReferenceIndex.batch()`; only valid inside that
    `async with` block. get() sees staged changes; the list reads
    (cards_by_account / cards_by_customer) see the committed state.
    """

    def __init__(self, index: "CrossReferenceIndex"):
        self._index = index
        self._saves: dict[str, CardXref] = {}
        self._deletes: set[str] = set()

    @property
    def saves(self) -> list[CardXref]:
        return list(self._saves.values())

    @property
    def deletes(self) -> list[str]:
        return sorted(self._deletes)

    def __bool__(self) -> bool:
        return bool(self._saves or self._deletes)

    def get(self, card_number: str) -> CardXref | None:
        if card_number in self._deletes:
            return None
        if card_number in self._saves:
            return self._saves[card_number]
        return self._index._by_card.get(card_number)

    def cards_by_account(self, account_id: int) -> list[str]:
        return list(self._index._by_account.get(account_id, ()))

    def cards_by_customer(self, customer_id: int) -> list[str]:
        return list(self._index._by_customer.get(customer_id, ()))

    def put(self, xref: CardXref) -> None:
        self._deletes.discard(xref.card_number)
        self._saves[xref.card_number] = xref

    def remove(self, card_number: str) -> None:
        self._saves.pop(card_number, None)
        if card_number in self._index._by_card:
            self._deletes.add(card_number)


class CrossReferenceIndex:
    """
    In-memory cross-reference index with optional write-through persistence.

    Args:
        store: Persistence collaborator. When None the index lives in
            memory only (used by tooling and unit tests).
    """

    def __init__(self, store: XrefStore | None = None):
        self._store = store
        self._lock = ReadWriteLock()
        self._by_card: dict[str, CardXref] = {}
        self._ordered: list[str] = []
        self._by_account: dict[int, list[str]] = {}
        self._by_customer: dict[int, list[str]] = {}
        self._primary: dict[int, str] = {}

    @property
    def lock(self) -> ReadWriteLock:
        return self._lock

    # ------------------------------------------------------------------
    # View maintenance (write lock held, no I/O)
    # ------------------------------------------------------------------

    def _link(self, xref: CardXref) -> None:
        self._by_card[xref.card_number] = xref
        _insort(self._ordered, xref.card_number)
        if xref.account_id is not None:
            _insort(self._by_account.setdefault(xref.account_id, []), xref.card_number)
        if xref.customer_id is not None:
            _insort(self._by_customer.setdefault(xref.customer_id, []), xref.card_number)

    def _unlink(self, card_number: str) -> CardXref | None:
        old = self._by_card.pop(card_number, None)
        if old is None:
            return None
        _discard(self._ordered, card_number)
        if old.account_id is not None:
            cards = self._by_account.get(old.account_id)
            if cards is not None:
                _discard(cards, card_number)
                if not cards:
                    del self._by_account[old.account_id]
            if self._primary.get(old.account_id) == card_number:
                del self._primary[old.account_id]
        if old.customer_id is not None:
            cards = self._by_customer.get(old.customer_id)
            if cards is not None:
                _discard(cards, card_number)
                if not cards:
                    del self._by_customer[old.customer_id]
        return old

    def _reset(self, records: Iterable[CardXref]) -> None:
        self._by_card.clear()
        self._ordered.clear()
        self._by_account.clear()
        self._by_customer.clear()
        self._primary.clear()
        for xref in records:
            self._link(xref)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def batch(self):
        """
        Open an atomic batch under the write lock.

        Usage:
            async with index.batch() as batch:
                for card in batch.cards_by_account(account_id):
                    batch.remove(card)

        Raises:
            XrefError(CONFLICT): The store rejected the batch. The views are
                unchanged.
        """
        async with self._lock.write():
            batch = Batch(self)
            yield batch
            if not batch:
                return
            saves, deletes = batch.saves, batch.deletes
            if self._store is not None:
                await self._commit(saves, deletes)
            self._apply(saves, deletes)

    async def _commit(self, saves, deletes) -> None:
        """
        Write a batch through to the store, surviving cancellation.

        A caller cancelled while the store transaction is in flight waits for
        the transaction to finish. If it committed, the views are updated
        before CancelledError propagates, so the views never fall behind
        the store.
        """
        commit = asyncio.ensure_future(self._store.apply(saves, deletes))
        try:
            await asyncio.shield(commit)
        except asyncio.CancelledError:
            await asyncio.wait([commit])
            if not commit.cancelled() and commit.exception() is None:
                self._apply(saves, deletes)
                logger.warning(
                    "Batch committed after cancellation: %d saved, %d deleted",
                    len(saves), len(deletes),
                )
            raise

    def _apply(self, saves, deletes) -> None:
        for card_number in deletes:
            self._unlink(card_number)
        for xref in saves:
            current = self._by_card.get(xref.card_number)
            keep_primary = (
                current is not None
                and current.account_id == xref.account_id
                and self._primary.get(xref.account_id) == xref.card_number
            )
            self._unlink(xref.card_number)
            self._link(xref)
            if keep_primary:
                self._primary[xref.account_id] = xref.card_number

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def upsert(self, xref: CardXref) -> CardXref:
        """
        Insert a record, or replace the association of an existing card.

        Reassigning a card to another account or customer moves it between
        the reverse views in the same atomic step.
        """
        validate_xref(xref)
        async with self.batch() as batch:
            previous = batch.get(xref.card_number)
            batch.put(xref)
        if previous is None:
            logger.info(
                "Cross-reference created: card %s -> account %s, customer %s",
                mask_card_number(xref.card_number), xref.account_id, xref.customer_id,
            )
        elif previous != xref:
            logger.info(
                "Cross-reference reassigned: card %s account %s -> %s, customer %s -> %s",
                mask_card_number(xref.card_number),
                previous.account_id, xref.account_id,
                previous.customer_id, xref.customer_id,
            )
        return xref

    async def create(self, xref: CardXref) -> CardXref:
        """
        Insert a new record; never replaces.

        Raises:
            XrefError(CONFLICT): The card is already cross-referenced.
        """
        validate_xref(xref)
        async with self.batch() as batch:
            if batch.get(xref.card_number) is not None:
                raise XrefError.conflict(
                    f"Cross-reference already exists for card "
                    f"{mask_card_number(xref.card_number)}"
                )
            batch.put(xref)
        logger.info(
            "Cross-reference created: card %s -> account %s, customer %s",
            mask_card_number(xref.card_number), xref.account_id, xref.customer_id,
        )
        return xref

    async def bulk_create(self, xrefs: Iterable[CardXref]) -> int:
        """
        Insert many records as one atomic batch.

        Invalid records, duplicates within the batch and cards that are
        already indexed are skipped (and logged), not fatal.

        Returns:
            The number of records inserted.
        """
        xrefs = list(xrefs)
        if not xrefs:
            raise XrefError.validation("Cross-reference data list cannot be empty")

        skipped = 0
        async with self.batch() as batch:
            for xref in xrefs:
                try:
                    validate_xref(xref)
                except XrefError as exc:
                    skipped += 1
                    logger.warning("Skipping invalid cross-reference record: %s", exc.detail)
                    continue
                if batch.get(xref.card_number) is not None:
                    skipped += 1
                    logger.warning(
                        "Skipping existing cross-reference for card %s",
                        mask_card_number(xref.card_number),
                    )
                    continue
                batch.put(xref)
            created = len(batch.saves)
        logger.info("Bulk cross-reference load: %d created, %d skipped", created, skipped)
        return created

    async def import_records(self, records: Iterable[CardXref]) -> int:
        """
        Add records from a legacy extract, write-through, as one batch.

        Only the card number key is validated: records whose account or
        customer link is missing or malformed are kept so the integrity
        auditor can report them. Existing cards are replaced.
        """
        records = list(records)
        for xref in records:
            validate_card_number(getattr(xref, "card_number", None))
        async with self.batch() as batch:
            for xref in records:
                batch.put(xref)
        logger.info("Imported %d cross-reference records", len(records))
        return len(records)

    async def remove_by_card(self, card_number: str) -> bool:
        """
        Remove a card from every view. Absent cards are a no-op.

        Returns:
            True if a record was removed.
        """
        validate_card_number(card_number)
        async with self.batch() as batch:
            removed = batch.get(card_number) is not None
            batch.remove(card_number)
        if removed:
            logger.info("Cross-reference removed: card %s", mask_card_number(card_number))
        return removed

    async def load(self) -> int:
        """Replace the in-memory content with everything in the store."""
        if self._store is None:
            return 0
        async with self._lock.write():
            records = await self._store.load_all()
            bad = [r.card_number for r in records if not is_card_number(r.card_number)]
            if bad:
                raise XrefError.validation(
                    f"Store holds {len(bad)} record(s) with malformed card numbers",
                    field="card_number",
                )
            self._reset(records)
        logger.info("Cross-reference index loaded: %d records", len(records))
        return len(records)

    async def set_primary_card(self, account_id: int, card_number: str) -> str:
        """
        Designate the primary card of an account.

        Raises:
            XrefError(VALIDATION): The card does not belong to the account.
        """
        validate_account_id(account_id)
        validate_card_number(card_number)
        async with self._lock.write():
            xref = self._by_card.get(card_number)
            if xref is None or xref.account_id != account_id:
                raise XrefError.validation(
                    f"Card {mask_card_number(card_number)} is not associated "
                    f"with account {account_id}",
                    field="card_number",
                )
            self._primary[account_id] = card_number
        return card_number

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, card_number: str) -> CardXref | None:
        validate_card_number(card_number)
        async with self._lock.read():
            return self._by_card.get(card_number)

    async def lookup_account_by_card(self, card_number: str) -> int | None:
        xref = await self.get(card_number)
        return None if xref is None else xref.account_id

    async def lookup_customer_by_card(self, card_number: str) -> int | None:
        xref = await self.get(card_number)
        return None if xref is None else xref.customer_id

    async def lookup_cards_by_account(self, account_id: int) -> list[str]:
        """Card numbers of an account, ascending; [] if it has none."""
        validate_account_id(account_id)
        async with self._lock.read():
            return list(self._by_account.get(account_id, ()))

    async def lookup_cards_by_customer(self, customer_id: int) -> list[str]:
        """Card numbers of a customer across all accounts, ascending."""
        validate_customer_id(customer_id)
        async with self._lock.read():
            return list(self._by_customer.get(customer_id, ()))

    async def card_count(self, account_id: int) -> int:
        validate_account_id(account_id)
        async with self._lock.read():
            return len(self._by_account.get(account_id, ()))

    async def is_valid_cross_reference(
        self, card_number: str, customer_id: int, account_id: int,
    ) -> bool:
        """True iff the stored record matches all three fields exactly."""
        candidate = validate_xref(CardXref(card_number, customer_id, account_id))
        async with self._lock.read():
            return self._by_card.get(card_number) == candidate

    async def get_primary_card(self, account_id: int) -> str | None:
        """
        The designated primary card, else the account's lowest card number,
        else None when the account has no cards.
        """
        validate_account_id(account_id)
        async with self._lock.read():
            designated = self._primary.get(account_id)
            if designated is not None:
                return designated
            cards = self._by_account.get(account_id)
            return cards[0] if cards else None

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._by_card)

    async def snapshot(
        self,
        account_id: int | None = None,
        customer_id: int | None = None,
        card_number: str | None = None,
    ) -> list[CardXref]:
        """
        Point-in-time copy of the records in card number order.

        Filters combine with AND. The copy is taken under the read lock, so
        it never mixes states from before and after a concurrent write.
        """
        if account_id is not None:
            validate_account_id(account_id)
        if customer_id is not None:
            validate_customer_id(customer_id)
        if card_number is not None:
            validate_card_number(card_number)

        async with self._lock.read():
            if card_number is not None:
                xref = self._by_card.get(card_number)
                records = [] if xref is None else [xref]
            elif account_id is not None:
                records = [self._by_card[c] for c in self._by_account.get(account_id, ())]
            elif customer_id is not None:
                records = [self._by_card[c] for c in self._by_customer.get(customer_id, ())]
            else:
                records = [self._by_card[c] for c in self._ordered]

        if account_id is not None:
            records = [r for r in records if r.account_id == account_id]
        if customer_id is not None:
            records = [r for r in records if r.customer_id == customer_id]
        return records

    async def export_views(self) -> dict:
        """Copies of every view, taken together under the read lock."""
        async with self._lock.read():
            return {
                "by_card": dict(self._by_card),
                "ordered": list(self._ordered),
                "by_account": {k: list(v) for k, v in self._by_account.items()},
                "by_customer": {k: list(v) for k, v in self._by_customer.items()},
                "primary": dict(self._primary),
            }

"""
Tests for the cross-reference index.

These tests verify:
  - upsert / create / remove keep all three views consistent
  - Reassignment moves a card between account and customer views atomically
  - Lookups return ascending card numbers and treat "not found" as data
  - Malformed input is rejected before anything changes
  - bulk_create skips bad rows and applies the rest as one batch
  - import_records admits legacy rows with broken links
  - Primary card designation follows the card's membership
  - Writes go through to the database and survive a reload
  - A rejected store write leaves the views untouched
  - Concurrent readers never observe a half-applied batch
  - A writer cancelled mid-commit leaves the views matching the store
"""

import asyncio

import pytest
from sqlalchemy import select

from app.exceptions import XrefError, XrefErrorKind
from app.models.card_xref import CardXref, CardXrefRow
from app.services.xref_index import CrossReferenceIndex


CARD_A = "4111111111111111"
CARD_B = "4222222222222222"
CARD_C = "4333333333333333"
ACCOUNT_ID = 12345678901
OTHER_ACCOUNT_ID = 98765432109
CUSTOMER_ID = 123456789
OTHER_CUSTOMER_ID = 987654321


async def assert_views_agree(index: CrossReferenceIndex, account_ids, customer_ids):
    """For every account/customer, the reverse view equals the forward relation."""
    records = await index.snapshot()
    for account_id in account_ids:
        expected = sorted(r.card_number for r in records if r.account_id == account_id)
        assert await index.lookup_cards_by_account(account_id) == expected
        for card in expected:
            assert await index.lookup_account_by_card(card) == account_id
    for customer_id in customer_ids:
        expected = sorted(r.card_number for r in records if r.customer_id == customer_id)
        assert await index.lookup_cards_by_customer(customer_id) == expected


class RejectingStore:
    """A store whose writes always conflict."""

    async def load_all(self):
        return []

    async def apply(self, saves, deletes):
        raise XrefError.conflict("simulated concurrent write")


class SlowStore:
    """A store whose commit waits until the test releases it."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.committed = []

    async def load_all(self):
        return list(self.committed)

    async def apply(self, saves, deletes):
        self.entered.set()
        await self.release.wait()
        self.committed.extend(saves)


class TestUpsert:

    async def test_round_trip(self, memory_index):
        """After upsert the card resolves to its account and appears in its list."""
        xref = CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID)
        stored = await memory_index.upsert(xref)

        assert stored == xref
        assert await memory_index.lookup_account_by_card(CARD_A) == ACCOUNT_ID
        assert await memory_index.lookup_customer_by_card(CARD_A) == CUSTOMER_ID
        assert CARD_A in await memory_index.lookup_cards_by_account(ACCOUNT_ID)
        assert CARD_A in await memory_index.lookup_cards_by_customer(CUSTOMER_ID)

    async def test_reassignment_moves_card_between_views(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        await memory_index.upsert(CardXref(CARD_A, OTHER_CUSTOMER_ID, OTHER_ACCOUNT_ID))

        assert await memory_index.lookup_account_by_card(CARD_A) == OTHER_ACCOUNT_ID
        assert await memory_index.lookup_cards_by_account(ACCOUNT_ID) == []
        assert await memory_index.lookup_cards_by_customer(CUSTOMER_ID) == []
        assert await memory_index.lookup_cards_by_account(OTHER_ACCOUNT_ID) == [CARD_A]
        assert await memory_index.lookup_cards_by_customer(OTHER_CUSTOMER_ID) == [CARD_A]
        assert await memory_index.count() == 1

    async def test_fifteen_digit_card_rejected_without_change(self, memory_index):
        with pytest.raises(XrefError) as exc_info:
            await memory_index.upsert(CardXref("411111111111111", CUSTOMER_ID, ACCOUNT_ID))
        assert exc_info.value.kind is XrefErrorKind.VALIDATION
        assert await memory_index.count() == 0

    async def test_missing_customer_rejected(self, memory_index):
        with pytest.raises(XrefError) as exc_info:
            await memory_index.upsert(CardXref(CARD_A, None, ACCOUNT_ID))
        assert exc_info.value.field == "customer_id"
        assert await memory_index.lookup_account_by_card(CARD_A) is None


class TestCreate:

    async def test_create_then_duplicate_conflicts(self, memory_index):
        await memory_index.create(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))

        with pytest.raises(XrefError) as exc_info:
            await memory_index.create(CardXref(CARD_A, OTHER_CUSTOMER_ID, OTHER_ACCOUNT_ID))
        assert exc_info.value.kind is XrefErrorKind.CONFLICT
        assert exc_info.value.retryable
        # The original association is untouched
        assert await memory_index.lookup_account_by_card(CARD_A) == ACCOUNT_ID


class TestRemove:

    async def test_remove_clears_every_view(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        await memory_index.upsert(CardXref(CARD_B, CUSTOMER_ID, ACCOUNT_ID))

        assert await memory_index.remove_by_card(CARD_A) is True

        assert await memory_index.lookup_account_by_card(CARD_A) is None
        assert await memory_index.lookup_cards_by_account(ACCOUNT_ID) == [CARD_B]
        assert await memory_index.lookup_cards_by_customer(CUSTOMER_ID) == [CARD_B]

    async def test_remove_absent_card_is_noop(self, memory_index):
        assert await memory_index.remove_by_card(CARD_C) is False

    async def test_remove_malformed_card_rejected(self, memory_index):
        with pytest.raises(XrefError):
            await memory_index.remove_by_card("1234")


class TestLookups:

    async def test_cards_sorted_ascending(self, memory_index):
        for card in (CARD_C, CARD_A, CARD_B):
            await memory_index.upsert(CardXref(card, CUSTOMER_ID, ACCOUNT_ID))
        assert await memory_index.lookup_cards_by_account(ACCOUNT_ID) == [CARD_A, CARD_B, CARD_C]
        assert await memory_index.lookup_cards_by_customer(CUSTOMER_ID) == [CARD_A, CARD_B, CARD_C]

    async def test_lookup_returns_copy(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        cards = await memory_index.lookup_cards_by_account(ACCOUNT_ID)
        cards.append(CARD_B)
        assert await memory_index.lookup_cards_by_account(ACCOUNT_ID) == [CARD_A]

    async def test_not_found_is_empty_not_error(self, memory_index):
        assert await memory_index.lookup_account_by_card(CARD_A) is None
        assert await memory_index.lookup_cards_by_account(ACCOUNT_ID) == []
        assert await memory_index.lookup_cards_by_customer(CUSTOMER_ID) == []
        assert await memory_index.card_count(ACCOUNT_ID) == 0

    async def test_bad_input_is_error_not_empty(self, memory_index):
        with pytest.raises(XrefError):
            await memory_index.lookup_cards_by_account(0)
        with pytest.raises(XrefError):
            await memory_index.lookup_cards_by_customer(-1)
        with pytest.raises(XrefError):
            await memory_index.lookup_account_by_card("abc")

    async def test_customer_spans_accounts(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        await memory_index.upsert(CardXref(CARD_B, CUSTOMER_ID, OTHER_ACCOUNT_ID))
        assert await memory_index.lookup_cards_by_customer(CUSTOMER_ID) == [CARD_A, CARD_B]
        assert await memory_index.card_count(ACCOUNT_ID) == 1

    async def test_is_valid_cross_reference_needs_exact_match(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        assert await memory_index.is_valid_cross_reference(CARD_A, CUSTOMER_ID, ACCOUNT_ID)
        assert not await memory_index.is_valid_cross_reference(CARD_A, OTHER_CUSTOMER_ID, ACCOUNT_ID)
        assert not await memory_index.is_valid_cross_reference(CARD_B, CUSTOMER_ID, ACCOUNT_ID)

    async def test_bidirectional_consistency_after_mixed_writes(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        await memory_index.upsert(CardXref(CARD_B, CUSTOMER_ID, ACCOUNT_ID))
        await memory_index.upsert(CardXref(CARD_C, OTHER_CUSTOMER_ID, OTHER_ACCOUNT_ID))
        await memory_index.upsert(CardXref(CARD_B, OTHER_CUSTOMER_ID, OTHER_ACCOUNT_ID))
        await memory_index.remove_by_card(CARD_C)

        await assert_views_agree(
            memory_index,
            (ACCOUNT_ID, OTHER_ACCOUNT_ID),
            (CUSTOMER_ID, OTHER_CUSTOMER_ID),
        )


class TestBulkCreate:

    async def test_skips_invalid_duplicate_and_existing(self, memory_index):
        await memory_index.upsert(CardXref(CARD_C, CUSTOMER_ID, ACCOUNT_ID))

        created = await memory_index.bulk_create([
            CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID),
            CardXref(CARD_A, OTHER_CUSTOMER_ID, ACCOUNT_ID),   # duplicate in batch
            CardXref("123", CUSTOMER_ID, ACCOUNT_ID),          # invalid
            CardXref(CARD_B, CUSTOMER_ID, 0),                  # invalid
            CardXref(CARD_C, OTHER_CUSTOMER_ID, ACCOUNT_ID),   # already indexed
        ])

        assert created == 1
        assert await memory_index.lookup_cards_by_account(ACCOUNT_ID) == [CARD_A, CARD_C]
        assert await memory_index.lookup_customer_by_card(CARD_A) == CUSTOMER_ID
        assert await memory_index.lookup_customer_by_card(CARD_C) == CUSTOMER_ID

    async def test_empty_batch_rejected(self, memory_index):
        with pytest.raises(XrefError) as exc_info:
            await memory_index.bulk_create([])
        assert exc_info.value.kind is XrefErrorKind.VALIDATION


class TestImportRecords:

    async def test_broken_links_are_admitted(self, memory_index):
        count = await memory_index.import_records([
            CardXref("9999999999999999", None, ACCOUNT_ID),
            CardXref(CARD_A, CUSTOMER_ID, None),
        ])
        assert count == 2
        assert await memory_index.lookup_cards_by_account(ACCOUNT_ID) == ["9999999999999999"]
        assert await memory_index.lookup_cards_by_customer(CUSTOMER_ID) == [CARD_A]
        assert await memory_index.lookup_account_by_card(CARD_A) is None

    async def test_malformed_key_rejects_whole_import(self, memory_index):
        with pytest.raises(XrefError):
            await memory_index.import_records([
                CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID),
                CardXref("not-a-card", CUSTOMER_ID, ACCOUNT_ID),
            ])
        assert await memory_index.count() == 0


class TestPrimaryCard:

    async def test_defaults_to_lowest_card(self, memory_index):
        await memory_index.upsert(CardXref(CARD_B, CUSTOMER_ID, ACCOUNT_ID))
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        assert await memory_index.get_primary_card(ACCOUNT_ID) == CARD_A

    async def test_none_without_cards(self, memory_index):
        assert await memory_index.get_primary_card(ACCOUNT_ID) is None

    async def test_designation_and_removal(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        await memory_index.upsert(CardXref(CARD_B, CUSTOMER_ID, ACCOUNT_ID))

        await memory_index.set_primary_card(ACCOUNT_ID, CARD_B)
        assert await memory_index.get_primary_card(ACCOUNT_ID) == CARD_B

        # Re-upserting within the same account keeps the designation
        await memory_index.upsert(CardXref(CARD_B, OTHER_CUSTOMER_ID, ACCOUNT_ID))
        assert await memory_index.get_primary_card(ACCOUNT_ID) == CARD_B

        # Leaving the account drops it
        await memory_index.upsert(CardXref(CARD_B, CUSTOMER_ID, OTHER_ACCOUNT_ID))
        assert await memory_index.get_primary_card(ACCOUNT_ID) == CARD_A

    async def test_card_of_other_account_rejected(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, OTHER_ACCOUNT_ID))
        with pytest.raises(XrefError) as exc_info:
            await memory_index.set_primary_card(ACCOUNT_ID, CARD_A)
        assert exc_info.value.kind is XrefErrorKind.VALIDATION


class TestPersistence:

    async def test_writes_reach_the_database(self, xref_index, db_session):
        await xref_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        await xref_index.upsert(CardXref(CARD_B, CUSTOMER_ID, ACCOUNT_ID))
        await xref_index.remove_by_card(CARD_B)

        result = await db_session.execute(select(CardXrefRow))
        rows = result.scalars().all()
        assert [(r.card_number, r.account_id, r.customer_id) for r in rows] == [
            (CARD_A, ACCOUNT_ID, CUSTOMER_ID),
        ]

    async def test_reassignment_updates_row(self, xref_index, xref_store):
        await xref_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        await xref_index.upsert(CardXref(CARD_A, OTHER_CUSTOMER_ID, OTHER_ACCOUNT_ID))
        assert await xref_store.load_all() == [CardXref(CARD_A, OTHER_CUSTOMER_ID, OTHER_ACCOUNT_ID)]

    async def test_reload_rebuilds_views(self, xref_index, xref_store):
        await xref_index.upsert(CardXref(CARD_B, CUSTOMER_ID, ACCOUNT_ID))
        await xref_index.upsert(CardXref(CARD_A, OTHER_CUSTOMER_ID, ACCOUNT_ID))

        fresh = CrossReferenceIndex(xref_store)
        assert await fresh.load() == 2
        assert await fresh.lookup_cards_by_account(ACCOUNT_ID) == [CARD_A, CARD_B]
        assert await fresh.lookup_cards_by_customer(OTHER_CUSTOMER_ID) == [CARD_A]

    async def test_rejected_store_write_changes_nothing(self):
        index = CrossReferenceIndex(RejectingStore())
        with pytest.raises(XrefError) as exc_info:
            await index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        assert exc_info.value.kind is XrefErrorKind.CONFLICT
        assert await index.lookup_account_by_card(CARD_A) is None
        assert await index.lookup_cards_by_account(ACCOUNT_ID) == []
        assert not index.lock.write_locked


class TestConcurrency:

    async def test_readers_never_see_partial_batch(self, memory_index):
        """While a batch is open, readers wait; afterwards they see all of it."""
        cards = [f"4{i:015d}" for i in range(1, 21)]
        observed = []
        batch_open = asyncio.Event()
        finish_batch = asyncio.Event()

        async def writer():
            async with memory_index.batch() as batch:
                for card in cards:
                    batch.put(CardXref(card, CUSTOMER_ID, ACCOUNT_ID))
                batch_open.set()
                await finish_batch.wait()

        async def reader():
            await batch_open.wait()
            observed.append(len(await memory_index.lookup_cards_by_account(ACCOUNT_ID)))

        writer_task = asyncio.create_task(writer())
        readers = [asyncio.create_task(reader()) for _ in range(5)]
        await batch_open.wait()
        await asyncio.sleep(0)
        assert observed == []
        finish_batch.set()
        await asyncio.gather(writer_task, *readers)
        assert observed == [20] * 5

    async def test_failed_batch_body_applies_nothing(self, memory_index):
        await memory_index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID))
        with pytest.raises(RuntimeError):
            async with memory_index.batch() as batch:
                batch.remove(CARD_A)
                batch.put(CardXref(CARD_B, CUSTOMER_ID, ACCOUNT_ID))
                raise RuntimeError("boom")
        assert await memory_index.lookup_cards_by_account(ACCOUNT_ID) == [CARD_A]

    async def test_cancelled_writer_keeps_views_with_store(self):
        """A writer cancelled mid-commit still applies what the store committed."""
        store = SlowStore()
        index = CrossReferenceIndex(store)

        writer = asyncio.create_task(index.upsert(CardXref(CARD_A, CUSTOMER_ID, ACCOUNT_ID)))
        await store.entered.wait()
        writer.cancel()
        await asyncio.sleep(0)
        store.release.set()

        with pytest.raises(asyncio.CancelledError):
            await writer
        assert [x.card_number for x in store.committed] == [CARD_A]
        assert await index.lookup_account_by_card(CARD_A) == ACCOUNT_ID
        assert await index.lookup_cards_by_customer(CUSTOMER_ID) == [CARD_A]
        assert not index.lock.write_locked

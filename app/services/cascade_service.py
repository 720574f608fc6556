"""
Cascade coordinator — bulk removal of cross-references for a removed root.

Contract for every cascade root (account, customer):
  compute the affected card set, remove it as ONE index batch, return the
  count. The set is computed inside the batch, under the index write lock,
  so it cannot go stale between "find" and "delete", and concurrent readers
  see either all of the cards or none of them.

An unknown root removes nothing and returns 0.
"""

import logging
from typing import Callable

from app.services.xref_index import Batch, CrossReferenceIndex
from app.validation import validate_account_id, validate_customer_id

logger = logging.getLogger(__name__)


class CascadeCoordinator:

    def __init__(self, index: CrossReferenceIndex):
        self._index = index

    async def cascade_delete_account(self, account_id: int) -> int:
        """Remove every cross-reference of an account; returns how many."""
        validate_account_id(account_id)
        return await self._cascade(
            "account", account_id, lambda batch: batch.cards_by_account(account_id)
        )

    async def cascade_delete_customer(self, customer_id: int) -> int:
        """Remove every cross-reference of a customer, across all accounts."""
        validate_customer_id(customer_id)
        return await self._cascade(
            "customer", customer_id, lambda batch: batch.cards_by_customer(customer_id)
        )

    async def _cascade(
        self,
        root: str,
        root_id: int,
        affected: Callable[[Batch], list[str]],
    ) -> int:
        async with self._index.batch() as batch:
            cards = affected(batch)
            for card_number in cards:
                batch.remove(card_number)

        if cards:
            logger.info(
                "Cascade delete for %s %s removed %d cross-reference(s)",
                root, root_id, len(cards),
            )
        else:
            logger.debug("Cascade delete for %s %s: nothing to remove", root, root_id)
        return len(cards)

"""
Integrity validator — read-only auditing of the cross-reference index.

An orphan is a record whose account or customer link no longer resolves:
the id is missing, malformed, or names a row that does not exist in the
account/customer directories. Orphans are findings, not errors — they are
returned as data (IntegrityFinding) and the caller decides what to do.

detect_orphans() is O(n) in the index size plus one batched existence
query per directory; run it from admin/batch paths, not per request.
"""

import logging
from dataclasses import dataclass

from app.exceptions import XrefErrorKind
from app.models.card_xref import CardXref
from app.services.xref_index import CrossReferenceIndex
from app.services.xref_store import EntityDirectory
from app.validation import (
    is_account_id,
    is_customer_id,
    mask_card_number,
    validate_account_id,
    validate_card_number,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntegrityFinding:
    xref: CardXref
    reasons: tuple[str, ...]
    kind: XrefErrorKind = XrefErrorKind.INTEGRITY_FINDING


class IntegrityValidator:

    def __init__(
        self,
        index: CrossReferenceIndex,
        accounts: EntityDirectory,
        customers: EntityDirectory,
    ):
        self._index = index
        self._accounts = accounts
        self._customers = customers

    async def audit(self) -> list[IntegrityFinding]:
        """Every orphaned record with the reasons it is orphaned."""
        records = await self._index.snapshot()
        live_accounts = await self._accounts.existing_ids(
            r.account_id for r in records if is_account_id(r.account_id)
        )
        live_customers = await self._customers.existing_ids(
            r.customer_id for r in records if is_customer_id(r.customer_id)
        )

        findings = []
        for xref in records:
            reasons = []
            if xref.account_id is None:
                reasons.append("missing_account_id")
            elif not is_account_id(xref.account_id):
                reasons.append("invalid_account_id")
            elif xref.account_id not in live_accounts:
                reasons.append("unknown_account")

            if xref.customer_id is None:
                reasons.append("missing_customer_id")
            elif not is_customer_id(xref.customer_id):
                reasons.append("invalid_customer_id")
            elif xref.customer_id not in live_customers:
                reasons.append("unknown_customer")

            if reasons:
                findings.append(IntegrityFinding(xref=xref, reasons=tuple(reasons)))

        if findings:
            logger.warning(
                "Integrity audit found %d orphaned cross-reference(s) out of %d",
                len(findings), len(records),
            )
            for finding in findings:
                logger.debug(
                    "Orphaned cross-reference: card %s (%s)",
                    mask_card_number(finding.xref.card_number),
                    ", ".join(finding.reasons),
                )
        return findings

    async def detect_orphans(self) -> list[CardXref]:
        return [finding.xref for finding in await self.audit()]

    async def validate_link(self, card_number: str, account_id: int) -> bool:
        """
        True iff the card is currently linked to exactly this account.

        A wrong link and a missing card both give False.
        """
        validate_card_number(card_number)
        validate_account_id(account_id)
        return await self._index.lookup_account_by_card(card_number) == account_id

    async def validate_all(self) -> bool:
        """Batch health check: True iff there are no orphans. Never raises."""
        try:
            return not await self.detect_orphans()
        except Exception:
            logger.exception("Integrity validation could not complete")
            return False

    async def check_views(self) -> list[str]:
        """
        Cross-check the index's derived views against the primary relation.

        Returns a list of human-readable problems; empty when consistent.
        """
        views = await self._index.export_views()
        by_card = views["by_card"]
        problems = []

        if views["ordered"] != sorted(by_card):
            problems.append("key-sequenced order does not match primary relation")

        for view_name, field in (("by_account", "account_id"), ("by_customer", "customer_id")):
            expected: dict[int, list[str]] = {}
            for card_number in sorted(by_card):
                key = getattr(by_card[card_number], field)
                if key is not None:
                    expected.setdefault(key, []).append(card_number)
            if views[view_name] != expected:
                problems.append(f"{view_name} view does not match primary relation")

        for account_id, card_number in views["primary"].items():
            xref = by_card.get(card_number)
            if xref is None or xref.account_id != account_id:
                problems.append(
                    f"primary card {mask_card_number(card_number)} is not linked "
                    f"to account {account_id}"
                )
        return problems

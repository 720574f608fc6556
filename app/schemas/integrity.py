"""
Pydantic schemas for the integrity endpoints.

Orphans are reported as data (200 OK with a list), never as an error
response: the caller decides whether to repair, cascade or ignore them.
"""

from pydantic import BaseModel

from app.services.integrity_service import IntegrityFinding
from app.validation import mask_card_number


class OrphanResponse(BaseModel):
    masked_card_number: str
    account_id: int | None
    customer_id: int | None
    reasons: list[str]
    error_type: str

    @classmethod
    def from_finding(cls, finding: IntegrityFinding) -> "OrphanResponse":
        return cls(
            masked_card_number=mask_card_number(finding.xref.card_number),
            account_id=finding.xref.account_id,
            customer_id=finding.xref.customer_id,
            reasons=list(finding.reasons),
            error_type=finding.kind.value,
        )


class IntegrityReportResponse(BaseModel):
    """
    Health check summary.

    `valid` is the integrity verdict (no orphans); `views_consistent`
    reports whether the index's derived views agree with its primary
    relation.
    """
    valid: bool
    total_records: int
    views_consistent: bool
    view_problems: list[str]

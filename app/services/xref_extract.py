"""
Reader for legacy card cross-reference extracts.

Each record is a fixed-width 50-byte line:

    offset  length  field
         0      16  card number
        16       9  customer id (zero-padded)
        25      11  account id (zero-padded)
        36      14  filler

Only the card number is required to be well formed here. Blank or
non-numeric id fields come back as None and zero ids stay 0, so the
integrity auditor can report the record instead of the import failing.
"""

import logging
from typing import Iterable, Iterator

from app.exceptions import XrefError
from app.models.card_xref import CardXref

logger = logging.getLogger(__name__)

RECORD_LENGTH = 50
_CARD = slice(0, 16)
_CUSTOMER = slice(16, 25)
_ACCOUNT = slice(25, 36)


def _numeric(raw: str, line_number: int, field: str) -> int | None:
    value = raw.strip()
    if not value:
        return None
    if not (value.isascii() and value.isdigit()):
        logger.warning("Extract line %d: non-numeric %s %r", line_number, field, value)
        return None
    return int(value)


def parse_record(line: str, line_number: int = 1) -> CardXref:
    """
    Parse one extract line.

    Raises:
        XrefError(VALIDATION): The line is too short to hold the key fields.
    """
    record = line.rstrip("\r\n")
    if len(record) < _ACCOUNT.stop:
        raise XrefError.validation(
            f"Extract line {line_number} is {len(record)} bytes; "
            f"expected {RECORD_LENGTH}",
            field="line",
        )
    return CardXref(
        card_number=record[_CARD],
        customer_id=_numeric(record[_CUSTOMER], line_number, "customer_id"),
        account_id=_numeric(record[_ACCOUNT], line_number, "account_id"),
    )


def read_extract(lines: Iterable[str]) -> Iterator[CardXref]:
    """Parse every non-blank line of an extract."""
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        yield parse_record(line, line_number)


def format_record(xref: CardXref) -> str:
    """Render a record in the extract layout; missing ids are blank."""
    customer = "" if xref.customer_id is None else f"{xref.customer_id:09d}"
    account = "" if xref.account_id is None else f"{xref.account_id:011d}"
    return f"{xref.card_number:<16}{customer:<9}{account:<11}".ljust(RECORD_LENGTH)

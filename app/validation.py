"""
Field validation for cross-reference keys and paging parameters.

One policy per field, applied on every path (index writes, lookups, paging,
HTTP filters):

  card_number   str of exactly 16 ASCII digits; whitespace is NOT stripped
  account_id    int, 1 .. 99_999_999_999   (11 digits)
  customer_id   int, 1 .. 999_999_999      (9 digits)
  page_number   int >= 0
  page_size     int >= 1; the card list also caps it at XREF_MAX_PAGE_SIZE

`bool` is rejected wherever an int is expected, and a missing (None) value
is always an error. Every failure raises XrefError with kind VALIDATION and
the offending field name.
"""

import re

from app.exceptions import XrefError
from app.models.card_xref import CardXref

CARD_NUMBER_LENGTH = 16
MAX_ACCOUNT_ID = 99_999_999_999
MAX_CUSTOMER_ID = 999_999_999

# [0-9] rather than \d: \d also matches non-ASCII digits
_CARD_NUMBER_RE = re.compile(r"[0-9]{16}")


def is_card_number(value) -> bool:
    return isinstance(value, str) and _CARD_NUMBER_RE.fullmatch(value) is not None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_account_id(value) -> bool:
    return _is_int(value) and 0 < value <= MAX_ACCOUNT_ID


def is_customer_id(value) -> bool:
    return _is_int(value) and 0 < value <= MAX_CUSTOMER_ID


def validate_card_number(value) -> str:
    if value is None:
        raise XrefError.validation("Card number is required", field="card_number")
    if not is_card_number(value):
        raise XrefError.validation(
            "Card number must be exactly 16 digits", field="card_number"
        )
    return value


def validate_account_id(value) -> int:
    if value is None:
        raise XrefError.validation("Account ID is required", field="account_id")
    if not is_account_id(value):
        raise XrefError.validation(
            "Account ID must be a positive number of at most 11 digits",
            field="account_id",
        )
    return value


def validate_customer_id(value) -> int:
    if value is None:
        raise XrefError.validation("Customer ID is required", field="customer_id")
    if not is_customer_id(value):
        raise XrefError.validation(
            "Customer ID must be a positive number of at most 9 digits",
            field="customer_id",
        )
    return value


def validate_xref(xref: CardXref) -> CardXref:
    """Check all three fields of a record that is about to be written."""
    if not isinstance(xref, CardXref):
        raise XrefError.validation("Expected a CardXref record")
    validate_card_number(xref.card_number)
    validate_customer_id(xref.customer_id)
    validate_account_id(xref.account_id)
    return xref


def validate_page_request(page_number, page_size, max_page_size: int | None = None) -> None:
    """Check paging parameters; `max_page_size` caps the size when given."""
    if not _is_int(page_number) or page_number < 0:
        raise XrefError.validation("Page number must be non-negative", field="page")
    if not _is_int(page_size) or page_size <= 0:
        raise XrefError.validation("Page size must be positive", field="size")
    if max_page_size is not None and page_size > max_page_size:
        raise XrefError.validation(
            f"Page size must be between 1 and {max_page_size}", field="size"
        )


def mask_card_number(card_number: str) -> str:
    """Render a card number as ****-****-****-NNNN for display and logs."""
    if not isinstance(card_number, str) or len(card_number) < 4:
        return "****-****-****-****"
    return "****-****-****-" + card_number[-4:]

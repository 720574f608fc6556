"""
Account service — registration and closure of resolvable accounts.

The cross-reference service does not manage account balances or lifecycle
rules; it only needs to know which accounts exist (for orphan detection)
and to drop an account's card links when the account is closed.

Closure order:
  1. The account row must exist (404 otherwise — nothing is touched).
  2. Cascade: the account's cross-references are removed from the index
     as one atomic batch (committed to card_xrefs in its own transaction).
  3. The account row is deleted in the request session.

If step 3 fails, the account survives with no cards, which is a valid
state; the reverse order could leave cards pointing at a deleted account.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import XrefError
from app.models.account import Account
from app.services.cascade_service import CascadeCoordinator
from app.validation import validate_account_id

logger = logging.getLogger(__name__)


async def register_account(
    db: AsyncSession,
    account_id: int,
    customer_id: int | None = None,
    active_status: str = "Y",
) -> Account:
    """
    Register an account so cross-references to it resolve.

    Raises:
        XrefError(CONFLICT): The account id is already registered.
    """
    validate_account_id(account_id)
    existing = await db.execute(select(Account).where(Account.id == account_id))
    if existing.scalar_one_or_none() is not None:
        raise XrefError.conflict(f"Account {account_id} already exists")

    account = Account(id=account_id, customer_id=customer_id, active_status=active_status)
    db.add(account)
    await db.flush()
    return account


async def get_account(db: AsyncSession, account_id: int) -> Account:
    """
    Raises:
        XrefError(NOT_FOUND): No such account.
    """
    validate_account_id(account_id)
    result = await db.execute(select(Account).where(Account.id == account_id))
    account = result.scalar_one_or_none()
    if account is None:
        raise XrefError.not_found(f"Account {account_id} not found")
    return account


async def close_account(
    db: AsyncSession,
    coordinator: CascadeCoordinator,
    account_id: int,
) -> int:
    """
    Close an account: cascade-delete its cross-references, then the row.

    Returns:
        The number of cross-references removed.

    Raises:
        XrefError(NOT_FOUND): No such account.
        XrefError(CONFLICT): The cascade collided with a concurrent write;
            nothing was removed and the call can be retried.
    """
    account = await get_account(db, account_id)
    removed = await coordinator.cascade_delete_account(account_id)
    await db.delete(account)
    await db.flush()
    logger.info("Account %s closed, %d cross-reference(s) removed", account_id, removed)
    return removed

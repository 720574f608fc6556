"""
Customer service — registration and removal of resolvable customers.

Removal mirrors account closure: cascade the customer's cross-references
first (one atomic batch across all of the customer's accounts), then
delete the customer row.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import XrefError
from app.models.customer import Customer
from app.services.cascade_service import CascadeCoordinator
from app.validation import validate_customer_id

logger = logging.getLogger(__name__)


async def register_customer(
    db: AsyncSession,
    customer_id: int,
    first_name: str,
    last_name: str,
) -> Customer:
    """
    Raises:
        XrefError(CONFLICT): The customer id is already registered.
    """
    validate_customer_id(customer_id)
    existing = await db.execute(select(Customer).where(Customer.id == customer_id))
    if existing.scalar_one_or_none() is not None:
        raise XrefError.conflict(f"Customer {customer_id} already exists")

    customer = Customer(id=customer_id, first_name=first_name, last_name=last_name)
    db.add(customer)
    await db.flush()
    return customer


async def get_customer(db: AsyncSession, customer_id: int) -> Customer:
    validate_customer_id(customer_id)
    result = await db.execute(select(Customer).where(Customer.id == customer_id))
    customer = result.scalar_one_or_none()
    if customer is None:
        raise XrefError.not_found(f"Customer {customer_id} not found")
    return customer


async def remove_customer(
    db: AsyncSession,
    coordinator: CascadeCoordinator,
    customer_id: int,
) -> int:
    """Cascade-delete the customer's cross-references, then the row."""
    customer = await get_customer(db, customer_id)
    removed = await coordinator.cascade_delete_customer(customer_id)
    await db.delete(customer)
    await db.flush()
    logger.info("Customer %s removed, %d cross-reference(s) removed", customer_id, removed)
    return removed

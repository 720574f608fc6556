"""
Customers router — registration and removal of customers.

Endpoints:
  POST   /customers                — Register a customer (409 if it exists)
  GET    /customers/{customer_id}  — Get a registered customer
  DELETE /customers/{customer_id}  — Remove a customer and, in one batch,
                                     every cross-reference it owns
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_cascade_coordinator
from app.schemas.account import CascadeResponse
from app.schemas.customer import CustomerCreateRequest, CustomerResponse
from app.services import customer_service
from app.services.cascade_service import CascadeCoordinator

router = APIRouter()


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a customer",
)
async def register_customer(
    request: CustomerCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await customer_service.register_customer(
        db=db,
        customer_id=request.id,
        first_name=request.first_name,
        last_name=request.last_name,
    )


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Get a customer",
)
async def get_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await customer_service.get_customer(db, customer_id)


@router.delete(
    "/{customer_id}",
    response_model=CascadeResponse,
    summary="Remove a customer",
)
async def remove_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    coordinator: CascadeCoordinator = Depends(get_cascade_coordinator),
):
    removed = await customer_service.remove_customer(db, coordinator, customer_id)
    return CascadeResponse(root="customer", root_id=customer_id, deleted_xrefs=removed)

"""
Accounts router — registration and closure of accounts.

Endpoints:
  POST   /accounts               — Register an account (409 if it exists)
  GET    /accounts/{account_id}  — Get a registered account
  DELETE /accounts/{account_id}  — Close an account: cascade-delete its
                                   cross-references, then remove it

Registered accounts are what the integrity auditor resolves
cross-references against.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_cascade_coordinator
from app.schemas.account import AccountCreateRequest, AccountResponse, CascadeResponse
from app.services import account_service
from app.services.cascade_service import CascadeCoordinator

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an account",
)
async def register_account(
    request: AccountCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await account_service.register_account(
        db=db,
        account_id=request.id,
        customer_id=request.customer_id,
        active_status=request.active_status,
    )


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get an account",
)
async def get_account(
    account_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await account_service.get_account(db, account_id)


@router.delete(
    "/{account_id}",
    response_model=CascadeResponse,
    summary="Close an account",
)
async def close_account(
    account_id: int,
    db: AsyncSession = Depends(get_db),
    coordinator: CascadeCoordinator = Depends(get_cascade_coordinator),
):
    """
    Close an account.

    Every card linked to the account is unlinked in one atomic batch, then
    the account itself is removed. Returns how many links were removed.
    """
    removed = await account_service.close_account(db, coordinator, account_id)
    return CascadeResponse(root="account", root_id=account_id, deleted_xrefs=removed)

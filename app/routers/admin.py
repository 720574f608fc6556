"""
Admin router — integrity auditing and cascade maintenance.

Endpoints:
  GET    /admin/xref/orphans                   — Orphaned cross-references
  GET    /admin/xref/integrity                 — Batch health check
  DELETE /admin/xref/accounts/{account_id}     — Cascade-delete an account's links
  DELETE /admin/xref/customers/{customer_id}   — Cascade-delete a customer's links

The audit endpoints scan the whole index and query the account/customer
tables; they are meant for operators and batch jobs, not for request
paths. Orphans are returned as data with 200 OK.

The cascade endpoints only touch cross-references, leaving the account or
customer row alone — used to clean up after an orphan audit.
"""

from fastapi import APIRouter, Depends

from app.dependencies import (
    get_cascade_coordinator,
    get_integrity_validator,
    get_xref_index,
)
from app.schemas.account import CascadeResponse
from app.schemas.integrity import IntegrityReportResponse, OrphanResponse
from app.services.cascade_service import CascadeCoordinator
from app.services.integrity_service import IntegrityValidator
from app.services.xref_index import CrossReferenceIndex

router = APIRouter()


@router.get(
    "/orphans",
    response_model=list[OrphanResponse],
    summary="[Admin] List orphaned cross-references",
)
async def list_orphans(
    validator: IntegrityValidator = Depends(get_integrity_validator),
):
    findings = await validator.audit()
    return [OrphanResponse.from_finding(f) for f in findings]


@router.get(
    "/integrity",
    response_model=IntegrityReportResponse,
    summary="[Admin] Cross-reference health check",
)
async def integrity_report(
    validator: IntegrityValidator = Depends(get_integrity_validator),
    index: CrossReferenceIndex = Depends(get_xref_index),
):
    valid = await validator.validate_all()
    problems = await validator.check_views()
    return IntegrityReportResponse(
        valid=valid,
        total_records=await index.count(),
        views_consistent=not problems,
        view_problems=problems,
    )


@router.delete(
    "/accounts/{account_id}",
    response_model=CascadeResponse,
    summary="[Admin] Remove all cross-references of an account",
)
async def cascade_account(
    account_id: int,
    coordinator: CascadeCoordinator = Depends(get_cascade_coordinator),
):
    removed = await coordinator.cascade_delete_account(account_id)
    return CascadeResponse(root="account", root_id=account_id, deleted_xrefs=removed)


@router.delete(
    "/customers/{customer_id}",
    response_model=CascadeResponse,
    summary="[Admin] Remove all cross-references of a customer",
)
async def cascade_customer(
    customer_id: int,
    coordinator: CascadeCoordinator = Depends(get_cascade_coordinator),
):
    removed = await coordinator.cascade_delete_customer(customer_id)
    return CascadeResponse(root="customer", root_id=customer_id, deleted_xrefs=removed)

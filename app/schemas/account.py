"""
Pydantic schemas for Account endpoints.

Accounts are registered here only so the cross-reference service can
resolve them; balances and the rest of the account record belong to the
account service.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    id: int = Field(..., strict=True, gt=0, le=99_999_999_999, description="11-digit account number")
    customer_id: int | None = Field(default=None, strict=True, gt=0, le=999_999_999)
    active_status: Literal["Y", "N"] = "Y"


class AccountResponse(BaseModel):
    id: int
    customer_id: int | None
    active_status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class CascadeResponse(BaseModel):
    """Outcome of a cascade: how many cross-references were removed."""
    root: Literal["account", "customer"]
    root_id: int
    deleted_xrefs: int

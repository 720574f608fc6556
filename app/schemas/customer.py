"""Pydantic schemas for Customer endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class CustomerCreateRequest(BaseModel):
    """Request body for POST /customers."""
    id: int = Field(..., strict=True, gt=0, le=999_999_999, description="9-digit customer id")
    first_name: str = Field(..., min_length=1, max_length=25)
    last_name: str = Field(..., min_length=1, max_length=25)


class CustomerResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    created_at: datetime

    model_config = {"from_attributes": True}

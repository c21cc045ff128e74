"""Pydantic schemas for user endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from plangate.common.schemas import PaginatedResponse

Role = Literal["USER", "STAFF", "SUPERADMIN"]


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str = ""
    role: Role = "USER"
    plan_id: Optional[str] = None
    feature_overrides: Optional[Any] = None


class UserUpdate(BaseModel):
    """Only the fields present in the request body are applied.

    Sending ``"plan_id": null`` detaches the user from their plan.
    """
    name: Optional[str] = None
    role: Optional[Role] = None
    plan_id: Optional[str] = None
    feature_overrides: Optional[Any] = None


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    plan_id: Optional[str] = None
    feature_overrides: Optional[Any] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserPage(PaginatedResponse):
    items: list[UserResponse]

"""Pydantic schemas for catalog endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ── Features ──

class FeatureCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z][A-Za-z0-9_.-]*$")
    category: Optional[str] = Field(default=None, max_length=50)
    description: str = ""
    default_value: bool = False


class FeatureUpdate(BaseModel):
    category: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = None
    default_value: Optional[bool] = None


class FeatureResponse(BaseModel):
    id: str
    key: str
    category: str
    description: str
    default_value: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Plans ──

class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    display_name: str = ""
    description: str = ""
    is_active: bool = True
    sort_order: int = 0
    price_usd: float = Field(default=0.0, ge=0)
    price_mxn: float = Field(default=0.0, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    interval: str = "month"


class PlanUpdate(BaseModel):
    display_name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None
    price_usd: Optional[float] = Field(default=None, ge=0)
    price_mxn: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    interval: Optional[str] = None


class PlanResponse(BaseModel):
    id: str
    name: str
    display_name: str
    description: str
    is_active: bool
    sort_order: int
    price_usd: float
    price_mxn: float
    currency: str
    interval: str
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Grants ──

class GrantBody(BaseModel):
    """A plan grant: ``limit`` of -1 means unlimited, null means no numeric limit."""
    enabled: bool = True
    limit: Optional[int] = Field(default=None, ge=-1)


class GrantResponse(BaseModel):
    enabled: bool
    limit: Optional[int] = None


class PlanGrantResponse(BaseModel):
    plan_id: str
    feature_key: str
    enabled: bool
    limit: Optional[int] = None


class PlanWithGrants(PlanResponse):
    grants: dict[str, GrantResponse] = Field(default_factory=dict)


class CatalogMatrixResponse(BaseModel):
    plans: list[PlanWithGrants] = Field(default_factory=list)
    features: list[FeatureResponse] = Field(default_factory=list)

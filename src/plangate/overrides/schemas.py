"""Pydantic schemas for override endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from plangate.common.schemas import PaginatedResponse


class OverrideBody(BaseModel):
    """A per-user exception. Omitted fields keep the plan's value;
    an explicit ``"limit": null`` replaces the plan's limit with no limit."""
    enabled: Optional[bool] = None
    limit: Optional[int] = Field(default=None, ge=-1)
    reason: str = Field(default="", max_length=500)

    @property
    def clears_limit(self) -> bool:
        return self.limit is None and "limit" in self.model_fields_set

    @model_validator(mode="after")
    def _not_empty(self):
        if self.enabled is None and self.limit is None and not self.clears_limit:
            raise ValueError("Set enabled, limit, or both")
        return self


class OverrideResponse(BaseModel):
    user_id: str
    feature_key: str
    enabled: Optional[bool] = None
    limit: Optional[int] = None
    limit_set: bool = False
    reason: str = ""
    created_by: str


class UserOverridesResponse(BaseModel):
    """Merged view of a user's overrides (legacy blob plus rows)."""
    user_id: str
    overrides: dict[str, dict[str, Any]] = Field(default_factory=dict)


class OverrideLogResponse(BaseModel):
    id: str
    user_id: str
    feature_key: str
    action: str
    admin_id: str
    admin_email: Optional[str] = None
    admin_role: str
    old_value: Optional[dict[str, Any]] = None
    new_value: Optional[dict[str, Any]] = None
    reason: str = ""
    created_at: datetime

    model_config = {"from_attributes": True}


class OverrideLogPage(PaginatedResponse):
    items: list[OverrideLogResponse]

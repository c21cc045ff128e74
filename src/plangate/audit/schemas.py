"""Pydantic schemas for audit API responses."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from plangate.common.schemas import PaginatedResponse


class AdminActionResponse(BaseModel):
    id: str
    admin_id: str
    admin_email: Optional[str] = None
    admin_role: str
    action: str
    resource_type: str
    resource_id: str
    detail: dict[str, Any] = {}
    sequence: int
    prev_hash: Optional[str] = None
    event_hash: str
    signature: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminActionPage(PaginatedResponse):
    items: list[AdminActionResponse]


class AuditChainVerification(BaseModel):
    valid: bool
    events_checked: int
    break_at: Optional[str] = None

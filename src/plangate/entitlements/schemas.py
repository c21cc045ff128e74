"""Pydantic schemas for entitlement endpoints."""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class UserFeaturesResponse(BaseModel):
    """``features`` maps each key to a bool or a number in the public form,
    or to ``{"enabled", "limit"}`` with ``?detail=true``.

    The public form shows a grant's limit whenever one is set, even if the
    grant is disabled, so ``{"maxProjects": 3}`` does not imply access.
    Callers that gate on access should use ``?detail=true`` or
    ``/users/{user_id}/features/{feature_key}``, which report ``enabled``.
    """
    features: dict[str, Union[bool, int, dict[str, Any]]] = Field(default_factory=dict)
    plan_id: Optional[str] = None
    plan_name: Optional[str] = None
    role: Optional[str] = None
    bypass: bool = False


class FeatureCheckResponse(BaseModel):
    feature: str
    allowed: bool
    limit: Optional[int] = None

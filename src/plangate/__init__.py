"""Plangate: plan catalog, per-user overrides and feature entitlement resolution."""

from plangate.client import FeatureClient
from plangate.entitlements.resolution import (
    UNLIMITED,
    EffectiveFeatures,
    Grant,
    is_bypass_role,
)

__all__ = [
    "FeatureClient",
    "EffectiveFeatures",
    "Grant",
    "UNLIMITED",
    "is_bypass_role",
]
__version__ = "0.1.0"

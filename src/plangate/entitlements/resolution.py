"""Entitlement resolution logic.

Pure functions over already-loaded data. The service layer loads the user,
plan grants and overrides and hands them here; nothing in this module
touches the database.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Union

UNLIMITED = -1

PublicValue = Union[bool, int]


@dataclass(frozen=True)
class Grant:
    """Effective grant for one feature key.

    ``limit`` is ``None`` when no numeric limit is defined, ``-1`` when
    explicitly unlimited.
    """
    enabled: bool
    limit: Optional[int] = None

    def overlay(self, partial: Mapping[str, Any]) -> "Grant":
        """Shallow per-field merge: only the fields present in ``partial`` change."""
        changes = {k: partial[k] for k in ("enabled", "limit") if k in partial}
        return replace(self, **changes) if changes else self

    def to_public(self) -> PublicValue:
        if self.limit is not None:
            return self.limit
        return self.enabled

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "limit": self.limit}


def is_bypass_role(role: Optional[str], bypass_role: str = "SUPERADMIN") -> bool:
    """Whether ``role`` skips plan and override resolution entirely."""
    return bool(role) and role.upper() == bypass_role.upper()


def bypass_grants(feature_keys: Iterable[str]) -> dict[str, Grant]:
    """Every known feature enabled and unlimited."""
    return {key: Grant(enabled=True, limit=UNLIMITED) for key in feature_keys}


def overlay_overrides(
    base: Mapping[str, Grant],
    overrides: Mapping[str, Mapping[str, Any]],
    feature_defaults: Mapping[str, bool],
) -> dict[str, Grant]:
    """Layer per-user partial overrides on top of plan grants.

    For keys the plan grants, each override replaces only the fields it
    specifies. For keys the plan does not grant, the override introduces the
    key starting from the feature's catalog default (``enabled``) and no
    limit. Keys that are neither granted nor in ``feature_defaults`` are
    unknown to the catalog and dropped.
    """
    merged = dict(base)
    for key, partial in overrides.items():
        current = merged.get(key)
        if current is None:
            if key not in feature_defaults:
                continue
            current = Grant(enabled=bool(feature_defaults[key]), limit=None)
        merged[key] = current.overlay(partial)
    return merged


@dataclass
class EffectiveFeatures:
    """A user's resolved feature map plus how it was reached."""
    grants: dict[str, Grant] = field(default_factory=dict)
    role: Optional[str] = None
    plan_id: Optional[str] = None
    plan_name: Optional[str] = None
    bypass: bool = False

    def __contains__(self, feature_key: str) -> bool:
        return feature_key in self.grants

    def get(self, feature_key: str) -> Optional[Grant]:
        return self.grants.get(feature_key)

    def can_use(self, feature_key: str) -> bool:
        """Absent keys and disabled keys are both unusable."""
        grant = self.grants.get(feature_key)
        return bool(grant and grant.enabled)

    def get_limit(self, feature_key: str) -> Optional[int]:
        """Numeric limit, or ``None`` when no limit is defined for the key.

        ``-1`` (unlimited) and ``0`` (zero allowance) are returned as-is.
        """
        grant = self.grants.get(feature_key)
        if grant is None:
            return None
        limit = grant.limit
        if isinstance(limit, bool) or not isinstance(limit, int):
            return None
        return limit

    def to_public(self) -> dict[str, PublicValue]:
        return {key: grant.to_public() for key, grant in sorted(self.grants.items())}

    def to_detail(self) -> dict[str, dict[str, Any]]:
        return {key: grant.to_dict() for key, grant in sorted(self.grants.items())}

"""Parsing of the legacy ``users.feature_overrides`` JSON blob.

Nothing here raises on bad data. A malformed blob reads as "no overrides",
a malformed entry reads as "no override for this key", and both are logged
at warning level.

Accepted entry shapes::

    {"calendarSync": true}                  -> {"enabled": True}
    {"maxScenaProjects": 3}                 -> {"enabled": True, "limit": 3}
    {"maxScenaProjects": null}              -> {"enabled": True, "limit": None}
    {"maxScenaProjects": {"limit": 3}}      -> {"limit": 3}
    {"bookingConfig": {"enabled": false}}   -> {"enabled": False}

A bare number or null grants the feature outright; the object form only
replaces the fields it names.
"""

import json
from typing import Any, Optional

from plangate.common.logging import get_logger

logger = get_logger("overrides.legacy")


def _as_limit(value: Any) -> tuple[bool, Optional[int]]:
    """(ok, limit). ``None`` is a valid explicit "no limit"."""
    if value is None:
        return True, None
    if isinstance(value, bool):
        return False, None
    if isinstance(value, int):
        return True, value
    if isinstance(value, float) and value.is_integer():
        return True, int(value)
    return False, None


def parse_override_value(key: str, value: Any) -> Optional[dict[str, Any]]:
    """Normalize one blob entry into a partial grant, or ``None`` to skip it."""
    if isinstance(value, bool):
        return {"enabled": value}

    if value is None or isinstance(value, (int, float)):
        ok, limit = _as_limit(value)
        if ok:
            return {"enabled": True, "limit": limit}

    elif isinstance(value, dict):
        partial: dict[str, Any] = {}
        if isinstance(value.get("enabled"), bool):
            partial["enabled"] = value["enabled"]
        if "limit" in value:
            ok, limit = _as_limit(value["limit"])
            if ok:
                partial["limit"] = limit
        if partial:
            return partial

    logger.warning(
        "Ignoring malformed override for %s", key,
        extra={"feature_key": key, "value_type": type(value).__name__},
    )
    return None


def parse_legacy_overrides(raw: Any, user_id: str | None = None) -> dict[str, dict[str, Any]]:
    """Parse the whole blob into ``{feature_key: partial_grant}``."""
    if raw is None:
        return {}

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(
                "Ignoring legacy overrides: not valid JSON",
                extra={"user_id": user_id},
            )
            return {}

    if not isinstance(raw, dict):
        logger.warning(
            "Ignoring legacy overrides: expected an object, got %s", type(raw).__name__,
            extra={"user_id": user_id},
        )
        return {}

    parsed: dict[str, dict[str, Any]] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            continue
        partial = parse_override_value(key, value)
        if partial is not None:
            parsed[key] = partial
    return parsed

"""Default plan matrix for the photographer platform.

Each plan lists boolean ``features`` and numeric ``limits``. Both end up as
PlanFeature grants when seeded:

- a boolean becomes ``enabled=<value>, limit=None``
- a number becomes ``enabled=True, limit=<value>`` (``-1`` = unlimited)
- any other truthy value (e.g. ``"static_only"``) becomes ``enabled=True``
"""

from typing import Any, Optional

# ── Feature categories, matched by substring of the lowercased key ──
CATEGORY_RULES = [
    ("stripe", "payments"),
    ("payment", "payments"),
    ("video", "video"),
    ("download", "gallery"),
    ("project", "scena"),
    ("scena", "scena"),
    ("social", "profile"),
    ("gallery", "gallery"),
]

PLAN_DEFAULTS: dict[str, dict[str, dict[str, Any]]] = {
    "free": {
        "limits": {
            "bioMaxLength": 150,
            "maxSocialLinks": 1,
            "bookingWindow": 0,
            "maxProjects": 3,
            "maxCloudAccounts": 1,
            "maxScenaProjects": 0,
        },
        "features": {
            "advancedSocialNetworks": False,
            "callToAction": False,
            "hideBranding": False,
            "manualOrdering": False,
            "listView": False,
            "bookingConfig": False,
            "zipDownloadsEnabled": False,
            "closerGallery": False,
            "musicGallery": False,
            "videoGallery": False,
            "externalVideoAuth": False,
            "calendarSync": False,
            "scenaAccess": True,
        },
    },
    "family": {
        "limits": {
            "bioMaxLength": 300,
            "maxSocialLinks": 3,
            "bookingWindow": 0,
            "maxProjects": 50,
            "maxCloudAccounts": 2,
            "maxScenaProjects": 3,
        },
        "features": {
            "advancedSocialNetworks": True,
            "callToAction": True,
            "hideBranding": True,
            "manualOrdering": False,
            "listView": True,
            "bookingConfig": False,
            "zipDownloadsEnabled": "static_only",
            "closerGallery": True,
            "musicGallery": False,
            "videoGallery": True,
            "externalVideoAuth": False,
            "collaborativeGalleries": True,
            "calendarSync": True,
            "scenaAccess": True,
        },
    },
    "pro": {
        "limits": {
            "bioMaxLength": 500,
            "maxSocialLinks": -1,
            "bookingWindow": 4,
            "maxProjects": 100,
            "maxCloudAccounts": 2,
            "maxScenaProjects": 10,
        },
        "features": {
            "advancedSocialNetworks": True,
            "callToAction": True,
            "hideBranding": True,
            "manualOrdering": True,
            "listView": True,
            "bookingConfig": True,
            "zipDownloadsEnabled": "static_only",
            "closerGallery": False,
            "musicGallery": False,
            "videoGallery": False,
            "externalVideoAuth": False,
            "calendarSync": True,
            "scenaAccess": True,
        },
    },
    "studio": {
        "limits": {
            "bioMaxLength": 1000,
            "maxSocialLinks": -1,
            "bookingWindow": 0,
            "maxProjects": -1,
            "maxCloudAccounts": -1,
            "closerGalleryLimit": 10,
            "maxScenaProjects": -1,
        },
        "features": {
            "advancedSocialNetworks": True,
            "callToAction": True,
            "hideBranding": True,
            "manualOrdering": True,
            "listView": True,
            "bookingConfig": True,
            "zipDownloadsEnabled": True,
            "closerGallery": True,
            "musicGallery": True,
            "videoGallery": True,
            "externalVideoAuth": False,
            "collaborativeGalleries": True,
            "calendarSync": True,
            "scenaAccess": True,
        },
    },
    "agency": {
        "limits": {
            "bioMaxLength": 2000,
            "maxSocialLinks": -1,
            "bookingWindow": 0,
            "maxProjects": -1,
            "maxCloudAccounts": -1,
            "closerGalleryLimit": -1,
            "maxScenaProjects": -1,
        },
        "features": {
            "advancedSocialNetworks": True,
            "callToAction": True,
            "hideBranding": True,
            "manualOrdering": True,
            "listView": True,
            "bookingConfig": True,
            "zipDownloadsEnabled": True,
            "closerGallery": True,
            "musicGallery": True,
            "videoGallery": True,
            "externalVideoAuth": True,
            "collaborativeGalleries": True,
            "calendarSync": True,
            "scenaAccess": True,
        },
    },
}

# ── Plan seed definitions ──
PLAN_SEEDS = [
    {"name": "free", "display_name": "Free", "sort_order": 0, "price_usd": 0.0, "price_mxn": 0.0},
    {"name": "family", "display_name": "Family", "sort_order": 1, "price_usd": 5.0, "price_mxn": 99.0},
    {"name": "pro", "display_name": "Pro", "sort_order": 2, "price_usd": 12.0, "price_mxn": 229.0},
    {"name": "studio", "display_name": "Studio", "sort_order": 3, "price_usd": 25.0, "price_mxn": 479.0},
    {"name": "agency", "display_name": "Agency", "sort_order": 4, "price_usd": 49.0, "price_mxn": 949.0},
]


def categorize_feature(key: str) -> str:
    """Derive a grouping label from a feature key."""
    lowered = key.lower()
    for needle, category in CATEGORY_RULES:
        if needle in lowered:
            return category
    return "system"


def default_feature_keys() -> list[str]:
    """Every key defined by any default plan, sorted."""
    keys: set[str] = set()
    for plan in PLAN_DEFAULTS.values():
        keys.update(plan["features"])
        keys.update(plan["limits"])
    return sorted(keys)


def _grant_from_value(value: Any) -> tuple[bool, Optional[int]]:
    if isinstance(value, bool):
        return value, None
    if isinstance(value, int):
        return True, value
    return bool(value), None


def resolve_plan_grants(plan_name: str) -> dict[str, tuple[bool, Optional[int]]]:
    """Map a default plan to ``{feature_key: (enabled, limit)}``.

    Raises:
        ValueError: if ``plan_name`` is not a default plan.
    """
    name = plan_name.lower()
    if name not in PLAN_DEFAULTS:
        raise ValueError(f"Unknown plan: {plan_name}. Must be one of {', '.join(PLAN_DEFAULTS)}")

    config = PLAN_DEFAULTS[name]
    grants = {key: _grant_from_value(v) for key, v in config["features"].items()}
    grants.update({key: _grant_from_value(v) for key, v in config["limits"].items()})
    return grants

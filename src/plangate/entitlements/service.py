"""Entitlement service — compute a user's effective feature map."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from plangate.common.config import PlangateSettings
from plangate.common.exceptions import UserNotFoundError
from plangate.common.logging import get_logger
from plangate.entitlements.resolution import (
    EffectiveFeatures,
    bypass_grants,
    is_bypass_role,
    overlay_overrides,
)
from plangate.users.models import UserModel

logger = get_logger("entitlements")


class EntitlementService:
    """Single entry point for "what may this user do".

    Every call reads the live catalog, the user's plan grants and overrides;
    nothing is cached between calls.
    """

    def __init__(self, settings: PlangateSettings, catalog_service, override_service):
        self.settings = settings
        self.catalog = catalog_service
        self.overrides = override_service

    async def resolve_features(
        self, session: AsyncSession, user_id: str,
    ) -> EffectiveFeatures:
        """Resolve the effective features for one user.

        Order: bypass role, then effective plan (falling back to the free
        plan), then per-field override overlay.

        Raises:
            UserNotFoundError: if the user does not exist.
            PlanNotFoundError: if the fallback plan is missing.
        """
        user = await session.get(UserModel, user_id)
        if user is None:
            raise UserNotFoundError(f"User '{user_id}' not found")

        if is_bypass_role(user.role, self.settings.bypass_role):
            keys = await self.catalog.list_feature_keys(session)
            return EffectiveFeatures(
                grants=bypass_grants(keys),
                role=user.role,
                plan_id=user.plan_id,
                bypass=True,
            )

        plan = await self.catalog.resolve_effective_plan(session, user.plan_id)
        base = await self.catalog.grants_for_plan(session, plan.id)

        overrides = await self.overrides.overrides_for_user(session, user)
        introduced = [key for key in overrides if key not in base]
        defaults = await self.catalog.feature_defaults(session, introduced)
        for key in introduced:
            if key not in defaults:
                logger.warning(
                    "Ignoring override for unknown feature %s", key,
                    extra={"user_id": user.id, "feature_key": key},
                )

        return EffectiveFeatures(
            grants=overlay_overrides(base, overrides, defaults),
            role=user.role,
            plan_id=plan.id,
            plan_name=plan.name,
        )

    async def can_use(self, session: AsyncSession, user_id: str, feature_key: str) -> bool:
        features = await self.resolve_features(session, user_id)
        return features.can_use(feature_key)

    async def get_limit(
        self, session: AsyncSession, user_id: str, feature_key: str,
    ) -> Optional[int]:
        features = await self.resolve_features(session, user_id)
        return features.get_limit(feature_key)

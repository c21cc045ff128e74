"""Catalog service — features, plans, plan grants, and plan fallback."""

from typing import Any, Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.common.config import PlangateSettings
from plangate.common.exceptions import (
    DuplicateError,
    FeatureNotFoundError,
    PlanNotFoundError,
    ProtectedPlanError,
)
from plangate.common.logging import get_logger
from plangate.common.security import AdminContext
from plangate.catalog.defaults import (
    PLAN_SEEDS,
    categorize_feature,
    default_feature_keys,
    resolve_plan_grants,
)
from plangate.catalog.models import FeatureModel, PlanFeatureModel, PlanModel
from plangate.entitlements.resolution import Grant

logger = get_logger("catalog")

_FEATURE_FIELDS = ("category", "description", "default_value")
_PLAN_FIELDS = (
    "display_name", "description", "is_active", "sort_order",
    "price_usd", "price_mxn", "currency", "interval",
)


def _plan_snapshot(plan: PlanModel) -> dict[str, Any]:
    return {
        "name": plan.name,
        "display_name": plan.display_name,
        "is_active": plan.is_active,
        "sort_order": plan.sort_order,
        "price_usd": plan.price_usd,
        "price_mxn": plan.price_mxn,
        "currency": plan.currency,
        "interval": plan.interval,
    }


class CatalogService:
    """Read and administer the plan catalog."""

    def __init__(self, settings: PlangateSettings, audit_service=None):
        self.settings = settings
        self.audit_service = audit_service

    async def _audit(self, session, action, resource_type, resource_id, detail, admin):
        if self.audit_service:
            await self.audit_service.record_action(
                session, action, resource_type, resource_id, detail, admin=admin,
            )

    # ── Features ──

    async def create_feature(
        self,
        session: AsyncSession,
        key: str,
        category: str | None = None,
        description: str = "",
        default_value: bool = False,
        admin: AdminContext | None = None,
    ) -> FeatureModel:
        if await self.get_feature_by_key(session, key) is not None:
            raise DuplicateError(f"Feature '{key}' already exists")
        feature = FeatureModel(
            key=key,
            category=category or categorize_feature(key),
            description=description,
            default_value=default_value,
        )
        session.add(feature)
        await session.flush()
        await self._audit(
            session, "feature.created", "feature", key,
            {"category": feature.category, "default_value": default_value}, admin,
        )
        return feature

    async def get_feature_by_key(
        self, session: AsyncSession, key: str
    ) -> FeatureModel | None:
        result = await session.execute(
            select(FeatureModel).where(FeatureModel.key == key)
        )
        return result.scalar_one_or_none()

    async def require_feature(self, session: AsyncSession, key: str) -> FeatureModel:
        feature = await self.get_feature_by_key(session, key)
        if feature is None:
            raise FeatureNotFoundError(f"Feature '{key}' not found")
        return feature

    async def list_features(self, session: AsyncSession) -> list[FeatureModel]:
        result = await session.execute(
            select(FeatureModel).order_by(FeatureModel.category, FeatureModel.key)
        )
        return list(result.scalars().all())

    async def list_feature_keys(self, session: AsyncSession) -> list[str]:
        """Live enumeration of every feature key in the catalog."""
        result = await session.execute(select(FeatureModel.key).order_by(FeatureModel.key))
        return list(result.scalars().all())

    async def feature_defaults(
        self, session: AsyncSession, keys: Iterable[str]
    ) -> dict[str, bool]:
        """``{key: default_value}`` for the given keys that exist in the catalog."""
        keys = list(keys)
        if not keys:
            return {}
        result = await session.execute(
            select(FeatureModel.key, FeatureModel.default_value)
            .where(FeatureModel.key.in_(keys))
        )
        return {key: bool(default) for key, default in result.all()}

    async def update_feature(
        self, session: AsyncSession, key: str,
        admin: AdminContext | None = None, **updates: Any,
    ) -> FeatureModel:
        feature = await self.require_feature(session, key)
        changed = {}
        for field in _FEATURE_FIELDS:
            if field in updates and updates[field] is not None:
                setattr(feature, field, updates[field])
                changed[field] = updates[field]
        await session.flush()
        await self._audit(session, "feature.updated", "feature", key, changed, admin)
        return feature

    async def delete_feature(
        self, session: AsyncSession, key: str, admin: AdminContext | None = None,
    ) -> None:
        """Delete a feature along with its plan grants and user override rows."""
        from plangate.overrides.models import FeatureOverrideModel

        feature = await self.require_feature(session, key)
        await session.execute(
            delete(PlanFeatureModel).where(PlanFeatureModel.feature_id == feature.id)
        )
        await session.execute(
            delete(FeatureOverrideModel).where(FeatureOverrideModel.feature_id == feature.id)
        )
        await session.delete(feature)
        await session.flush()
        await self._audit(session, "feature.deleted", "feature", key, {}, admin)

    # ── Plans ──

    async def create_plan(
        self, session: AsyncSession, name: str,
        admin: AdminContext | None = None, **kwargs: Any,
    ) -> PlanModel:
        if await self.get_plan_by_name(session, name) is not None:
            raise DuplicateError(f"Plan '{name}' already exists")
        plan = PlanModel(
            name=name,
            display_name=kwargs.get("display_name") or name.title(),
            description=kwargs.get("description", ""),
            is_active=kwargs.get("is_active", True),
            sort_order=kwargs.get("sort_order", 0),
            price_usd=kwargs.get("price_usd", 0.0),
            price_mxn=kwargs.get("price_mxn", 0.0),
            currency=kwargs.get("currency", "USD"),
            interval=kwargs.get("interval", "month"),
        )
        session.add(plan)
        await session.flush()
        await self._audit(session, "plan.created", "plan", plan.id, _plan_snapshot(plan), admin)
        return plan

    async def get_plan(self, session: AsyncSession, plan_id: str) -> PlanModel | None:
        return await session.get(PlanModel, plan_id)

    async def require_plan(self, session: AsyncSession, plan_id: str) -> PlanModel:
        plan = await self.get_plan(session, plan_id)
        if plan is None:
            raise PlanNotFoundError(f"Plan '{plan_id}' not found")
        return plan

    async def get_plan_by_name(self, session: AsyncSession, name: str) -> PlanModel | None:
        result = await session.execute(select(PlanModel).where(PlanModel.name == name))
        return result.scalar_one_or_none()

    async def list_plans(
        self, session: AsyncSession, include_inactive: bool = True,
    ) -> list[PlanModel]:
        query = select(PlanModel).order_by(PlanModel.sort_order, PlanModel.name)
        if not include_inactive:
            query = query.where(PlanModel.is_active == True)  # noqa: E712
        result = await session.execute(query)
        return list(result.scalars().all())

    async def update_plan(
        self, session: AsyncSession, plan_id: str,
        admin: AdminContext | None = None, **updates: Any,
    ) -> PlanModel:
        plan = await self.require_plan(session, plan_id)
        before = _plan_snapshot(plan)
        for field in _PLAN_FIELDS:
            if field in updates and updates[field] is not None:
                setattr(plan, field, updates[field])
        await session.flush()
        await self._audit(
            session, "plan.updated", "plan", plan.id,
            {"before": before, "after": _plan_snapshot(plan)}, admin,
        )
        return plan

    async def delete_plan(
        self, session: AsyncSession, plan_id: str, admin: AdminContext | None = None,
    ) -> None:
        """Delete a plan; its users are detached and fall back to the free plan."""
        from plangate.users.models import UserModel

        plan = await self.require_plan(session, plan_id)
        if plan.name == self.settings.fallback_plan_name:
            raise ProtectedPlanError()
        detached = await session.execute(
            update(UserModel).where(UserModel.plan_id == plan.id).values(plan_id=None)
        )
        await session.execute(
            delete(PlanFeatureModel).where(PlanFeatureModel.plan_id == plan.id)
        )
        snapshot = _plan_snapshot(plan)
        await session.delete(plan)
        await session.flush()
        await self._audit(
            session, "plan.deleted", "plan", plan_id,
            {"plan": snapshot, "users_detached": detached.rowcount or 0}, admin,
        )

    # ── Grants ──

    async def get_plan_feature(
        self, session: AsyncSession, plan_id: str, feature_id: str,
    ) -> PlanFeatureModel | None:
        result = await session.execute(
            select(PlanFeatureModel).where(
                PlanFeatureModel.plan_id == plan_id,
                PlanFeatureModel.feature_id == feature_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert_plan_feature(
        self,
        session: AsyncSession,
        plan_id: str,
        feature_key: str,
        enabled: bool = True,
        limit: int | None = None,
        admin: AdminContext | None = None,
    ) -> PlanFeatureModel:
        """Create or update the single grant for (plan, feature)."""
        plan = await self.require_plan(session, plan_id)
        feature = await self.require_feature(session, feature_key)

        grant = await self.get_plan_feature(session, plan.id, feature.id)
        before = {"enabled": grant.enabled, "limit": grant.limit} if grant else None
        if grant is None:
            grant = PlanFeatureModel(plan_id=plan.id, feature_id=feature.id)
            session.add(grant)
        grant.enabled = enabled
        grant.limit = limit
        await session.flush()

        await self._audit(
            session, "plan_feature.upserted", "plan", plan.id,
            {
                "feature_key": feature.key,
                "before": before,
                "after": {"enabled": enabled, "limit": limit},
            },
            admin,
        )
        return grant

    async def remove_plan_feature(
        self, session: AsyncSession, plan_id: str, feature_key: str,
        admin: AdminContext | None = None,
    ) -> bool:
        plan = await self.require_plan(session, plan_id)
        feature = await self.require_feature(session, feature_key)
        grant = await self.get_plan_feature(session, plan.id, feature.id)
        if grant is None:
            return False
        before = {"enabled": grant.enabled, "limit": grant.limit}
        await session.delete(grant)
        await session.flush()
        await self._audit(
            session, "plan_feature.removed", "plan", plan.id,
            {"feature_key": feature.key, "before": before}, admin,
        )
        return True

    # ── Resolution reads ──

    async def resolve_effective_plan(
        self, session: AsyncSession, plan_id: str | None,
    ) -> PlanModel:
        """The plan to resolve against: ``plan_id`` if it exists and is active,
        otherwise the fallback plan.

        Raises:
            PlanNotFoundError: if the fallback plan is missing from the catalog.
        """
        if plan_id:
            plan = await self.get_plan(session, plan_id)
            if plan is not None and plan.is_active:
                return plan
            logger.info(
                "Plan %s missing or inactive, using fallback plan", plan_id,
                extra={"plan_id": plan_id},
            )

        fallback_name = self.settings.fallback_plan_name
        fallback = await self.get_plan_by_name(session, fallback_name)
        if fallback is None:
            logger.error("Fallback plan '%s' is missing from the catalog", fallback_name)
            raise PlanNotFoundError(f"Fallback plan '{fallback_name}' is missing from the catalog")
        return fallback

    async def grants_for_plan(
        self, session: AsyncSession, plan_id: str,
    ) -> dict[str, Grant]:
        """All grants of one plan, keyed by feature key.

        Grants whose feature row no longer exists are skipped.
        """
        result = await session.execute(
            select(PlanFeatureModel, FeatureModel.key)
            .outerjoin(FeatureModel, FeatureModel.id == PlanFeatureModel.feature_id)
            .where(PlanFeatureModel.plan_id == plan_id)
        )
        grants: dict[str, Grant] = {}
        for row, key in result.all():
            if key is None:
                logger.warning(
                    "Skipping grant %s: feature %s does not exist", row.id, row.feature_id,
                    extra={"plan_id": plan_id, "feature_id": row.feature_id},
                )
                continue
            grants[key] = Grant(enabled=bool(row.enabled), limit=row.limit)
        return grants

    async def get_plan_features(
        self, session: AsyncSession, plan_id: str | None,
    ) -> dict[str, Grant]:
        """Grants of ``plan_id``, or of the fallback plan when it does not resolve."""
        plan = await self.resolve_effective_plan(session, plan_id)
        return await self.grants_for_plan(session, plan.id)

    async def get_matrix(self, session: AsyncSession) -> dict[str, Any]:
        """Every plan with its grants plus the feature list."""
        plans = await self.list_plans(session)
        features = await self.list_features(session)
        return {
            "plans": [
                {"plan": plan, "grants": await self.grants_for_plan(session, plan.id)}
                for plan in plans
            ],
            "features": features,
        }

    # ── Seeding ──

    async def seed_defaults(
        self, session: AsyncSession, admin: AdminContext | None = None,
    ) -> dict[str, int]:
        """Idempotently create the default features, plans, and their grants.

        Existing features and plans are left untouched; only grants missing for
        a default plan are created.
        """
        counts = {"features": 0, "plans": 0, "grants": 0}

        for key in default_feature_keys():
            if await self.get_feature_by_key(session, key) is None:
                await self.create_feature(
                    session, key, description=f"Seeded feature: {key}", admin=admin,
                )
                counts["features"] += 1

        for seed in PLAN_SEEDS:
            plan = await self.get_plan_by_name(session, seed["name"])
            if plan is None:
                fields = {k: v for k, v in seed.items() if k != "name"}
                plan = await self.create_plan(session, seed["name"], admin=admin, **fields)
                counts["plans"] += 1

            existing = await self.grants_for_plan(session, plan.id)
            for key, (enabled, limit) in resolve_plan_grants(seed["name"]).items():
                if key in existing:
                    continue
                await self.upsert_plan_feature(
                    session, plan.id, key, enabled=enabled, limit=limit, admin=admin,
                )
                counts["grants"] += 1

        logger.info("Catalog seeded", extra=counts)
        return counts

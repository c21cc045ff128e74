"""Override service — read merged per-user overrides, write audited rows."""

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.common.config import PlangateSettings
from plangate.common.exceptions import PlangateError, UserNotFoundError
from plangate.common.logging import get_logger
from plangate.common.security import SYSTEM_ADMIN, AdminContext
from plangate.catalog.models import FeatureModel
from plangate.overrides.legacy import parse_legacy_overrides
from plangate.overrides.models import FeatureOverrideLogModel, FeatureOverrideModel
from plangate.users.models import UserModel

logger = get_logger("overrides")


@dataclass
class MigrationReport:
    """Outcome of moving legacy JSON overrides into rows."""
    users_scanned: int = 0
    users_migrated: int = 0
    rows_created: int = 0
    rows_kept: int = 0
    skipped: list[tuple[str, str]] = field(default_factory=list)


class OverrideService:
    """Per-user feature exceptions layered on top of a plan."""

    def __init__(self, settings: PlangateSettings, catalog_service, audit_service=None):
        self.settings = settings
        self.catalog = catalog_service
        self.audit_service = audit_service

    # ── Read ──

    async def get_row_overrides(
        self, session: AsyncSession, user_id: str,
    ) -> dict[str, dict[str, Any]]:
        """Row overrides keyed by feature key. Rows pointing at a missing feature are skipped."""
        result = await session.execute(
            select(FeatureOverrideModel, FeatureModel.key)
            .outerjoin(FeatureModel, FeatureModel.id == FeatureOverrideModel.feature_id)
            .where(FeatureOverrideModel.user_id == user_id)
        )
        overrides: dict[str, dict[str, Any]] = {}
        for row, key in result.all():
            if key is None:
                logger.warning(
                    "Skipping override %s: feature %s does not exist", row.id, row.feature_id,
                    extra={"user_id": user_id, "feature_id": row.feature_id},
                )
                continue
            partial = row.partial()
            if partial:
                overrides[key] = partial
        return overrides

    async def overrides_for_user(
        self, session: AsyncSession, user: UserModel,
    ) -> dict[str, dict[str, Any]]:
        """Merge the legacy JSON blob and override rows; rows win per key."""
        merged: dict[str, dict[str, Any]] = {}
        if self.settings.honor_legacy_overrides:
            merged.update(parse_legacy_overrides(user.feature_overrides, user_id=user.id))
        merged.update(await self.get_row_overrides(session, user.id))
        return merged

    async def get_user_overrides(
        self, session: AsyncSession, user_id: str,
    ) -> dict[str, dict[str, Any]]:
        user = await session.get(UserModel, user_id)
        if user is None:
            raise UserNotFoundError(f"User '{user_id}' not found")
        return await self.overrides_for_user(session, user)

    async def list_override_logs(
        self,
        session: AsyncSession,
        user_id: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[FeatureOverrideLogModel], int]:
        """Override log entries, newest first. Returns (items, total_count)."""
        filters = []
        if user_id:
            filters.append(FeatureOverrideLogModel.user_id == user_id)

        count_result = await session.execute(
            select(func.count(FeatureOverrideLogModel.id)).where(*filters)
        )
        total = count_result.scalar() or 0

        result = await session.execute(
            select(FeatureOverrideLogModel)
            .where(*filters)
            .order_by(FeatureOverrideLogModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ── Write ──

    async def _get_row(
        self, session: AsyncSession, user_id: str, feature_id: str,
    ) -> FeatureOverrideModel | None:
        result = await session.execute(
            select(FeatureOverrideModel).where(
                FeatureOverrideModel.user_id == user_id,
                FeatureOverrideModel.feature_id == feature_id,
            )
        )
        return result.scalar_one_or_none()

    async def _log(
        self,
        session: AsyncSession,
        user_id: str,
        feature_key: str,
        action: str,
        old_value: dict | None,
        new_value: dict | None,
        reason: str,
        admin: AdminContext,
    ) -> None:
        session.add(FeatureOverrideLogModel(
            user_id=user_id,
            feature_key=feature_key,
            action=action,
            admin_id=admin.admin_id,
            admin_email=admin.admin_email,
            admin_role=admin.admin_role,
            old_value=old_value,
            new_value=new_value,
            reason=reason,
        ))
        if self.audit_service:
            await self.audit_service.record_action(
                session, action, "user", user_id,
                {"feature_key": feature_key, "old": old_value, "new": new_value},
                admin=admin,
            )

    async def set_override(
        self,
        session: AsyncSession,
        user_id: str,
        feature_key: str,
        enabled: bool | None = None,
        limit: int | None = None,
        reason: str = "",
        admin: AdminContext | None = None,
        clear_limit: bool = False,
    ) -> FeatureOverrideModel:
        """Create or replace the override row for (user, feature).

        ``clear_limit=True`` with ``limit=None`` stores an explicit "no limit"
        that replaces the plan's limit instead of keeping it.
        """
        admin = admin or SYSTEM_ADMIN
        if enabled is None and limit is None and not clear_limit:
            raise PlangateError("An override must set enabled, limit, or both", code="EMPTY_OVERRIDE")

        user = await session.get(UserModel, user_id)
        if user is None:
            raise UserNotFoundError(f"User '{user_id}' not found")
        feature = await self.catalog.require_feature(session, feature_key)

        row = await self._get_row(session, user.id, feature.id)
        old_value = row.partial() if row else None
        if row is None:
            row = FeatureOverrideModel(user_id=user.id, feature_id=feature.id)
            session.add(row)
        row.enabled = enabled
        row.limit = limit
        row.limit_set = limit is not None or clear_limit
        row.reason = reason
        row.created_by = admin.admin_id
        await session.flush()

        await self._log(
            session, user.id, feature.key, "override.set",
            old_value, row.partial(), reason, admin,
        )
        await session.flush()
        return row

    async def delete_override(
        self,
        session: AsyncSession,
        user_id: str,
        feature_key: str,
        admin: AdminContext | None = None,
    ) -> bool:
        admin = admin or SYSTEM_ADMIN
        user = await session.get(UserModel, user_id)
        if user is None:
            raise UserNotFoundError(f"User '{user_id}' not found")
        feature = await self.catalog.require_feature(session, feature_key)

        row = await self._get_row(session, user.id, feature.id)
        if row is None:
            return False
        old_value = row.partial()
        await session.delete(row)
        await self._log(
            session, user.id, feature.key, "override.deleted",
            old_value, None, "", admin,
        )
        await session.flush()
        return True

    # ── Migration ──

    async def migrate_legacy_overrides(
        self, session: AsyncSession, admin: AdminContext | None = None,
    ) -> MigrationReport:
        """Move every legacy JSON override into rows and clear the blobs.

        Existing rows are never overwritten (they are newer and audited).
        Keys missing from the feature catalog are reported and dropped.
        """
        admin = admin or SYSTEM_ADMIN
        report = MigrationReport()

        result = await session.execute(
            select(UserModel).where(UserModel.feature_overrides.is_not(None))
        )
        users = list(result.scalars().all())

        for user in users:
            report.users_scanned += 1
            parsed = parse_legacy_overrides(user.feature_overrides, user_id=user.id)
            existing = await self.get_row_overrides(session, user.id)

            for key, partial in parsed.items():
                if key in existing:
                    report.rows_kept += 1
                    continue
                feature = await self.catalog.get_feature_by_key(session, key)
                if feature is None:
                    report.skipped.append((user.id, key))
                    continue
                session.add(FeatureOverrideModel(
                    user_id=user.id,
                    feature_id=feature.id,
                    enabled=partial.get("enabled"),
                    limit=partial.get("limit"),
                    limit_set="limit" in partial,
                    reason="Migrated from legacy JSON overrides",
                    created_by=admin.admin_id,
                ))
                await self._log(
                    session, user.id, key, "override.migrated",
                    None, partial, "Migrated from legacy JSON overrides", admin,
                )
                report.rows_created += 1

            user.feature_overrides = None
            report.users_migrated += 1
            await session.flush()

        logger.info(
            "Legacy overrides migrated",
            extra={
                "users_migrated": report.users_migrated,
                "rows_created": report.rows_created,
                "skipped": len(report.skipped),
            },
        )
        return report

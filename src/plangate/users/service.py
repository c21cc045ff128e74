"""User service — create users and assign role and plan."""

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.common.config import PlangateSettings
from plangate.common.exceptions import (
    DuplicateError,
    PlanNotFoundError,
    PlangateError,
    UserNotFoundError,
)
from plangate.common.security import AdminContext
from plangate.catalog.models import PlanModel
from plangate.users.models import USER_ROLES, UserModel


def _user_snapshot(user: UserModel) -> dict[str, Any]:
    return {
        "role": user.role,
        "plan_id": user.plan_id,
        "feature_overrides": user.feature_overrides,
    }


class UserService:
    """User management operations."""

    def __init__(self, settings: PlangateSettings, audit_service=None):
        self.settings = settings
        self.audit_service = audit_service

    @staticmethod
    def _check_role(role: str) -> str:
        role = role.upper()
        if role not in USER_ROLES:
            raise PlangateError(f"Invalid role '{role}'", code="INVALID_ROLE")
        return role

    @staticmethod
    async def _check_plan(session: AsyncSession, plan_id: str | None) -> None:
        if plan_id and await session.get(PlanModel, plan_id) is None:
            raise PlanNotFoundError(f"Plan '{plan_id}' not found")

    async def create_user(
        self,
        session: AsyncSession,
        email: str,
        name: str = "",
        role: str = "USER",
        plan_id: str | None = None,
        feature_overrides: Any = None,
        admin: AdminContext | None = None,
    ) -> UserModel:
        role = self._check_role(role)
        await self._check_plan(session, plan_id)
        existing = await session.execute(select(UserModel.id).where(UserModel.email == email))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError(f"User '{email}' already exists")

        user = UserModel(
            email=email,
            name=name,
            role=role,
            plan_id=plan_id,
            feature_overrides=feature_overrides,
        )
        session.add(user)
        await session.flush()

        if self.audit_service:
            await self.audit_service.record_action(
                session, "user.created", "user", user.id, _user_snapshot(user), admin=admin,
            )
        return user

    async def get_user(self, session: AsyncSession, user_id: str) -> UserModel | None:
        return await session.get(UserModel, user_id)

    async def require_user(self, session: AsyncSession, user_id: str) -> UserModel:
        user = await self.get_user(session, user_id)
        if user is None:
            raise UserNotFoundError(f"User '{user_id}' not found")
        return user

    async def list_users(
        self,
        session: AsyncSession,
        role: str | None = None,
        plan_id: str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[UserModel], int]:
        """List users with optional filtering. Returns (items, total_count).

        ``plan_id="none"`` selects users without an assigned plan.
        """
        filters = []
        if role:
            filters.append(UserModel.role == role.upper())
        if plan_id == "none":
            filters.append(UserModel.plan_id.is_(None))
        elif plan_id:
            filters.append(UserModel.plan_id == plan_id)
        if search:
            pattern = f"%{search}%"
            filters.append(or_(UserModel.email.ilike(pattern), UserModel.name.ilike(pattern)))

        count_result = await session.execute(select(func.count(UserModel.id)).where(*filters))
        total = count_result.scalar() or 0

        result = await session.execute(
            select(UserModel)
            .where(*filters)
            .order_by(UserModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_user(
        self, session: AsyncSession, user_id: str,
        admin: AdminContext | None = None, **updates: Any,
    ) -> UserModel:
        """Apply the given updates.

        ``plan_id`` and ``feature_overrides`` may be set to ``None`` explicitly
        (detach from plan / clear the legacy blob); other fields ignore ``None``.
        """
        user = await self.require_user(session, user_id)
        before = _user_snapshot(user)

        if updates.get("name") is not None:
            user.name = updates["name"]
        if updates.get("role") is not None:
            user.role = self._check_role(updates["role"])
        if "plan_id" in updates:
            await self._check_plan(session, updates["plan_id"])
            user.plan_id = updates["plan_id"] or None
        if "feature_overrides" in updates:
            user.feature_overrides = updates["feature_overrides"]

        await session.flush()

        if self.audit_service:
            await self.audit_service.record_action(
                session, "user.updated", "user", user.id,
                {"before": before, "after": _user_snapshot(user)},
                admin=admin,
            )
        return user

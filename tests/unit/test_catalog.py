"""Tests for catalog service — features, plans, grants, fallback, seeding."""

import pytest
from sqlalchemy import select

from plangate.audit.models import AdminActionLogModel
from plangate.audit.service import AuditService
from plangate.catalog.models import PlanFeatureModel
from plangate.catalog.service import CatalogService
from plangate.common.config import PlangateSettings
from plangate.common.database import DatabaseManager
from plangate.common.exceptions import (
    DuplicateError,
    FeatureNotFoundError,
    PlanNotFoundError,
    ProtectedPlanError,
)
from plangate.common.security import AdminContext
from plangate.entitlements.resolution import Grant
from plangate.users.models import UserModel


HMAC_KEY = "test-hmac-key-for-unit-tests"


def make_settings(**overrides) -> PlangateSettings:
    defaults = {"hmac_key": HMAC_KEY, "db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return PlangateSettings(**defaults)


@pytest.fixture
async def db():
    settings = make_settings()
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def svc():
    settings = make_settings()
    return CatalogService(settings, audit_service=AuditService(settings))


class TestFeatures:
    async def test_create_feature(self, db, svc):
        async with db.get_session() as session:
            feature = await svc.create_feature(session, "calendarSync", description="Sync")
            assert feature.id is not None
            assert feature.category == "system"
            assert feature.default_value is False

    async def test_explicit_category(self, db, svc):
        async with db.get_session() as session:
            feature = await svc.create_feature(session, "calendarSync", category="booking")
            assert feature.category == "booking"

    async def test_duplicate_key(self, db, svc):
        async with db.get_session() as session:
            await svc.create_feature(session, "calendarSync")
            with pytest.raises(DuplicateError):
                await svc.create_feature(session, "calendarSync")

    async def test_list_ordered_by_category_then_key(self, db, svc):
        async with db.get_session() as session:
            for key in ("videoGallery", "closerGallery", "calendarSync", "musicGallery"):
                await svc.create_feature(session, key)
            features = await svc.list_features(session)
            assert [(f.category, f.key) for f in features] == [
                ("gallery", "closerGallery"),
                ("gallery", "musicGallery"),
                ("system", "calendarSync"),
                ("video", "videoGallery"),
            ]

    async def test_update_feature(self, db, svc):
        async with db.get_session() as session:
            await svc.create_feature(session, "calendarSync")
            feature = await svc.update_feature(
                session, "calendarSync", default_value=True, description=None,
            )
            assert feature.default_value is True
            assert feature.description == ""

    async def test_update_missing(self, db, svc):
        async with db.get_session() as session:
            with pytest.raises(FeatureNotFoundError):
                await svc.update_feature(session, "nope", description="x")

    async def test_feature_defaults(self, db, svc):
        async with db.get_session() as session:
            await svc.create_feature(session, "a", default_value=True)
            await svc.create_feature(session, "b")
            assert await svc.feature_defaults(session, ["a", "b", "c"]) == {"a": True, "b": False}
            assert await svc.feature_defaults(session, []) == {}

    async def test_delete_feature_removes_grants(self, db, svc):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "free")
            await svc.create_feature(session, "calendarSync")
            await svc.upsert_plan_feature(session, plan.id, "calendarSync")
            await svc.delete_feature(session, "calendarSync")
        async with db.get_session() as session:
            rows = (await session.execute(select(PlanFeatureModel))).scalars().all()
            assert rows == []
            assert await svc.list_feature_keys(session) == []


class TestPlans:
    async def test_create_plan_defaults(self, db, svc):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "pro", price_usd=12.0)
            assert plan.display_name == "Pro"
            assert plan.is_active is True
            assert plan.price_usd == 12.0
            assert plan.currency == "USD"

    async def test_duplicate_plan(self, db, svc):
        async with db.get_session() as session:
            await svc.create_plan(session, "pro")
            with pytest.raises(DuplicateError):
                await svc.create_plan(session, "pro")

    async def test_list_by_sort_order(self, db, svc):
        async with db.get_session() as session:
            await svc.create_plan(session, "studio", sort_order=3)
            await svc.create_plan(session, "free", sort_order=0)
            await svc.create_plan(session, "legacy", sort_order=1, is_active=False)
            names = [p.name for p in await svc.list_plans(session)]
            assert names == ["free", "legacy", "studio"]
            active = [p.name for p in await svc.list_plans(session, include_inactive=False)]
            assert active == ["free", "studio"]

    async def test_update_plan(self, db, svc):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "pro")
            updated = await svc.update_plan(session, plan.id, is_active=False, price_mxn=229.0)
            assert updated.is_active is False
            assert updated.price_mxn == 229.0

    async def test_fallback_plan_is_protected(self, db, svc):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "free")
            with pytest.raises(ProtectedPlanError):
                await svc.delete_plan(session, plan.id)

    async def test_delete_plan_detaches_users(self, db, svc):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "pro")
            user = UserModel(email="a@example.com", plan_id=plan.id)
            session.add(user)
            await session.flush()
            user_id = user.id
            await svc.delete_plan(session, plan.id)
        async with db.get_session() as session:
            user = await session.get(UserModel, user_id)
            assert user.plan_id is None

    async def test_delete_missing_plan(self, db, svc):
        async with db.get_session() as session:
            with pytest.raises(PlanNotFoundError):
                await svc.delete_plan(session, "missing")


class TestGrants:
    async def test_upsert_creates_then_updates(self, db, svc):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "pro")
            await svc.create_feature(session, "maxProjects")
            await svc.upsert_plan_feature(session, plan.id, "maxProjects", limit=50)
            await svc.upsert_plan_feature(session, plan.id, "maxProjects", limit=100)
            grants = await svc.grants_for_plan(session, plan.id)
            assert grants == {"maxProjects": Grant(True, 100)}
            rows = (await session.execute(select(PlanFeatureModel))).scalars().all()
            assert len(rows) == 1

    async def test_upsert_unknown_feature(self, db, svc):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "pro")
            with pytest.raises(FeatureNotFoundError):
                await svc.upsert_plan_feature(session, plan.id, "nope")

    async def test_upsert_unknown_plan(self, db, svc):
        async with db.get_session() as session:
            await svc.create_feature(session, "calendarSync")
            with pytest.raises(PlanNotFoundError):
                await svc.upsert_plan_feature(session, "missing", "calendarSync")

    async def test_remove_grant(self, db, svc):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "pro")
            await svc.create_feature(session, "calendarSync")
            await svc.upsert_plan_feature(session, plan.id, "calendarSync")
            assert await svc.remove_plan_feature(session, plan.id, "calendarSync") is True
            assert await svc.remove_plan_feature(session, plan.id, "calendarSync") is False
            assert await svc.grants_for_plan(session, plan.id) == {}

    async def test_orphan_grant_skipped(self, db, svc, caplog):
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "pro")
            session.add(PlanFeatureModel(plan_id=plan.id, feature_id="gone", enabled=True))
            await session.flush()
            grants = await svc.grants_for_plan(session, plan.id)
            assert grants == {}
        assert "does not exist" in caplog.text

    async def test_matrix(self, db, svc):
        async with db.get_session() as session:
            free = await svc.create_plan(session, "free")
            await svc.create_plan(session, "pro", sort_order=1)
            await svc.create_feature(session, "calendarSync")
            await svc.upsert_plan_feature(session, free.id, "calendarSync", enabled=False)
            matrix = await svc.get_matrix(session)
            assert [entry["plan"].name for entry in matrix["plans"]] == ["free", "pro"]
            assert matrix["plans"][0]["grants"] == {"calendarSync": Grant(False)}
            assert matrix["plans"][1]["grants"] == {}
            assert [f.key for f in matrix["features"]] == ["calendarSync"]


class TestEffectivePlan:
    async def test_assigned_plan(self, db, svc):
        async with db.get_session() as session:
            await svc.create_plan(session, "free")
            pro = await svc.create_plan(session, "pro")
            plan = await svc.resolve_effective_plan(session, pro.id)
            assert plan.id == pro.id

    async def test_no_plan_uses_free(self, db, svc):
        async with db.get_session() as session:
            free = await svc.create_plan(session, "free")
            assert (await svc.resolve_effective_plan(session, None)).id == free.id

    async def test_unknown_plan_uses_free(self, db, svc):
        async with db.get_session() as session:
            free = await svc.create_plan(session, "free")
            assert (await svc.resolve_effective_plan(session, "ghost")).id == free.id

    async def test_inactive_plan_uses_free(self, db, svc):
        async with db.get_session() as session:
            free = await svc.create_plan(session, "free")
            old = await svc.create_plan(session, "legacy", is_active=False)
            assert (await svc.resolve_effective_plan(session, old.id)).id == free.id

    async def test_missing_free_raises(self, db, svc):
        async with db.get_session() as session:
            with pytest.raises(PlanNotFoundError):
                await svc.resolve_effective_plan(session, None)

    async def test_custom_fallback_name(self, db):
        svc = CatalogService(make_settings(fallback_plan_name="starter"))
        async with db.get_session() as session:
            starter = await svc.create_plan(session, "starter")
            await svc.create_plan(session, "free")
            assert (await svc.resolve_effective_plan(session, None)).id == starter.id

    async def test_get_plan_features_falls_back(self, db, svc):
        async with db.get_session() as session:
            free = await svc.create_plan(session, "free")
            await svc.create_feature(session, "maxProjects")
            await svc.upsert_plan_feature(session, free.id, "maxProjects", limit=3)
            assert await svc.get_plan_features(session, None) == {"maxProjects": Grant(True, 3)}


class TestSeedDefaults:
    async def test_seed_creates_catalog(self, db, svc):
        async with db.get_session() as session:
            counts = await svc.seed_defaults(session)
            assert counts["plans"] == 5
            assert counts["features"] > 0
            assert counts["grants"] > 0
            free = await svc.get_plan_by_name(session, "free")
            grants = await svc.grants_for_plan(session, free.id)
            assert grants["maxProjects"] == Grant(True, 3)
            assert grants["calendarSync"] == Grant(False)

    async def test_seed_is_idempotent(self, db, svc):
        async with db.get_session() as session:
            await svc.seed_defaults(session)
        async with db.get_session() as session:
            counts = await svc.seed_defaults(session)
            assert counts == {"features": 0, "plans": 0, "grants": 0}

    async def test_seed_keeps_edited_grants(self, db, svc):
        async with db.get_session() as session:
            await svc.seed_defaults(session)
            free = await svc.get_plan_by_name(session, "free")
            await svc.upsert_plan_feature(session, free.id, "maxProjects", limit=7)
            await svc.seed_defaults(session)
            grants = await svc.grants_for_plan(session, free.id)
            assert grants["maxProjects"] == Grant(True, 7)


class TestCatalogAudit:
    async def test_writes_are_audited_with_admin(self, db, svc):
        admin = AdminContext(admin_id="admin-1", admin_email="ops@example.com")
        async with db.get_session() as session:
            plan = await svc.create_plan(session, "pro", admin=admin)
            await svc.create_feature(session, "calendarSync", admin=admin)
            await svc.upsert_plan_feature(session, plan.id, "calendarSync", admin=admin)
        async with db.get_session() as session:
            entries = (await session.execute(
                select(AdminActionLogModel).order_by(AdminActionLogModel.sequence)
                .where(AdminActionLogModel.resource_type == "plan")
            )).scalars().all()
            assert [e.action for e in entries] == ["plan.created", "plan_feature.upserted"]
            assert all(e.admin_id == "admin-1" for e in entries)
            assert entries[1].detail["feature_key"] == "calendarSync"
            assert entries[1].detail["before"] is None

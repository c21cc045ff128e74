"""Tests for user service — creation, role and plan assignment, listing."""

import pytest

from plangate.audit.service import AuditService
from plangate.catalog.service import CatalogService
from plangate.common.config import PlangateSettings
from plangate.common.database import DatabaseManager
from plangate.common.exceptions import (
    DuplicateError,
    PlanNotFoundError,
    PlangateError,
    UserNotFoundError,
)
from plangate.users.service import UserService


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
def audit():
    return AuditService(make_settings())


@pytest.fixture
def svc(audit):
    return UserService(make_settings(), audit_service=audit)


@pytest.fixture
def catalog():
    return CatalogService(make_settings())


class TestUserCreate:
    async def test_create_user(self, db, svc):
        async with db.get_session() as session:
            user = await svc.create_user(session, "ana@example.com", name="Ana")
            assert user.id is not None
            assert user.role == "USER"
            assert user.plan_id is None

    async def test_role_normalized(self, db, svc):
        async with db.get_session() as session:
            user = await svc.create_user(session, "root@example.com", role="superadmin")
            assert user.role == "SUPERADMIN"

    async def test_invalid_role(self, db, svc):
        async with db.get_session() as session:
            with pytest.raises(PlangateError) as exc:
                await svc.create_user(session, "x@example.com", role="OWNER")
            assert exc.value.code == "INVALID_ROLE"

    async def test_unknown_plan(self, db, svc):
        async with db.get_session() as session:
            with pytest.raises(PlanNotFoundError):
                await svc.create_user(session, "x@example.com", plan_id="missing")

    async def test_duplicate_email(self, db, svc):
        async with db.get_session() as session:
            await svc.create_user(session, "ana@example.com")
            with pytest.raises(DuplicateError):
                await svc.create_user(session, "ana@example.com")

    async def test_creation_audited(self, db, svc, audit):
        async with db.get_session() as session:
            user = await svc.create_user(session, "ana@example.com")
            items, total = await audit.list_actions(session, resource_type="user")
            assert total == 1
            assert items[0].action == "user.created"
            assert items[0].resource_id == user.id


class TestUserUpdate:
    async def test_assign_plan(self, db, svc, catalog):
        async with db.get_session() as session:
            plan = await catalog.create_plan(session, "pro")
            user = await svc.create_user(session, "ana@example.com")
            updated = await svc.update_user(session, user.id, plan_id=plan.id)
            assert updated.plan_id == plan.id

    async def test_detach_plan(self, db, svc, catalog):
        async with db.get_session() as session:
            plan = await catalog.create_plan(session, "pro")
            user = await svc.create_user(session, "ana@example.com", plan_id=plan.id)
            updated = await svc.update_user(session, user.id, plan_id=None)
            assert updated.plan_id is None

    async def test_none_name_ignored(self, db, svc):
        async with db.get_session() as session:
            user = await svc.create_user(session, "ana@example.com", name="Ana")
            updated = await svc.update_user(session, user.id, name=None, role="STAFF")
            assert updated.name == "Ana"
            assert updated.role == "STAFF"

    async def test_set_and_clear_legacy_blob(self, db, svc):
        async with db.get_session() as session:
            user = await svc.create_user(session, "ana@example.com")
            updated = await svc.update_user(
                session, user.id, feature_overrides={"calendarSync": True},
            )
            assert updated.feature_overrides == {"calendarSync": True}
            cleared = await svc.update_user(session, user.id, feature_overrides=None)
            assert cleared.feature_overrides is None

    async def test_update_missing_user(self, db, svc):
        async with db.get_session() as session:
            with pytest.raises(UserNotFoundError):
                await svc.update_user(session, "missing", name="X")

    async def test_update_unknown_plan(self, db, svc):
        async with db.get_session() as session:
            user = await svc.create_user(session, "ana@example.com")
            with pytest.raises(PlanNotFoundError):
                await svc.update_user(session, user.id, plan_id="missing")

    async def test_update_audits_before_and_after(self, db, svc, audit):
        async with db.get_session() as session:
            user = await svc.create_user(session, "ana@example.com")
            await svc.update_user(session, user.id, role="STAFF")
            head = await audit.get_chain_head(session, "user", user.id)
            assert head.action == "user.updated"
            assert head.detail["before"]["role"] == "USER"
            assert head.detail["after"]["role"] == "STAFF"
            assert head.sequence == 1


class TestUserList:
    async def test_filters(self, db, svc, catalog):
        async with db.get_session() as session:
            plan = await catalog.create_plan(session, "pro")
            await svc.create_user(session, "ana@example.com", name="Ana", plan_id=plan.id)
            await svc.create_user(session, "bo@example.com", name="Bo", role="STAFF")
            await svc.create_user(session, "root@example.com", role="SUPERADMIN")

            _, total = await svc.list_users(session)
            assert total == 3

            items, total = await svc.list_users(session, role="staff")
            assert total == 1 and items[0].email == "bo@example.com"

            items, total = await svc.list_users(session, plan_id=plan.id)
            assert [u.email for u in items] == ["ana@example.com"]

            _, total = await svc.list_users(session, plan_id="none")
            assert total == 2

            items, _ = await svc.list_users(session, search="ANA")
            assert [u.email for u in items] == ["ana@example.com"]

    async def test_pagination(self, db, svc):
        async with db.get_session() as session:
            for i in range(5):
                await svc.create_user(session, f"u{i}@example.com")
            items, total = await svc.list_users(session, offset=3, limit=2)
            assert total == 5
            assert len(items) == 2

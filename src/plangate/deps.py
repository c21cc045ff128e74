"""Dependency injection singletons for Plangate."""

from plangate.common.config import get_settings
from plangate.common.database import DatabaseManager
from plangate.audit.service import AuditService
from plangate.catalog.service import CatalogService
from plangate.entitlements.service import EntitlementService
from plangate.overrides.service import OverrideService
from plangate.users.service import UserService

_db: DatabaseManager | None = None
_audit: AuditService | None = None
_catalog: CatalogService | None = None
_users: UserService | None = None
_overrides: OverrideService | None = None
_entitlements: EntitlementService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_audit_service() -> AuditService:
    global _audit
    if _audit is None:
        _audit = AuditService(get_settings())
    return _audit


def get_catalog_service() -> CatalogService:
    global _catalog
    if _catalog is None:
        _catalog = CatalogService(get_settings(), audit_service=get_audit_service())
    return _catalog


def get_user_service() -> UserService:
    global _users
    if _users is None:
        _users = UserService(get_settings(), audit_service=get_audit_service())
    return _users


def get_override_service() -> OverrideService:
    global _overrides
    if _overrides is None:
        _overrides = OverrideService(
            get_settings(), get_catalog_service(),
            audit_service=get_audit_service(),
        )
    return _overrides


def get_entitlement_service() -> EntitlementService:
    global _entitlements
    if _entitlements is None:
        _entitlements = EntitlementService(
            get_settings(), get_catalog_service(), get_override_service(),
        )
    return _entitlements


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _audit, _catalog, _users, _overrides, _entitlements
    _db = None
    _audit = None
    _catalog = None
    _users = None
    _overrides = None
    _entitlements = None

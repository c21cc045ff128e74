"""API key authentication and admin identity dependencies."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException


@dataclass
class AdminContext:
    """Identity of the administrator performing a write, recorded in audit logs."""
    admin_id: str = "system"
    admin_email: Optional[str] = None
    admin_role: str = "SUPERADMIN"

    def snapshot(self) -> dict:
        return {
            "admin_id": self.admin_id,
            "admin_email": self.admin_email,
            "admin_role": self.admin_role,
        }


SYSTEM_ADMIN = AdminContext()


async def require_api_key(
    x_plangate_api_key: str = Header(..., alias="X-Plangate-Api-Key"),
) -> str:
    """FastAPI dependency that validates the service API key from header."""
    from plangate.common.config import get_settings

    settings = get_settings()
    if x_plangate_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_plangate_api_key


async def resolve_admin(
    _: str = Depends(require_api_key),
    x_plangate_admin_id: str = Header(None, alias="X-Plangate-Admin-Id"),
    x_plangate_admin_email: str = Header(None, alias="X-Plangate-Admin-Email"),
    x_plangate_admin_role: str = Header(None, alias="X-Plangate-Admin-Role"),
) -> AdminContext:
    """FastAPI dependency for write endpoints.

    Requires the API key, then reads the acting administrator from the
    optional identity headers. Missing headers fall back to the system actor.
    """
    return AdminContext(
        admin_id=x_plangate_admin_id or SYSTEM_ADMIN.admin_id,
        admin_email=x_plangate_admin_email,
        admin_role=x_plangate_admin_role or SYSTEM_ADMIN.admin_role,
    )

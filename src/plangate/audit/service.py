"""Audit service — record, verify, and query the admin action chain."""

import hashlib
import hmac as hmac_mod
import json
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.common.config import PlangateSettings
from plangate.common.security import SYSTEM_ADMIN, AdminContext
from plangate.audit.models import AdminActionLogModel


class AuditService:
    """Immutable, hash-chained log of administrative writes, one chain per resource."""

    def __init__(self, settings: PlangateSettings):
        self.settings = settings

    # ── Write ──

    async def record_action(
        self,
        session: AsyncSession,
        action: str,
        resource_type: str,
        resource_id: str,
        detail: dict[str, Any] | None = None,
        admin: AdminContext | None = None,
    ) -> AdminActionLogModel:
        """Append a new entry to the resource's audit chain."""
        detail = detail or {}
        admin = admin or SYSTEM_ADMIN

        head = await self.get_chain_head(session, resource_type, resource_id)
        prev_hash = head.event_hash if head else None
        sequence = head.sequence + 1 if head else 0

        event_hash = self._compute_event_hash(
            action, admin.admin_id, resource_type, resource_id, detail, prev_hash,
        )
        signature = self._sign(event_hash)

        entry = AdminActionLogModel(
            admin_id=admin.admin_id,
            admin_email=admin.admin_email,
            admin_role=admin.admin_role,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            detail=detail,
            sequence=sequence,
            prev_hash=prev_hash,
            event_hash=event_hash,
            signature=signature,
        )
        session.add(entry)
        await session.flush()
        return entry

    # ── Read ──

    async def get_chain_head(
        self, session: AsyncSession, resource_type: str, resource_id: str,
    ) -> AdminActionLogModel | None:
        """Return the most recent entry for a resource."""
        result = await session.execute(
            select(AdminActionLogModel)
            .where(
                AdminActionLogModel.resource_type == resource_type,
                AdminActionLogModel.resource_id == resource_id,
            )
            .order_by(AdminActionLogModel.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_actions(
        self,
        session: AsyncSession,
        resource_type: str | None = None,
        resource_id: str | None = None,
        admin_id: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[AdminActionLogModel], int]:
        """Paginated entries, newest first. Returns (items, total_count)."""
        filters = []
        if resource_type:
            filters.append(AdminActionLogModel.resource_type == resource_type)
        if resource_id:
            filters.append(AdminActionLogModel.resource_id == resource_id)
        if admin_id:
            filters.append(AdminActionLogModel.admin_id == admin_id)

        count_result = await session.execute(
            select(func.count(AdminActionLogModel.id)).where(*filters)
        )
        total = count_result.scalar() or 0

        result = await session.execute(
            select(AdminActionLogModel)
            .where(*filters)
            .order_by(
                AdminActionLogModel.created_at.desc(),
                AdminActionLogModel.sequence.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ── Verify ──

    async def verify_chain(
        self, session: AsyncSession, resource_type: str, resource_id: str,
    ) -> dict[str, Any]:
        """Walk the chain oldest→newest, verify hashes and signatures."""
        result = await session.execute(
            select(AdminActionLogModel)
            .where(
                AdminActionLogModel.resource_type == resource_type,
                AdminActionLogModel.resource_id == resource_id,
            )
            .order_by(AdminActionLogModel.sequence.asc())
        )
        entries = list(result.scalars().all())

        prev_hash = None
        for index, entry in enumerate(entries):
            expected_hash = self._compute_event_hash(
                entry.action, entry.admin_id, entry.resource_type,
                entry.resource_id, entry.detail, entry.prev_hash,
            )
            if (
                entry.prev_hash != prev_hash
                or entry.event_hash != expected_hash
                or not self._verify_signature(entry.event_hash, entry.signature)
            ):
                return {"valid": False, "events_checked": index, "break_at": entry.id}
            prev_hash = entry.event_hash

        return {"valid": True, "events_checked": len(entries), "break_at": None}

    # ── Internal helpers ──

    @staticmethod
    def _compute_event_hash(
        action: str,
        admin_id: str,
        resource_type: str,
        resource_id: str,
        detail: dict[str, Any],
        prev_hash: str | None,
    ) -> str:
        """SHA-256 of canonical JSON of the entry fields."""
        canonical = json.dumps(
            {
                "action": action,
                "admin_id": admin_id,
                "resource": f"{resource_type}:{resource_id}",
                "detail": detail,
                "prev_hash": prev_hash,
            },
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return hashlib.sha256(canonical.encode()).hexdigest()

    def _sign(self, event_hash: str) -> str:
        """HMAC-SHA256 of event_hash with the current HMAC key."""
        return hmac_mod.new(
            self.settings.current_hmac_key.encode(),
            event_hash.encode(),
            hashlib.sha256,
        ).hexdigest()

    def _verify_signature(self, event_hash: str, signature: str) -> bool:
        """Verify signature against all keys in the keyring."""
        for _version, key in self.settings.hmac_keyring.items():
            expected = hmac_mod.new(
                key.encode(), event_hash.encode(), hashlib.sha256,
            ).hexdigest()
            if hmac_mod.compare_digest(expected, signature):
                return True
        return False

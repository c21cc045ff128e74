"""SQLAlchemy models for per-user feature overrides and their log."""

from typing import Any

from sqlalchemy import Boolean, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from plangate.common.models import Base, TimestampMixin, generate_uuid


class FeatureOverrideModel(Base, TimestampMixin):
    __tablename__ = "feature_overrides"
    __table_args__ = (
        UniqueConstraint("user_id", "feature_id", name="uq_user_feature_override"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    feature_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("features.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # NULL means "not overridden, keep the plan value".
    enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # True with a NULL limit overrides the plan's limit with "no limit".
    limit_set: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reason: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str] = mapped_column(String(255), default="system")

    def partial(self) -> dict[str, Any]:
        partial: dict[str, Any] = {}
        if self.enabled is not None:
            partial["enabled"] = self.enabled
        if self.limit is not None or self.limit_set:
            partial["limit"] = self.limit
        return partial


class FeatureOverrideLogModel(Base, TimestampMixin):
    """Append-only. Never read by entitlement resolution."""
    __tablename__ = "feature_override_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    feature_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    admin_id: Mapped[str] = mapped_column(String(255), nullable=False, default="system")
    admin_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin_role: Mapped[str] = mapped_column(String(20), nullable=False, default="SUPERADMIN")
    old_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    reason: Mapped[str] = mapped_column(Text, default="")

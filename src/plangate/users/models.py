"""SQLAlchemy model for the entitlement-relevant slice of a platform user."""

from typing import Any

from sqlalchemy import ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from plangate.common.models import Base, TimestampMixin, generate_uuid

USER_ROLES = ("USER", "STAFF", "SUPERADMIN")


class UserModel(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    role: Mapped[str] = mapped_column(String(20), default="USER", index=True)
    plan_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("plans.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Legacy ad-hoc overrides; superseded by feature_overrides rows.
    feature_overrides: Mapped[Any | None] = mapped_column(JSON(none_as_null=True), nullable=True)

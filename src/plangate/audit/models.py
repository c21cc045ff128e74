"""SQLAlchemy model for the admin action audit chain."""

from sqlalchemy import Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from plangate.common.models import Base, TimestampMixin, generate_uuid


class AdminActionLogModel(Base, TimestampMixin):
    __tablename__ = "admin_action_logs"
    __table_args__ = (
        Index("ix_admin_action_resource", "resource_type", "resource_id", "sequence"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    admin_id: Mapped[str] = mapped_column(String(255), nullable=False, default="system", index=True)
    admin_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin_role: Mapped[str] = mapped_column(String(20), nullable=False, default="SUPERADMIN")
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    detail: Mapped[dict] = mapped_column(JSON, default=dict)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    event_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    signature: Mapped[str] = mapped_column(String(64), nullable=False)

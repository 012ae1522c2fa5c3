from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, JSON, Boolean, DateTime, func

from .authz import Base  # reuse same metadata

class AuditEntry(Base):
    """Append-only; the only mutation ever applied is flipping ``reverted``."""
    __tablename__ = 'audit_entries'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    revertible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reverted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

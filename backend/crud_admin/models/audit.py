"""
Audit Log Model.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """
    Records every persisted change to an audited object.
    The row id doubles as the revision number shown in the history views.
    """

    __tablename__ = "audit_log"

    # SQLite only autoincrements INTEGER primary keys
    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)

    # Who made the change
    user_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    user_email: Mapped[Optional[str]] = mapped_column(String(255))

    # What was changed
    entity_type: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # CREATE, UPDATE, DELETE

    # Change details (JSON)
    old_values: Mapped[Optional[str]] = mapped_column(Text)
    new_values: Mapped[Optional[str]] = mapped_column(Text)
    changes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )

    @property
    def revision(self) -> int:
        return self.id

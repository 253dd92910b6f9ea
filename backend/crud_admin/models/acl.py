"""
Object-level ACL entries.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class AclEntry(TimestampMixin, Base):
    """
    Grants a permission mask on one object to one security identity.

    identity_type is "user" (identity = username) or "role" (identity = role name).
    """

    __tablename__ = "acl_entry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    object_class: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    object_id: Mapped[str] = mapped_column(String(255), nullable=False)
    identity: Mapped[str] = mapped_column(String(255), nullable=False)
    identity_type: Mapped[str] = mapped_column(String(10), nullable=False)
    mask: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "object_class", "object_id", "identity", "identity_type",
            name="uq_acl_entry_object_identity",
        ),
    )

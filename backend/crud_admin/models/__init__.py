"""
SQLAlchemy ORM Models Package.

- base: Base class and TimestampMixin
- audit: AuditLog (one row per revision of an audited object)
- acl: AclEntry (object-level permission masks)
"""

from .base import Base, TimestampMixin
from .audit import AuditLog
from .acl import AclEntry

__all__ = [
    "Base",
    "TimestampMixin",
    "AuditLog",
    "AclEntry",
]

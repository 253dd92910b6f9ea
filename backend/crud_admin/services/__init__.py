"""
Default collaborators of the CRUD controller.

- model_manager: SQLAlchemy persistence, identifiers, optimistic locking
- audit: revision logging and readers for the history views
- security: role and object ACL permission checks
- acl: ACL page forms and mask persistence
- exporter: CSV / JSON / XML downloads
- translator: flash and page message catalogues
"""

from crud_admin.services.acl import (
    AdminObjectAclData,
    AdminObjectAclManipulator,
    MaskBuilder,
    StaticAclUserManager,
)
from crud_admin.services.audit import AuditManager, Revision, SqlAuditReader
from crud_admin.services.exporter import AdminExporter, Exporter
from crud_admin.services.model_manager import SQLAlchemyModelManager
from crud_admin.services.security import AclSecurityHandler, RoleSecurityHandler
from crud_admin.services.translator import Translator

__all__ = [
    "AclSecurityHandler",
    "AdminExporter",
    "AdminObjectAclData",
    "AdminObjectAclManipulator",
    "AuditManager",
    "Exporter",
    "MaskBuilder",
    "Revision",
    "RoleSecurityHandler",
    "SQLAlchemyModelManager",
    "SqlAuditReader",
    "StaticAclUserManager",
    "Translator",
]

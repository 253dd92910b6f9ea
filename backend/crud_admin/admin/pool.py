"""
Admin pool: every registered admin, keyed by code, plus the services they share.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from crud_admin.admin.filters import FilterTypeRegistry, default_filter_registry
from crud_admin.admin.templates import TemplateRegistry
from crud_shared.config.logging import get_logger
from crud_shared.config.settings import settings
from crud_shared.utils.exceptions import ConfigurationError, NotFoundError

if TYPE_CHECKING:
    from crud_admin.admin.descriptor import Admin
    from crud_admin.services.acl import AclUserManager
    from crud_admin.services.audit import AuditManager
    from crud_admin.services.model_manager import SQLAlchemyModelManager
    from crud_admin.services.security import RoleSecurityHandler

logger = get_logger(__name__)


class AdminPool:
    def __init__(
        self,
        title: str = "Admin",
        route_prefix: str | None = None,
        translation_domain: str | None = None,
        per_page: int | None = None,
        role_hierarchy: dict[str, list[str]] | None = None,
        templates: dict[str, str] | None = None,
        filter_registry: FilterTypeRegistry | None = None,
        audit_manager: AuditManager | None = None,
        model_manager: SQLAlchemyModelManager | None = None,
        security_handler: RoleSecurityHandler | None = None,
        acl_user_manager: AclUserManager | None = None,
    ):
        from crud_admin.services.audit import AuditManager
        from crud_admin.services.model_manager import SQLAlchemyModelManager
        from crud_admin.services.security import AclSecurityHandler

        self.title = title
        self.route_prefix = (settings.admin_route_prefix if route_prefix is None else route_prefix).rstrip("/")
        self.translation_domain = translation_domain or settings.translation_domain
        self.per_page = per_page or settings.list_per_page
        self.role_hierarchy = dict(settings.role_hierarchy if role_hierarchy is None else role_hierarchy)
        self.template_registry = TemplateRegistry(templates)
        self.filter_registry = filter_registry or default_filter_registry()
        self.audit_manager = audit_manager or AuditManager()
        self.model_manager = model_manager or SQLAlchemyModelManager(self.audit_manager)
        self.security_handler = security_handler or AclSecurityHandler(self.role_hierarchy)
        self.acl_user_manager = acl_user_manager
        self._admins: dict[str, Admin] = {}

    def add_admin(self, admin: Admin) -> Admin:
        existing = self._admins.get(admin.code)
        if existing is not None and existing is not admin:
            raise ConfigurationError(f'An admin is already registered under the code "{admin.code}"')

        admin.pool = self
        self._admins[admin.code] = admin
        if admin.audit:
            self.audit_manager.register(admin.model_class)

        for child in admin.children.values():
            self.add_admin(child)

        logger.debug("Admin registered", admin_code=admin.code, model=admin.model_class.__name__)
        return admin

    def has_admin(self, code: str) -> bool:
        return code in self._admins

    def get_admin_by_admin_code(self, admin_code: str) -> Admin:
        """
        Resolve an admin by code. ``"parent|child"`` walks the child chain
        and fails if a code is not a child of the previous one.
        """
        codes = [code for code in admin_code.split("|") if code]
        if not codes or codes[0] not in self._admins:
            raise NotFoundError("Admin", admin_code)

        admin = self._admins[codes[0]]
        for code in codes[1:]:
            if code not in admin.children:
                raise NotFoundError("Admin", admin_code, parent=admin.code, child=code)
            admin = admin.children[code]
        return admin

    def get_admins(self) -> list[Admin]:
        return list(self._admins.values())

    def get_root_admins(self) -> list[Admin]:
        return [admin for admin in self._admins.values() if admin.parent is None]

    def get_admin_by_class(self, model_class: type) -> Admin | None:
        for admin in self.get_root_admins():
            if admin.model_class is model_class:
                return admin
        return None

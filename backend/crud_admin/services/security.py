"""
Security handlers: decide whether the current user holds a permission on an
admin (class level) or on one of its objects.

Role naming follows ``ROLE_<ADMIN CODE>_<PERMISSION>``, e.g. the code
``admin.category`` gives ``ROLE_ADMIN_CATEGORY_EDIT``. ``ROLE_<CODE>_ALL``
grants every permission of one admin and ``ROLE_SUPER_ADMIN`` grants everything.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from crud_admin.models import AclEntry
from crud_admin.services.acl import PERMISSION_MAP, MaskBuilder, object_class_name
from crud_shared.config.constants import ROLE_SUPER_ADMIN
from crud_shared.config.logging import get_logger, security_audit_logger
from crud_shared.infrastructure.db import safe_commit

if TYPE_CHECKING:
    from crud_admin.admin.context import AdminContext
    from crud_admin.admin.descriptor import Admin

logger = get_logger(__name__)


class RoleSecurityHandler:
    def __init__(
        self,
        role_hierarchy: dict[str, list[str]] | None = None,
        super_admin_roles: list[str] | None = None,
    ):
        self.role_hierarchy = role_hierarchy or {}
        self.super_admin_roles = super_admin_roles or [ROLE_SUPER_ADMIN]

    def get_base_role(self, admin: Admin) -> str:
        return "ROLE_" + re.sub(r"[^A-Z0-9]+", "_", admin.code.upper()) + "_%s"

    def get_reachable_roles(self, roles: list[str]) -> set[str]:
        """The user's roles plus everything they inherit through the hierarchy."""
        reachable: set[str] = set()
        pending = list(roles)
        while pending:
            role = pending.pop()
            if role in reachable:
                continue
            reachable.add(role)
            pending.extend(self.role_hierarchy.get(role, []))
        return reachable

    def is_granted(self, admin: Admin, ctx: AdminContext, attributes: str | list[str], obj: Any = None) -> bool:
        if isinstance(attributes, str):
            attributes = [attributes]

        roles = self.get_reachable_roles(ctx.roles)
        if roles.intersection(self.super_admin_roles):
            return True

        base_role = self.get_base_role(admin)
        if base_role % "ALL" in roles:
            return True
        if all(base_role % attribute in roles for attribute in attributes):
            return True

        granted = self.is_object_granted(admin, ctx, attributes, obj, roles)
        if not granted:
            security_audit_logger.debug(
                "Permission not granted",
                admin_code=admin.code,
                attributes=attributes,
                user=ctx.username,
            )
        return granted

    def is_object_granted(
        self, admin: Admin, ctx: AdminContext, attributes: list[str], obj: Any, roles: set[str]
    ) -> bool:
        return False

    def build_security_information(self, admin: Admin) -> dict[str, list[str]]:
        base_role = self.get_base_role(admin)
        return {base_role % name: permissions for name, permissions in admin.get_security_information().items()}

    def create_object_security(self, admin: Admin, ctx: AdminContext, obj: Any) -> None:
        pass

    def delete_object_security(self, admin: Admin, ctx: AdminContext, obj: Any) -> None:
        pass


class AclSecurityHandler(RoleSecurityHandler):
    """
    Role checks first; for ACL-enabled admins, object-level grants stored in
    acl_entry rows are honoured too.
    """

    def is_object_granted(
        self, admin: Admin, ctx: AdminContext, attributes: list[str], obj: Any, roles: set[str]
    ) -> bool:
        if not admin.acl_enabled or obj is None or obj is admin or ctx.db is None:
            return False

        object_id = admin.get_normalized_identifier(obj)
        if object_id is None:
            return False

        entries = ctx.db.scalars(
            select(AclEntry).where(
                AclEntry.object_class == object_class_name(type(obj)),
                AclEntry.object_id == object_id,
            )
        ).all()

        masks = []
        for entry in entries:
            if entry.identity_type == "user" and entry.identity == ctx.username:
                masks.append(entry.mask)
            elif entry.identity_type == "role" and entry.identity in roles:
                masks.append(entry.mask)

        for attribute in attributes:
            required = PERMISSION_MAP.get(attribute)
            if required is None:
                return False
            if not any(mask & required_mask for mask in masks for required_mask in required):
                return False
        return True

    def create_object_security(self, admin: Admin, ctx: AdminContext, obj: Any) -> None:
        """The creating user becomes the object's owner."""
        if ctx.db is None or not ctx.username:
            return
        object_id = admin.get_normalized_identifier(obj)
        ctx.db.add(AclEntry(
            object_class=object_class_name(type(obj)),
            object_id=object_id,
            identity=ctx.username,
            identity_type="user",
            mask=MaskBuilder().add("OWNER").get_mask(),
        ))
        safe_commit(ctx.db)
        logger.info("Object ACL created", admin_code=admin.code, object_id=object_id, owner=ctx.username)

    def delete_object_security(self, admin: Admin, ctx: AdminContext, obj: Any) -> None:
        if ctx.db is None:
            return
        object_id = admin.get_normalized_identifier(obj)
        for entry in ctx.db.scalars(
            select(AclEntry).where(
                AclEntry.object_class == object_class_name(type(obj)),
                AclEntry.object_id == object_id,
            )
        ):
            ctx.db.delete(entry)

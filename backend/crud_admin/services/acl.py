"""
Object ACL editing: permission masks, the users/roles forms of the ACL page
and the manipulator that persists them as AclEntry rows.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import select

from crud_admin.admin.querystring import parse_nested
from crud_admin.models import AclEntry
from crud_shared.config.constants import CsrfIntention
from crud_shared.config.logging import get_logger
from crud_shared.infrastructure.db import safe_commit

if TYPE_CHECKING:
    from crud_admin.admin.context import AdminContext, AdminRequest
    from crud_admin.admin.descriptor import Admin
    from crud_shared.security.csrf import CsrfTokenManager

logger = get_logger(__name__)


def object_class_name(model_class: type) -> str:
    return f"{model_class.__module__}.{model_class.__qualname__}"


class MaskBuilder:
    """Bit masks for object permissions."""

    MASK_VIEW = 1
    MASK_CREATE = 2
    MASK_EDIT = 4
    MASK_DELETE = 8
    MASK_UNDELETE = 16
    MASK_OPERATOR = 32
    MASK_MASTER = 64
    MASK_OWNER = 128
    MASK_LIST = 4096
    MASK_EXPORT = 8192

    def __init__(self, mask: int = 0):
        self.mask = mask

    @classmethod
    def resolve_mask(cls, permission: str | int) -> int:
        if isinstance(permission, int):
            return permission
        try:
            return getattr(cls, f"MASK_{permission.upper()}")
        except AttributeError:
            raise ValueError(f'The permission "{permission}" is not supported') from None

    def add(self, permission: str | int) -> MaskBuilder:
        self.mask |= self.resolve_mask(permission)
        return self

    def remove(self, permission: str | int) -> MaskBuilder:
        self.mask &= ~self.resolve_mask(permission)
        return self

    def get_mask(self) -> int:
        return self.mask

    def reset(self) -> MaskBuilder:
        self.mask = 0
        return self


# Permission -> masks, any of which grants it
PERMISSION_MAP: dict[str, list[int]] = {
    "VIEW": [MaskBuilder.MASK_VIEW, MaskBuilder.MASK_EDIT, MaskBuilder.MASK_OPERATOR, MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "EDIT": [MaskBuilder.MASK_EDIT, MaskBuilder.MASK_OPERATOR, MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "CREATE": [MaskBuilder.MASK_CREATE, MaskBuilder.MASK_OPERATOR, MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "DELETE": [MaskBuilder.MASK_DELETE, MaskBuilder.MASK_OPERATOR, MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "UNDELETE": [MaskBuilder.MASK_UNDELETE, MaskBuilder.MASK_OPERATOR, MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "LIST": [MaskBuilder.MASK_LIST, MaskBuilder.MASK_OPERATOR, MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "EXPORT": [MaskBuilder.MASK_EXPORT, MaskBuilder.MASK_OPERATOR, MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "OPERATOR": [MaskBuilder.MASK_OPERATOR, MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "MASTER": [MaskBuilder.MASK_MASTER, MaskBuilder.MASK_OWNER],
    "OWNER": [MaskBuilder.MASK_OWNER],
}


class AclUserManager(Protocol):
    def find_users(self) -> Iterable[str]: ...


class StaticAclUserManager:
    """ACL users from a fixed list (usernames as carried in the token ``sub`` claim)."""

    def __init__(self, users: Iterable[str]):
        self.users = list(users)

    def find_users(self) -> list[str]:
        return list(self.users)


class AdminObjectAclData:
    PERMISSIONS = ["VIEW", "EDIT", "DELETE", "UNDELETE", "OPERATOR", "MASTER", "OWNER"]
    OWNER_PERMISSIONS = ["MASTER", "OWNER"]

    def __init__(
        self,
        admin: Admin,
        ctx: AdminContext,
        obj: Any,
        acl_users: list[str],
        mask_builder_class: type[MaskBuilder],
        acl_roles: list[str] | None = None,
        csrf_token_manager: CsrfTokenManager | None = None,
    ):
        self.admin = admin
        self.ctx = ctx
        self.object = obj
        self.acl_users = list(acl_users)
        self.acl_roles = list(acl_roles or [])
        self.mask_builder_class = mask_builder_class
        self.csrf_token_manager = csrf_token_manager
        self.acl_users_form: AclForm | None = None
        self.acl_roles_form: AclForm | None = None

    @property
    def object_class(self) -> str:
        return object_class_name(type(self.object))

    @property
    def object_id(self) -> str:
        return self.admin.get_normalized_identifier(self.object) or ""

    def is_owner(self) -> bool:
        return self.admin.is_granted(self.ctx, "OWNER", self.object)

    def get_permissions(self) -> list[str]:
        return list(self.PERMISSIONS)

    def get_user_permissions(self) -> list[str]:
        permissions = self.get_permissions()
        if not self.is_owner():
            permissions = [p for p in permissions if p not in self.OWNER_PERMISSIONS]
        return permissions

    def load_entries(self, identity_type: str) -> dict[str, AclEntry]:
        entries = self.ctx.db.scalars(
            select(AclEntry).where(
                AclEntry.object_class == self.object_class,
                AclEntry.object_id == self.object_id,
                AclEntry.identity_type == identity_type,
            )
        ).all()
        return {entry.identity: entry for entry in entries}


class AclForm:
    """Checkbox grid: one row per identity, one column per permission."""

    def __init__(
        self,
        name: str,
        identities: list[str],
        permissions: list[str],
        masks: dict[str, int],
        mask_builder_class: type[MaskBuilder],
        csrf_token_manager: CsrfTokenManager | None = None,
    ):
        self.name = name
        self.identities = identities
        self.permissions = permissions
        self.mask_builder_class = mask_builder_class
        self.csrf_token_manager = csrf_token_manager
        self.values: dict[str, dict[str, bool]] = {
            identity: {
                permission: bool(masks.get(identity, 0) & mask_builder_class.resolve_mask(permission))
                for permission in permissions
            }
            for identity in identities
        }
        self.errors: list[str] = []
        self._submitted = False

    def handle_request(self, request: AdminRequest) -> None:
        if not request.has_form(self.name):
            return
        self._submitted = True

        data = parse_nested(request.form_items(), self.name)
        token = data.pop("_token", None)
        if self.csrf_token_manager is not None and not self.csrf_token_manager.is_token_valid(CsrfIntention.ACL, token):
            self.errors.append("The CSRF token is invalid. Please try to resubmit the form.")

        unknown = [identity for identity in data if identity not in self.identities]
        if unknown:
            self.errors.append(f"Unknown security identities: {', '.join(sorted(unknown))}")

        for identity in self.identities:
            checked = data.get(identity)
            checked = checked if isinstance(checked, dict) else {}
            self.values[identity] = {permission: permission in checked for permission in self.permissions}

    def is_submitted(self) -> bool:
        return self._submitted

    def is_valid(self) -> bool:
        return self._submitted and not self.errors

    def create_view(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "permissions": self.permissions,
            "rows": [(identity, self.values[identity]) for identity in self.identities],
            "errors": list(self.errors),
            "csrf_token": self.csrf_token_manager.get_token(CsrfIntention.ACL) if self.csrf_token_manager else None,
        }


class AdminObjectAclManipulator:
    ACL_USERS_FORM_NAME = "acl_users_form"
    ACL_ROLES_FORM_NAME = "acl_roles_form"

    def __init__(self, mask_builder_class: type[MaskBuilder] = MaskBuilder):
        self.mask_builder_class = mask_builder_class

    def get_mask_builder_class(self) -> type[MaskBuilder]:
        return self.mask_builder_class

    def _build_form(self, data: AdminObjectAclData, name: str, identities: list[str], identity_type: str) -> AclForm:
        entries = data.load_entries(identity_type)
        return AclForm(
            name,
            identities,
            data.get_user_permissions(),
            {identity: entry.mask for identity, entry in entries.items()},
            self.mask_builder_class,
            data.csrf_token_manager,
        )

    def create_acl_users_form(self, data: AdminObjectAclData) -> AclForm:
        data.acl_users_form = self._build_form(data, self.ACL_USERS_FORM_NAME, data.acl_users, "user")
        return data.acl_users_form

    def create_acl_roles_form(self, data: AdminObjectAclData) -> AclForm:
        data.acl_roles_form = self._build_form(data, self.ACL_ROLES_FORM_NAME, data.acl_roles, "role")
        return data.acl_roles_form

    def update_acl_users(self, data: AdminObjectAclData) -> None:
        self._update(data, data.acl_users_form, "user")

    def update_acl_roles(self, data: AdminObjectAclData) -> None:
        self._update(data, data.acl_roles_form, "role")

    def _update(self, data: AdminObjectAclData, form: AclForm | None, identity_type: str) -> None:
        if form is None:
            return

        db = data.ctx.db
        entries = data.load_entries(identity_type)
        # Bits for permissions not shown in the form are kept as they are
        managed = 0
        for permission in form.permissions:
            managed |= self.mask_builder_class.resolve_mask(permission)

        for identity, checked in form.values.items():
            builder = self.mask_builder_class()
            for permission, granted in checked.items():
                if granted:
                    builder.add(permission)

            entry = entries.get(identity)
            mask = ((entry.mask if entry else 0) & ~managed) | builder.get_mask()

            if entry is None and mask:
                db.add(AclEntry(
                    object_class=data.object_class,
                    object_id=data.object_id,
                    identity=identity,
                    identity_type=identity_type,
                    mask=mask,
                ))
            elif entry is not None and mask:
                entry.mask = mask
            elif entry is not None:
                db.delete(entry)

        safe_commit(db)
        logger.info(
            "Object ACL updated",
            admin_code=data.admin.code,
            object_id=data.object_id,
            identity_type=identity_type,
        )

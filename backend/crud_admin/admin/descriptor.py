"""
Admin descriptor: configuration and behaviour for one modelled resource type.

An Admin is built once at startup and shared by every request. Anything that
varies per request (subject, uniqid, list mode, DB session, user) lives in
the AdminContext passed to each call.

Usage:
    category_admin = Admin(
        "admin.category",
        Category,
        form_schema=CategoryForm,
        list_fields=["id", "name", "active"],
        filter_fields={"name": "string", "active": "boolean"},
    )
    product_admin = Admin("admin.product", Product, form_schema=ProductForm)
    category_admin.add_child(product_admin, "category")
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from crud_admin.admin.batch import BatchAction, delete_selected
from crud_admin.admin.context import AdminContext
from crud_admin.admin.datagrid import Datagrid
from crud_admin.admin.filters import Filter, default_filter_registry
from crud_admin.admin.forms import AdminForm, ChoiceFieldMask
from crud_admin.admin.querystring import build_query_string, parse_nested
from crud_admin.admin.routes import DEFAULT_ROUTES, AdminRoute
from crud_admin.admin.templates import TemplateRegistry
from crud_shared.config.logging import get_logger
from crud_shared.utils.exceptions import ConfigurationError, ForbiddenError

if TYPE_CHECKING:
    from crud_admin.admin.pool import AdminPool
    from crud_admin.services.model_manager import SQLAlchemyModelManager
    from crud_admin.services.security import RoleSecurityHandler

logger = get_logger(__name__)

# Controller action -> permissions the user must hold
ACCESS_MAPPING: dict[str, list[str]] = {
    "list": ["LIST"],
    "show": ["VIEW"],
    "create": ["CREATE"],
    "edit": ["EDIT"],
    "delete": ["DELETE"],
    "batchDelete": ["DELETE"],
    "export": ["EXPORT"],
    "history": ["EDIT"],
    "historyViewRevision": ["EDIT"],
    "historyCompareRevisions": ["EDIT"],
    "acl": ["MASTER"],
}

# Route name -> access action, used when deciding whether a link may be offered
ROUTE_ACCESS = {
    "history_view_revision": "historyViewRevision",
    "history_compare_revisions": "historyCompareRevisions",
}

LIST_MODES = {"list": "List", "mosaic": "Mosaic"}

DEFAULT_SECURITY_INFORMATION: dict[str, list[str]] = {
    "EDIT": ["EDIT"],
    "LIST": ["LIST"],
    "CREATE": ["CREATE"],
    "VIEW": ["VIEW"],
    "DELETE": ["DELETE"],
    "EXPORT": ["EXPORT"],
    "OPERATOR": ["OPERATOR"],
    "MASTER": ["MASTER"],
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _slugify(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


def get_path_value(obj: Any, path: str) -> Any:
    """Follow a dotted attribute path (``"category.parent"``)."""
    value = obj
    for part in path.split("."):
        if value is None:
            return None
        value = getattr(value, part)
    return value


def set_path_value(obj: Any, path: str, value: Any) -> None:
    *parents, last = path.split(".")
    target = obj
    for part in parents:
        target = getattr(target, part)
    setattr(target, last, value)


@dataclass(frozen=True)
class FieldDescription:
    name: str
    label: str

    def get_value(self, obj: Any) -> Any:
        try:
            return get_path_value(obj, self.name)
        except AttributeError:
            return None


class Admin:
    """Configuration bundle for one model class."""

    def __init__(
        self,
        code: str,
        model_class: type,
        *,
        label: str | None = None,
        route_slug: str | None = None,
        form_schema: type[BaseModel] | None = None,
        form_fields: list[str] | None = None,
        form_labels: dict[str, str] | None = None,
        choice_field_masks: list[ChoiceFieldMask] | None = None,
        list_fields: list[str] | None = None,
        show_fields: list[str] | None = None,
        filter_fields: dict[str, Any] | None = None,
        export_fields: list[str] | None = None,
        export_formats: list[str] | None = None,
        translation_domain: str | None = None,
        supports_preview: bool = False,
        acl_enabled: bool = False,
        audit: bool = False,
        per_page: int | None = None,
        sub_classes: dict[str, type] | None = None,
        templates: dict[str, str] | None = None,
        excluded_routes: list[str] | None = None,
        security_information: dict[str, list[str]] | None = None,
        security_handler: RoleSecurityHandler | None = None,
        model_manager: SQLAlchemyModelManager | None = None,
        controller_class: type | None = None,
    ):
        self.code = code
        self.model_class = model_class
        self.label = label or model_class.__name__
        self.route_slug = route_slug or _slugify(model_class.__name__)
        self.form_schema = form_schema
        self.form_fields = form_fields
        self.form_labels = form_labels or {}
        self.choice_field_masks = choice_field_masks or []
        self.list_fields = list_fields or ["id"]
        self.show_fields = show_fields or list(self.list_fields)
        self.filter_fields = filter_fields or {}
        self.export_fields = export_fields or list(self.list_fields)
        self.export_formats = export_formats if export_formats is not None else ["json", "xml", "csv"]
        self.translation_domain = translation_domain
        self.supports_preview = supports_preview
        self.acl_enabled = acl_enabled
        self.audit = audit
        self.per_page = per_page
        self.sub_classes = sub_classes or {}
        self.templates = templates or {}
        self.excluded_routes = set(excluded_routes or [])
        self.security_information = security_information or dict(DEFAULT_SECURITY_INFORMATION)
        self._security_handler = security_handler
        self._model_manager = model_manager
        self.controller_class = controller_class

        self.parent: Admin | None = None
        self.parent_association_mapping: str | None = None
        self.children: dict[str, Admin] = {}
        self.pool: AdminPool | None = None
        self._batch_actions: dict[str, BatchAction] = {}

    def __repr__(self) -> str:
        return f"<Admin {self.code} ({self.model_class.__name__})>"

    # =========================================================================
    # Wiring
    # =========================================================================

    @property
    def security_handler(self) -> RoleSecurityHandler:
        if self._security_handler is not None:
            return self._security_handler
        if self.pool is not None:
            return self.pool.security_handler
        raise ConfigurationError(f"Admin {self.code} has no security handler")

    @property
    def model_manager(self) -> SQLAlchemyModelManager:
        if self._model_manager is not None:
            return self._model_manager
        if self.pool is not None:
            return self.pool.model_manager
        raise ConfigurationError(f"Admin {self.code} has no model manager")

    @property
    def translation(self) -> str | None:
        if self.translation_domain:
            return self.translation_domain
        return self.pool.translation_domain if self.pool is not None else None

    def get_template_registry(self) -> TemplateRegistry:
        base = self.pool.template_registry if self.pool is not None else TemplateRegistry()
        return base.with_overrides(self.templates)

    # =========================================================================
    # Parent / child
    # =========================================================================

    def add_child(self, child: Admin, association_mapping: str) -> None:
        if child.parent is not None and child.parent is not self:
            raise ConfigurationError(f"Admin {child.code} is already a child of {child.parent.code}")
        child.parent = self
        child.parent_association_mapping = association_mapping
        self.children[child.code] = child
        if self.pool is not None:
            self.pool.add_admin(child)

    @property
    def is_child(self) -> bool:
        return self.parent is not None

    @property
    def depth(self) -> int:
        depth, admin = 0, self.parent
        while admin is not None:
            depth, admin = depth + 1, admin.parent
        return depth

    @property
    def id_parameter(self) -> str:
        return "child_" * self.depth + "id"

    @property
    def full_code(self) -> str:
        if self.parent is None:
            return self.code
        return f"{self.parent.full_code}|{self.code}"

    # =========================================================================
    # Routes and URLs
    # =========================================================================

    @property
    def base_route_pattern(self) -> str:
        if self.parent is None:
            return f"/{self.route_slug}"
        return f"{self.parent.base_route_pattern}/{{{self.parent.id_parameter}}}/{self.route_slug}"

    @property
    def route_name_prefix(self) -> str:
        return re.sub(r"[^a-zA-Z0-9]+", "_", self.full_code)

    @property
    def route_prefix(self) -> str:
        return self.pool.route_prefix if self.pool is not None else ""

    def get_routes(self) -> dict[str, AdminRoute]:
        routes = {}
        for route in DEFAULT_ROUTES:
            if route.name in self.excluded_routes:
                continue
            if route.name == "acl" and not self.acl_enabled:
                continue
            routes[route.name] = route
        return routes

    def has_route(self, name: str) -> bool:
        return name in self.get_routes()

    def get_route_path(self, name: str) -> str:
        route = self.get_routes().get(name)
        if route is None:
            raise ConfigurationError(f'Admin {self.code} has no route "{name}"')
        pattern = route.pattern.replace("{id}", f"{{{self.id_parameter}}}")
        return f"{self.route_prefix}{self.base_route_pattern}{pattern}"

    def generate_url(self, ctx: AdminContext, name: str, parameters: dict[str, Any] | None = None) -> str:
        params = dict(parameters or {})
        path = self.get_route_path(name)

        def fill(match: re.Match) -> str:
            key = match.group(1)
            value = params.pop(key) if key in params else ctx.request.get(key)
            if value is None or value == "":
                raise ConfigurationError(f'Missing "{key}" parameter to generate the "{name}" url of {self.code}')
            return str(value)

        url = _PLACEHOLDER.sub(fill, path)
        if ctx.uniqid and "uniqid" not in params:
            params["uniqid"] = ctx.uniqid
        query = build_query_string(params)
        return f"{url}?{query}" if query else url

    def generate_object_url(
        self, ctx: AdminContext, name: str, obj: Any, parameters: dict[str, Any] | None = None
    ) -> str:
        params = dict(parameters or {})
        params[self.id_parameter] = self.get_url_safe_identifier(obj)
        return self.generate_url(ctx, name, params)

    # =========================================================================
    # Access control
    # =========================================================================

    def get_access_mapping(self) -> dict[str, list[str]]:
        return ACCESS_MAPPING

    def _permissions_for(self, action: str) -> list[str]:
        mapping = self.get_access_mapping()
        if action not in mapping:
            raise ConfigurationError(
                f'Action "{action}" could not be found in the access mapping of {self.code}'
            )
        return mapping[action]

    def is_granted(self, ctx: AdminContext, attribute: str, obj: Any = None) -> bool:
        return self.security_handler.is_granted(self, ctx, attribute, obj)

    def check_access(self, ctx: AdminContext, action: str, obj: Any = None) -> None:
        for permission in self._permissions_for(action):
            if not self.is_granted(ctx, permission, obj):
                raise ForbiddenError(
                    action,
                    admin_code=self.code,
                    permission=permission,
                    user=ctx.username,
                )

    def has_access(self, ctx: AdminContext, action: str, obj: Any = None) -> bool:
        action = ROUTE_ACCESS.get(action, action)
        return all(self.is_granted(ctx, permission, obj) for permission in self._permissions_for(action))

    def get_security_information(self) -> dict[str, list[str]]:
        return self.security_information

    # =========================================================================
    # Objects
    # =========================================================================

    def get_object(self, ctx: AdminContext, identifier: Any) -> Any:
        if identifier is None or identifier == "":
            return None
        return self.model_manager.find(ctx.db, self.model_class, identifier)

    def get_class(self, ctx: AdminContext | None = None) -> type:
        if ctx is not None and self.has_active_sub_class(ctx):
            return self.get_active_sub_class(ctx)
        return self.model_class

    def has_active_sub_class(self, ctx: AdminContext) -> bool:
        return bool(self.sub_classes) and ctx.request.get("subclass") in self.sub_classes

    def get_active_sub_class(self, ctx: AdminContext) -> type:
        code = ctx.request.get("subclass")
        if code not in self.sub_classes:
            raise ConfigurationError(f'Admin {self.code} has no sub class "{code}"')
        return self.sub_classes[code]

    def get_active_sub_class_code(self, ctx: AdminContext) -> str | None:
        return ctx.request.get("subclass") if self.has_active_sub_class(ctx) else None

    def is_abstract_class(self, ctx: AdminContext) -> bool:
        cls = self.get_class(ctx)
        return bool(cls.__dict__.get("__abstract__", False)) or inspect.isabstract(cls)

    def get_parent_object(self, ctx: AdminContext) -> Any:
        if self.parent is None:
            return None
        parent_ctx = ctx.parent_context()
        return self.parent.get_object(parent_ctx, ctx.request.get(self.parent.id_parameter))

    def get_new_instance(self, ctx: AdminContext) -> Any:
        obj = self.get_class(ctx)()
        if self.parent is not None and self.parent_association_mapping:
            parent_object = self.get_parent_object(ctx)
            if parent_object is not None:
                set_path_value(obj, self.parent_association_mapping, parent_object)
        return obj

    def create(self, ctx: AdminContext, obj: Any) -> Any:
        self.pre_persist(ctx, obj)
        self.model_manager.create(ctx.db, obj, user=ctx.user)
        self.post_persist(ctx, obj)
        if self.acl_enabled:
            self.security_handler.create_object_security(self, ctx, obj)
        logger.info("Object created", admin_code=self.code, object_id=self.get_normalized_identifier(obj))
        return obj

    def update(self, ctx: AdminContext, obj: Any, lock_version: Any = None) -> Any:
        if lock_version not in (None, ""):
            self.model_manager.lock(ctx.db, obj, lock_version)
        self.pre_update(ctx, obj)
        self.model_manager.update(ctx.db, obj, user=ctx.user)
        self.post_update(ctx, obj)
        logger.info("Object updated", admin_code=self.code, object_id=self.get_normalized_identifier(obj))
        return obj

    def delete(self, ctx: AdminContext, obj: Any) -> None:
        object_id = self.get_normalized_identifier(obj)
        self.pre_remove(ctx, obj)
        if self.acl_enabled:
            self.security_handler.delete_object_security(self, ctx, obj)
        self.model_manager.delete(ctx.db, obj, user=ctx.user)
        self.post_remove(ctx, obj)
        logger.info("Object deleted", admin_code=self.code, object_id=object_id)

    # Persistence hooks, no-ops by default
    def pre_persist(self, ctx: AdminContext, obj: Any) -> None:
        pass

    def post_persist(self, ctx: AdminContext, obj: Any) -> None:
        pass

    def pre_update(self, ctx: AdminContext, obj: Any) -> None:
        pass

    def post_update(self, ctx: AdminContext, obj: Any) -> None:
        pass

    def pre_remove(self, ctx: AdminContext, obj: Any) -> None:
        pass

    def post_remove(self, ctx: AdminContext, obj: Any) -> None:
        pass

    def to_string(self, obj: Any) -> str:
        if obj is None:
            return ""
        if type(obj).__str__ is not object.__str__:
            return str(obj)
        identifier = self.get_normalized_identifier(obj)
        return f"{type(obj).__name__}:{identifier}" if identifier else type(obj).__name__

    def get_normalized_identifier(self, obj: Any) -> str | None:
        return self.model_manager.get_normalized_identifier(obj)

    def get_url_safe_identifier(self, obj: Any) -> str | None:
        return self.model_manager.get_url_safe_identifier(obj)

    # =========================================================================
    # Forms, show, list
    # =========================================================================

    def get_form(self, ctx: AdminContext) -> AdminForm:
        if self.form_schema is None:
            raise ConfigurationError(f"Admin {self.code} has no form schema")
        return AdminForm(
            self.form_schema,
            fields=self.form_fields,
            labels=self.form_labels,
            masks=self.choice_field_masks,
            version_attribute=self.model_manager.get_version_attribute(self.get_class(ctx)),
        )

    def _describe(self, names: list[str]) -> list[FieldDescription]:
        return [FieldDescription(name, name.replace("_", " ").replace(".", " ").capitalize()) for name in names]

    def get_show(self) -> list[FieldDescription]:
        return self._describe(self.show_fields)

    def get_list(self) -> list[FieldDescription]:
        return self._describe(self.list_fields)

    def get_list_mode(self, ctx: AdminContext) -> str:
        if ctx.list_mode:
            return ctx.list_mode
        return ctx.request.session.get(f"{self.code}.list_mode", "list")

    def set_list_mode(self, ctx: AdminContext, mode: str) -> None:
        if mode not in LIST_MODES:
            raise ConfigurationError(f'List mode "{mode}" is not supported by {self.code}')
        ctx.list_mode = mode
        ctx.request.session[f"{self.code}.list_mode"] = mode

    def get_list_modes(self) -> dict[str, str]:
        return LIST_MODES

    def get_filters(self) -> dict[str, Filter]:
        registry = self.pool.filter_registry if self.pool is not None else default_filter_registry()
        filters = {}
        for name, definition in self.filter_fields.items():
            options: dict[str, Any] = {}
            if isinstance(definition, dict):
                options = dict(definition)
                definition = options.pop("type", "string")
            filters[name] = registry.create(definition, name, **options)
        return filters

    def get_default_per_page(self) -> int:
        if self.per_page:
            return self.per_page
        return self.pool.per_page if self.pool is not None else 25

    def get_filter_parameters(self, ctx: AdminContext) -> dict[str, Any]:
        parameters: dict[str, Any] = {
            "_page": 1,
            "_sort_order": "ASC",
            "_per_page": self.get_default_per_page(),
        }
        primary_keys = self.model_manager.get_identifier_field_names(self.model_class)
        if primary_keys:
            parameters["_sort_by"] = primary_keys[0]

        items = list(ctx.request.query.multi_items()) + ctx.request.form_items()
        parameters.update(parse_nested(items, "filter"))
        return parameters

    def get_datagrid(self, ctx: AdminContext) -> Datagrid:
        query = self.model_manager.create_query(ctx.db, self.model_class)
        if self.parent is not None and self.parent_association_mapping:
            parent_object = self.get_parent_object(ctx)
            relation = getattr(self.model_class, self.parent_association_mapping.split(".")[0])
            query.where(relation == parent_object)
        return Datagrid(query, self.get_filters(), self.get_filter_parameters(ctx))

    def get_data_source_iterator(self, ctx: AdminContext):
        datagrid = self.get_datagrid(ctx)
        query = datagrid.get_query()
        query.first_result = None
        query.max_results = None
        return self.model_manager.get_data_source_iterator(query, self.export_fields)

    def get_export_formats(self) -> list[str]:
        return list(self.export_formats)

    # =========================================================================
    # Batch actions
    # =========================================================================

    def add_batch_action(self, name: str, label: str, handler: Any, **options: Any) -> BatchAction:
        action = BatchAction(name=name, label=label, handler=handler, **options)
        self._batch_actions[name] = action
        return action

    def remove_batch_action(self, name: str) -> None:
        self._batch_actions.pop(name, None)

    def get_batch_actions(self, ctx: AdminContext) -> dict[str, BatchAction]:
        actions: dict[str, BatchAction] = {}
        if self.has_route("delete") and self.has_access(ctx, "delete"):
            actions["delete"] = BatchAction(
                name="delete",
                label="action_delete",
                handler=delete_selected,
                ask_confirmation=True,
                translation_domain="CrudAdmin",
            )
        actions.update(self._batch_actions)
        return actions

    def pre_batch_action(
        self, ctx: AdminContext, action: str, query: Any, idx: list[str], all_elements: bool
    ) -> None:
        """Hook run right before a batch handler; may narrow the query or the selection."""

    # =========================================================================
    # Breadcrumbs
    # =========================================================================

    def build_breadcrumbs(self, ctx: AdminContext, action: str) -> list[tuple[str, str | None]]:
        crumbs: list[tuple[str, str | None]] = []
        parent_ctx = ctx.parent_context()
        if self.parent is not None and parent_ctx is not None:
            parent = self.parent
            crumbs.extend(parent.build_breadcrumbs(parent_ctx, "list"))
            parent_object = self.get_parent_object(ctx)
            if parent_object is not None:
                url = None
                if parent.has_route("edit") and parent.has_access(parent_ctx, "edit", parent_object):
                    url = parent.generate_object_url(parent_ctx, "edit", parent_object)
                crumbs.append((parent.to_string(parent_object), url))

        list_url = None
        if self.has_route("list") and self.has_access(ctx, "list"):
            list_url = self.generate_url(ctx, "list")
        crumbs.append((self.label, list_url))

        if ctx.subject is not None and action not in ("list", "create"):
            crumbs.append((self.to_string(ctx.subject), None))
        elif action not in ("list",):
            crumbs.append((action.replace("_", " ").capitalize(), None))
        return crumbs

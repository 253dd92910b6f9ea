"""
CRUD controller: turns an admin request into a response.

One controller instance serves one request. Every collaborator is passed in
(ControllerFactory does the wiring), and the actions are synchronous: the
router awaits the request body, then runs the action in the thread pool.

Subclasses customise behaviour through the pre_* hooks. A hook returning a
response short-circuits the action.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from markupsafe import escape
from sqlalchemy.orm import Session

from crud_admin.admin.context import AdminContext, AdminRequest
from crud_admin.admin.datagrid import ProxyQuery
from crud_admin.admin.descriptor import get_path_value
from crud_admin.admin.forms import AdminForm
from crud_admin.admin.pool import AdminPool
from crud_admin.controller.batch import BatchRequest
from crud_admin.controller.preview import PreviewState
from crud_admin.services.acl import AdminObjectAclData, AdminObjectAclManipulator
from crud_admin.services.exporter import AdminExporter
from crud_admin.services.translator import DEFAULT_DOMAIN, Translator
from crud_admin.web.flash import add_flash, pop_flashes
from crud_admin.web.templating import create_templates
from crud_shared.config.constants import CSRF_FIELD, Buttons, CsrfIntention, FlashLevel
from crud_shared.config.logging import StructuredLogger, get_logger
from crud_shared.config.settings import Settings, get_settings
from crud_shared.security.csrf import CsrfTokenManager
from crud_shared.utils.exceptions import (
    AssociationIntegrityError,
    BadRequestError,
    ConfigurationError,
    LockException,
    ModelManagerException,
    NotFoundError,
)


class CRUDController:
    def __init__(
        self,
        pool: AdminPool,
        request: AdminRequest,
        db: Session | None = None,
        user: dict[str, Any] | None = None,
        *,
        templates: Jinja2Templates | None = None,
        translator: Translator | None = None,
        csrf_token_manager: CsrfTokenManager | None = None,
        exporter: AdminExporter | None = None,
        acl_manipulator: AdminObjectAclManipulator | None = None,
        app_settings: Settings | None = None,
        logger: StructuredLogger | None = None,
    ):
        self.pool = pool
        self.request = request
        self.db = db
        self.user = user
        self.templates = templates or create_templates()
        self.translator = translator or Translator()
        self.csrf_token_manager = csrf_token_manager
        self.exporter = exporter or AdminExporter()
        self.acl_manipulator = acl_manipulator or AdminObjectAclManipulator()
        self.settings = app_settings or get_settings()
        self.logger = logger or get_logger(__name__)

        self.admin = None
        self.ctx: AdminContext | None = None

    # =========================================================================
    # Wiring
    # =========================================================================

    def configure(self) -> None:
        """Resolve the admin from ``_admin_code`` and build the request context."""
        admin_code = self.request.get("_admin_code")
        if not admin_code:
            raise ConfigurationError(
                f"There is no `_admin_code` defined for the controller `{type(self).__name__}` "
                f"and the current route `{self.request.path}`"
            )

        self.admin = self.pool.get_admin_by_admin_code(admin_code)
        self.ctx = AdminContext(
            admin=self.admin,
            request=self.request,
            db=self.db,
            user=self.user,
            uniqid=self.request.get("uniqid") or None,
            current_child=self.admin.is_child,
        )

    # =========================================================================
    # Actions
    # =========================================================================

    def list_action(self) -> Response:
        self.admin.check_access(self.ctx, "list")

        pre_response = self.pre_list()
        if pre_response is not None:
            return pre_response

        list_mode = self.request.get("_list_mode")
        if list_mode:
            self.admin.set_list_mode(self.ctx, list_mode)

        datagrid = self.admin.get_datagrid(self.ctx)
        pager = datagrid.build_pager()

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template("list"),
            {
                "action": "list",
                "datagrid": datagrid,
                "pager": pager,
                "results": datagrid.get_results(),
                "filters": datagrid.create_filter_view(),
                "list_mode": self.admin.get_list_mode(self.ctx),
                "batch_actions": self.admin.get_batch_actions(self.ctx),
                "csrf_token": self.get_csrf_token(CsrfIntention.BATCH),
                "export_formats": self.exporter.get_available_formats(self.admin),
            },
        )

    def batch_action_delete(self, query: ProxyQuery) -> Response:
        self.admin.check_access(self.ctx, "batchDelete")

        try:
            deleted = self.admin.model_manager.batch_delete(self.admin.get_class(self.ctx), query, user=self.ctx.user)
            self.add_flash(FlashLevel.SUCCESS, self.trans("flash_batch_delete_success", domain=DEFAULT_DOMAIN))
            self.logger.info("Batch delete", admin_code=self.admin.code, deleted=deleted)
        except ModelManagerException as exc:
            self.handle_model_manager_exception(exc)
            self.add_flash(FlashLevel.ERROR, self.trans("flash_batch_delete_error", domain=DEFAULT_DOMAIN))

        return self.redirect_to_list()

    def delete_action(self) -> Response:
        obj = self._get_object_or_404()
        self.check_parent_child_association(obj)
        self.admin.check_access(self.ctx, "delete", obj)

        pre_response = self.pre_delete(obj)
        if pre_response is not None:
            return pre_response

        self.ctx.subject = obj

        if self.request.rest_method == "DELETE":
            self.validate_csrf_token(CsrfIntention.DELETE)
            object_name = self.admin.to_string(obj)

            try:
                self.admin.delete(self.ctx, obj)
                if self.is_xml_http_request():
                    return self.render_json({"result": "ok"})
                self.add_flash(
                    FlashLevel.SUCCESS,
                    self.trans("flash_delete_success", {"name": self.escape_html(object_name)}, DEFAULT_DOMAIN),
                )
            except ModelManagerException as exc:
                self.handle_model_manager_exception(exc)
                if self.is_xml_http_request():
                    return self.render_json({"result": "error"})
                self.add_flash(
                    FlashLevel.ERROR,
                    self.trans("flash_delete_error", {"name": self.escape_html(object_name)}, DEFAULT_DOMAIN),
                )

            return self.redirect_to(obj)

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template("delete"),
            {
                "object": obj,
                "action": "delete",
                "csrf_token": self.get_csrf_token(CsrfIntention.DELETE),
            },
        )

    def edit_action(self) -> Response:
        template_key = "edit"

        existing_object = self._get_object_or_404()
        self.check_parent_child_association(existing_object)
        self.admin.check_access(self.ctx, "edit", existing_object)

        pre_response = self.pre_edit(existing_object)
        if pre_response is not None:
            return pre_response

        self.ctx.subject = existing_object
        object_id = self.admin.get_normalized_identifier(existing_object)

        form = self.admin.get_form(self.ctx)
        form.set_data(existing_object)
        form.handle_request(self.request)

        if form.is_submitted():
            is_form_valid = form.is_valid()
            preview = PreviewState.from_request(self.request, self.admin.supports_preview)

            if is_form_valid and preview.may_persist():
                submitted_object = form.get_data()
                self.ctx.subject = submitted_object

                try:
                    existing_object = self.admin.update(self.ctx, submitted_object, form.lock_version)

                    if self.is_xml_http_request():
                        return self.handle_xml_http_request_success_response(existing_object)

                    self.add_flash(
                        FlashLevel.SUCCESS,
                        self.trans(
                            "flash_edit_success",
                            {"name": self.escape_html(self.admin.to_string(existing_object))},
                            DEFAULT_DOMAIN,
                        ),
                    )
                    return self.redirect_to(existing_object)

                except ModelManagerException as exc:
                    self.handle_model_manager_exception(exc)
                    is_form_valid = False

                except LockException:
                    self.add_flash(
                        FlashLevel.ERROR,
                        self.trans(
                            "flash_lock_error",
                            {
                                "name": self.escape_html(self.admin.to_string(existing_object)),
                                "link_start": '<a href="%s">'
                                % self.escape_html(self.admin.generate_object_url(self.ctx, "edit", existing_object)),
                                "link_end": "</a>",
                            },
                            DEFAULT_DOMAIN,
                        ),
                    )

            if not is_form_valid:
                if self.is_xml_http_request():
                    return self.handle_xml_http_request_error_response(form)

                self.add_flash(
                    FlashLevel.ERROR,
                    self.trans(
                        "flash_edit_error",
                        {"name": self.escape_html(self.admin.to_string(existing_object))},
                        DEFAULT_DOMAIN,
                    ),
                )
            elif preview.must_render_preview:
                template_key = "preview"

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template(template_key),
            {
                "action": "edit",
                "form": form.create_view(),
                "object": existing_object,
                "object_id": object_id,
                "elements": self.admin.get_show(),
            },
        )

    def batch_action(self) -> Response:
        if self.request.rest_method != "POST":
            raise NotFoundError(
                f"Batch action for method {self.request.rest_method}", admin_code=self.admin.code, expected="POST"
            )

        self.validate_csrf_token(CsrfIntention.BATCH)

        batch = BatchRequest.parse(self.request)
        batch_actions = self.admin.get_batch_actions(self.ctx)
        if batch.action not in batch_actions:
            raise ConfigurationError(f"The `{batch.action}` batch action is not defined")
        batch_action = batch_actions[batch.action]

        relevance = batch_action.check_relevance(batch.idx, batch.all_elements, self.request)
        if relevance is not True and (isinstance(relevance, str) or not relevance):
            message = relevance if isinstance(relevance, str) and relevance else "flash_batch_empty"
            self.add_flash(FlashLevel.INFO, self.trans(message, domain=DEFAULT_DOMAIN))
            return self.redirect_to_list()

        if batch_action.ask_confirmation and not batch.is_confirmed:
            datagrid = self.admin.get_datagrid(self.ctx)
            template = batch_action.template or self.admin.get_template_registry().get_template("batch_confirmation")

            return self.render_with_extra_params(
                template,
                {
                    "action": "list",
                    "action_label": batch_action.label,
                    "batch_translation_domain": batch_action.translation_domain or self.admin.translation,
                    "datagrid": datagrid,
                    "filters": datagrid.create_filter_view(),
                    "data": batch.data,
                    "data_json": batch.to_json(),
                    "csrf_token": self.get_csrf_token(CsrfIntention.BATCH),
                },
            )

        handler = batch_action.handler
        if not callable(handler):
            raise ConfigurationError(f"A `{batch.action}` batch action handler is not defined")

        datagrid = self.admin.get_datagrid(self.ctx)
        datagrid.build_pager()
        query = datagrid.get_query()
        # Batch actions work on the whole matching set, not the current page
        query.first_result = None
        query.max_results = None

        self.admin.pre_batch_action(self.ctx, batch.action, query, batch.idx, batch.all_elements)

        if batch.idx:
            self.admin.model_manager.add_identifiers_to_query(self.admin.get_class(self.ctx), query, batch.idx)
        elif not batch.all_elements:
            self.add_flash(FlashLevel.INFO, self.trans("flash_batch_no_elements_processed", domain=DEFAULT_DOMAIN))
            return self.redirect_to_list()

        self.logger.info(
            "Running batch action",
            admin_code=self.admin.code,
            batch_action=batch.action,
            selected=len(batch.idx),
            all_elements=batch.all_elements,
        )
        return handler(self, query, self.request)

    def create_action(self) -> Response:
        template_key = "edit"

        self.admin.check_access(self.ctx, "create")

        if self.admin.is_abstract_class(self.ctx):
            return self.render_with_extra_params(
                self.admin.get_template_registry().get_template("select_subclass"),
                {"action": "create", "sub_classes": self.admin.sub_classes},
            )

        new_object = self.admin.get_new_instance(self.ctx)

        pre_response = self.pre_create(new_object)
        if pre_response is not None:
            return pre_response

        self.ctx.subject = new_object

        form = self.admin.get_form(self.ctx)
        form.set_data(new_object)
        form.handle_request(self.request)

        if form.is_submitted():
            is_form_valid = form.is_valid()
            preview = PreviewState.from_request(self.request, self.admin.supports_preview)

            if is_form_valid and preview.may_persist():
                submitted_object = form.get_data()
                self.ctx.subject = submitted_object
                self.admin.check_access(self.ctx, "create", submitted_object)

                try:
                    new_object = self.admin.create(self.ctx, submitted_object)

                    if self.is_xml_http_request():
                        return self.handle_xml_http_request_success_response(new_object)

                    self.add_flash(
                        FlashLevel.SUCCESS,
                        self.trans(
                            "flash_create_success",
                            {"name": self.escape_html(self.admin.to_string(new_object))},
                            DEFAULT_DOMAIN,
                        ),
                    )
                    return self.redirect_to(new_object)

                except ModelManagerException as exc:
                    self.handle_model_manager_exception(exc)
                    is_form_valid = False

            if not is_form_valid:
                if self.is_xml_http_request():
                    return self.handle_xml_http_request_error_response(form)

                self.add_flash(
                    FlashLevel.ERROR,
                    self.trans(
                        "flash_create_error",
                        {"name": self.escape_html(self.admin.to_string(new_object))},
                        DEFAULT_DOMAIN,
                    ),
                )
            elif preview.must_render_preview:
                template_key = "preview"

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template(template_key),
            {
                "action": "create",
                "form": form.create_view(),
                "object": new_object,
                "object_id": None,
                "elements": self.admin.get_show(),
            },
        )

    def show_action(self) -> Response:
        obj = self._get_object_or_404()
        self.check_parent_child_association(obj)
        self.admin.check_access(self.ctx, "show", obj)

        pre_response = self.pre_show(obj)
        if pre_response is not None:
            return pre_response

        self.ctx.subject = obj

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template("show"),
            {
                "action": "show",
                "object": obj,
                "elements": self.admin.get_show(),
            },
        )

    def history_action(self) -> Response:
        obj = self._get_object_or_404()
        self.check_parent_child_association(obj)
        self.admin.check_access(self.ctx, "history", obj)

        reader = self._get_audit_reader()
        revisions = reader.find_revisions(self.admin.get_class(self.ctx), self.admin.get_normalized_identifier(obj))
        self.ctx.subject = obj

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template("history"),
            {
                "action": "history",
                "object": obj,
                "revisions": revisions,
                "current_revision": revisions[0] if revisions else None,
            },
        )

    def history_view_revision_action(self, revision: Any = None) -> Response:
        obj = self._get_object_or_404()
        self.check_parent_child_association(obj)
        self.admin.check_access(self.ctx, "historyViewRevision", obj)

        reader = self._get_audit_reader()
        revision_object = self._find_revision(reader, obj, revision)
        self.ctx.subject = revision_object

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template("show"),
            {
                "action": "show",
                "object": revision_object,
                "revision": revision,
                "elements": self.admin.get_show(),
            },
        )

    def history_compare_revisions_action(self, base_revision: Any = None, compare_revision: Any = None) -> Response:
        obj = self._get_object_or_404()
        self.check_parent_child_association(obj)
        self.admin.check_access(self.ctx, "historyCompareRevisions", obj)

        reader = self._get_audit_reader()
        # Each revision 404s on its own
        base_object = self._find_revision(reader, obj, base_revision)
        compare_object = self._find_revision(reader, obj, compare_revision)
        self.ctx.subject = base_object

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template("show_compare"),
            {
                "action": "show",
                "object": base_object,
                "object_compare": compare_object,
                "base_revision": base_revision,
                "compare_revision": compare_revision,
                "elements": self.admin.get_show(),
            },
        )

    def export_action(self) -> Response:
        self.admin.check_access(self.ctx, "export")

        fmt = self.request.get("format")
        allowed = self.exporter.get_available_formats(self.admin)
        if fmt not in allowed:
            raise ConfigurationError(
                f"Export in format `{fmt}` is not allowed for class: `{self.admin.get_class(self.ctx).__name__}`. "
                f"Allowed formats are: `{', '.join(allowed)}`"
            )

        filename = self.exporter.get_export_filename(self.admin, fmt)
        # Rows are read now, while the request's session is still open
        rows = list(self.admin.get_data_source_iterator(self.ctx))
        self.logger.info("Export", admin_code=self.admin.code, format=fmt, rows=len(rows))
        return self.exporter.exporter.get_response(fmt, filename, rows)

    def acl_action(self) -> Response:
        if not self.admin.acl_enabled:
            raise NotFoundError("ACL", admin_code=self.admin.code, reason="ACL are not enabled for this admin")

        obj = self._get_object_or_404()
        self.check_parent_child_association(obj)
        self.admin.check_access(self.ctx, "acl", obj)
        self.ctx.subject = obj

        manipulator = self.acl_manipulator
        acl_data = AdminObjectAclData(
            self.admin,
            self.ctx,
            obj,
            self.get_acl_users(),
            manipulator.get_mask_builder_class(),
            self.get_acl_roles(),
            self.csrf_token_manager if self.settings.csrf_enabled else None,
        )
        users_form = manipulator.create_acl_users_form(acl_data)
        roles_form = manipulator.create_acl_roles_form(acl_data)

        if self.request.method == "POST":
            form, update = None, None
            if self.request.has_form(manipulator.ACL_USERS_FORM_NAME):
                form, update = users_form, manipulator.update_acl_users
            elif self.request.has_form(manipulator.ACL_ROLES_FORM_NAME):
                form, update = roles_form, manipulator.update_acl_roles

            if form is not None:
                form.handle_request(self.request)
                if form.is_valid():
                    update(acl_data)
                    self.add_flash(FlashLevel.SUCCESS, self.trans("flash_acl_edit_success", domain=DEFAULT_DOMAIN))
                    return RedirectResponse(self.admin.generate_object_url(self.ctx, "acl", obj), status_code=302)

        return self.render_with_extra_params(
            self.admin.get_template_registry().get_template("acl"),
            {
                "action": "acl",
                "permissions": acl_data.get_user_permissions(),
                "object": obj,
                "users": acl_data.acl_users,
                "roles": acl_data.acl_roles,
                "acl_users_form": users_form.create_view(),
                "acl_roles_form": roles_form.create_view(),
            },
        )

    # =========================================================================
    # Hooks
    # =========================================================================

    def pre_list(self) -> Response | None:
        return None

    def pre_create(self, obj: Any) -> Response | None:
        return None

    def pre_edit(self, obj: Any) -> Response | None:
        return None

    def pre_delete(self, obj: Any) -> Response | None:
        return None

    def pre_show(self, obj: Any) -> Response | None:
        return None

    # =========================================================================
    # Redirects
    # =========================================================================

    def redirect_to(self, obj: Any) -> RedirectResponse:
        """Where to go after a successful create, edit or delete."""
        url = None

        if self.request.has(Buttons.UPDATE_AND_LIST) or self.request.has(Buttons.CREATE_AND_LIST):
            return self.redirect_to_list()

        if self.request.has(Buttons.CREATE_AND_CREATE):
            params = {}
            if self.admin.has_active_sub_class(self.ctx):
                params["subclass"] = self.request.get("subclass")
            url = self.admin.generate_url(self.ctx, "create", params)

        elif self.request.rest_method == "DELETE":
            return self.redirect_to_list()

        if url is None:
            for route in ("edit", "show"):
                if self.admin.has_route(route) and self.admin.has_access(self.ctx, route, obj):
                    params = {}
                    if self.request.get("_tab"):
                        params["_tab"] = self.request.get("_tab")
                    url = self.admin.generate_object_url(self.ctx, route, obj, params)
                    break

        if url is None:
            return self.redirect_to_list()

        return RedirectResponse(url, status_code=302)

    def redirect_to_list(self) -> RedirectResponse:
        parameters: dict[str, Any] = {}
        filters = self.admin.get_filter_parameters(self.ctx)
        if filters:
            parameters["filter"] = filters
        return RedirectResponse(self.admin.generate_url(self.ctx, "list", parameters), status_code=302)

    # =========================================================================
    # Helpers
    # =========================================================================

    def is_xml_http_request(self) -> bool:
        return self.request.is_xml_http_request

    def render_json(self, data: Any, status_code: int = 200, headers: dict[str, str] | None = None) -> JSONResponse:
        return JSONResponse(content=data, status_code=status_code, headers=headers)

    def handle_xml_http_request_success_response(self, obj: Any) -> JSONResponse:
        if not self.request.accepts_json:
            return self.render_json({}, 406)

        return self.render_json({
            "result": "ok",
            "objectId": self.admin.get_normalized_identifier(obj),
            "objectName": self.escape_html(self.admin.to_string(obj)),
        })

    def handle_xml_http_request_error_response(self, form: AdminForm) -> JSONResponse:
        if not self.request.accepts_json:
            return self.render_json({}, 406)

        return self.render_json({"result": "error", "errors": form.get_errors()}, 400)

    def handle_model_manager_exception(self, exc: ModelManagerException) -> None:
        """Debug mode re-raises; otherwise the failure is logged and the action degrades."""
        if self.settings.debug:
            raise exc

        context: dict[str, Any] = {"admin_code": self.admin.code}
        if exc.previous is not None:
            context["previous_exception_message"] = str(exc.previous)
        self.logger.error(str(exc), **context)

    def validate_csrf_token(self, intention: str) -> None:
        if not self.settings.csrf_enabled or self.csrf_token_manager is None:
            return

        if not self.csrf_token_manager.is_token_valid(intention, self.request.get(CSRF_FIELD)):
            raise BadRequestError(
                "The csrf token is not valid, CSRF attack?",
                admin_code=self.admin.code,
                intention=intention,
            )

    def get_csrf_token(self, intention: str) -> str | None:
        if not self.settings.csrf_enabled or self.csrf_token_manager is None:
            return None
        return self.csrf_token_manager.get_token(intention)

    def check_parent_child_association(self, obj: Any) -> None:
        """A child admin's object must belong to the parent object named in the URL."""
        parent = self.admin.parent
        if parent is None or not self.admin.parent_association_mapping:
            return

        parent_object = self.admin.get_parent_object(self.ctx)
        if parent_object is not get_path_value(obj, self.admin.parent_association_mapping):
            raise AssociationIntegrityError(
                f'There is no association between "{parent.to_string(parent_object)}" '
                f'and "{self.admin.to_string(obj)}"'
            )

    def get_acl_users(self) -> list[str]:
        manager = self.pool.acl_user_manager
        if manager is None:
            return []
        return list(manager.find_users())

    def get_acl_roles(self) -> list[str]:
        roles: list[str] = []
        for admin in self.pool.get_admins():
            roles.extend(admin.security_handler.build_security_information(admin))

        for role, inherited in self.pool.role_hierarchy.items():
            roles.append(role)
            roles.extend(inherited)

        return list(dict.fromkeys(roles))

    def escape_html(self, value: Any) -> str:
        return str(escape(value))

    def trans(self, message_id: str, parameters: dict[str, Any] | None = None, domain: str | None = None) -> str:
        return self.translator.trans(message_id, parameters, domain or self.admin.translation)

    def add_flash(self, level: str, message: str) -> None:
        add_flash(self.request.session, message, level)

    def get_base_template(self) -> str:
        registry = self.admin.get_template_registry()
        if self.is_xml_http_request():
            return registry.get_template("ajax")
        return registry.get_template("layout")

    def render_with_extra_params(
        self, template: str, parameters: dict[str, Any] | None = None, status_code: int = 200
    ) -> HTMLResponse:
        parameters = self.add_render_extra_params(dict(parameters or {}))
        content = self.templates.env.get_template(template).render(parameters)
        return HTMLResponse(content, status_code=status_code)

    def add_render_extra_params(self, parameters: dict[str, Any]) -> dict[str, Any]:
        if not self.is_xml_http_request():
            parameters["breadcrumbs"] = self.admin.build_breadcrumbs(self.ctx, parameters.get("action", "list"))

        parameters.update(
            admin=self.admin,
            ctx=self.ctx,
            base_template=self.get_base_template(),
            admin_pool=self.pool,
            url=self._url,
            admin_url=self._admin_url,
            can=self._can,
            trans=self.trans,
            csrf_field=CSRF_FIELD,
            flashes=pop_flashes(self.request.session),
            to_json=json.dumps,
        )
        return parameters

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_object_or_404(self) -> Any:
        identifier = self.request.get(self.admin.id_parameter)
        obj = self.admin.get_object(self.ctx, identifier)
        if obj is None:
            raise NotFoundError(
                f"Unable to find {self.admin.label} object",
                identifier,
                admin_code=self.admin.code,
            )
        return obj

    def _get_audit_reader(self) -> Any:
        audit_manager = self.pool.audit_manager.bind(self.db)
        model_class = self.admin.get_class(self.ctx)
        if not audit_manager.has_reader(model_class):
            raise NotFoundError(f"Audit reader for class {model_class.__name__}", admin_code=self.admin.code)
        return audit_manager.get_reader(model_class)

    def _find_revision(self, reader: Any, obj: Any, revision: Any) -> Any:
        model_class = self.admin.get_class(self.ctx)
        identifier = self.admin.get_normalized_identifier(obj)
        revision_object = reader.find(model_class, identifier, revision)
        if revision_object is None:
            raise NotFoundError(
                f"Revision {revision} of {model_class.__name__}",
                identifier,
                admin_code=self.admin.code,
            )
        return revision_object

    def _url(self, name: str, obj: Any = None, **params: Any) -> str:
        if obj is not None:
            return self.admin.generate_object_url(self.ctx, name, obj, params)
        return self.admin.generate_url(self.ctx, name, params)

    def _admin_url(self, admin: Any, name: str, obj: Any = None, **params: Any) -> str:
        ctx = self.ctx if admin is self.admin else self.ctx.for_admin(admin)
        if obj is not None:
            return admin.generate_object_url(ctx, name, obj, params)
        return admin.generate_url(ctx, name, params)

    def _can(self, name: str, obj: Any = None, admin: Any = None) -> bool:
        admin = admin or self.admin
        ctx = self.ctx if admin is self.admin else self.ctx.for_admin(admin)
        return admin.has_route(name) and admin.has_access(ctx, name, obj)

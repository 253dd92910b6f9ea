"""
Controller factory: builds a configured controller for one request and
dispatches the route's action to it.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from crud_admin.admin.context import AdminRequest
from crud_admin.admin.pool import AdminPool
from crud_admin.controller.crud import CRUDController
from crud_admin.services.acl import AdminObjectAclManipulator
from crud_admin.services.exporter import AdminExporter
from crud_admin.services.translator import Translator
from crud_admin.web.templating import create_templates
from crud_shared.config.logging import StructuredLogger
from crud_shared.config.settings import Settings, get_settings
from crud_shared.security.csrf import CsrfTokenManager


class ControllerFactory:
    """Shared, request-independent collaborators live here; the controller is per request."""

    def __init__(
        self,
        pool: AdminPool,
        templates: Jinja2Templates | None = None,
        translator: Translator | None = None,
        exporter: AdminExporter | None = None,
        acl_manipulator: AdminObjectAclManipulator | None = None,
        app_settings: Settings | None = None,
        logger: StructuredLogger | None = None,
    ):
        self.pool = pool
        self.templates = templates or create_templates()
        self.translator = translator or Translator()
        self.exporter = exporter or AdminExporter()
        self.acl_manipulator = acl_manipulator or AdminObjectAclManipulator()
        self.settings = app_settings or get_settings()
        self.logger = logger

    def get_controller_class(self, request: AdminRequest) -> type[CRUDController]:
        admin_code = request.get("_admin_code")
        if admin_code:
            admin = self.pool.get_admin_by_admin_code(admin_code)
            if admin.controller_class is not None:
                return admin.controller_class
        return CRUDController

    def create(self, request: AdminRequest, db: Session | None, user: dict[str, Any] | None) -> CRUDController:
        controller_class = self.get_controller_class(request)
        controller = controller_class(
            self.pool,
            request,
            db,
            user,
            templates=self.templates,
            translator=self.translator,
            csrf_token_manager=CsrfTokenManager(request.session),
            exporter=self.exporter,
            acl_manipulator=self.acl_manipulator,
            app_settings=self.settings,
            logger=self.logger,
        )
        controller.configure()
        return controller

    def dispatch(
        self,
        request: AdminRequest,
        db: Session | None,
        user: dict[str, Any] | None,
        action: str,
        arguments: dict[str, Any] | None = None,
    ) -> Response:
        controller = self.create(request, db, user)
        return getattr(controller, action)(**(arguments or {}))

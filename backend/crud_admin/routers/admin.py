"""
Admin router: one endpoint per admin route.

Every endpoint reads the request into an AdminRequest, injects the admin code
as the ``_admin_code`` path parameter and runs the controller action in the
thread pool with a request-scoped session and the authenticated user.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from crud_admin.admin.context import AdminRequest
from crud_admin.admin.descriptor import Admin
from crud_admin.admin.pool import AdminPool
from crud_admin.admin.routes import AdminRoute
from crud_admin.controller.factory import ControllerFactory
from crud_shared.config.logging import get_logger
from crud_shared.infrastructure.db import get_db
from crud_shared.security.auth import current_user_context

logger = get_logger(__name__)


def _make_endpoint(factory: ControllerFactory, admin: Admin, route: AdminRoute):
    admin_code = admin.full_code

    async def endpoint(
        request: Request,
        db: Session = Depends(get_db),
        user: dict[str, Any] = Depends(current_user_context),
    ) -> Response:
        admin_request = await AdminRequest.from_starlette(request)
        admin_request.path_params["_admin_code"] = admin_code
        arguments = {name: admin_request.path_params.get(name) for name in route.arguments}

        return await run_in_threadpool(factory.dispatch, admin_request, db, user, route.action, arguments)

    endpoint.__name__ = f"{admin.route_name_prefix}_{route.name}"
    return endpoint


def build_admin_router(pool: AdminPool, factory: ControllerFactory | None = None) -> APIRouter:
    """Register every route of every admin in the pool (children included)."""
    factory = factory or ControllerFactory(pool)
    router = APIRouter(tags=["admin"])

    for admin in pool.get_admins():
        for route in admin.get_routes().values():
            router.add_api_route(
                admin.get_route_path(route.name),
                _make_endpoint(factory, admin, route),
                methods=list(route.methods),
                name=f"{admin.route_name_prefix}_{route.name}",
                include_in_schema=False,
            )
        logger.debug("Admin routes registered", admin_code=admin.full_code, routes=len(admin.get_routes()))

    return router

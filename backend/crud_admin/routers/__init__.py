"""
FastAPI routers.
"""

from crud_admin.routers.admin import build_admin_router

__all__ = ["build_admin_router"]

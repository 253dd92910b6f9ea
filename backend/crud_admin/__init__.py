"""
CRUD admin: admin descriptors, the CRUD controller and its FastAPI wiring.
"""

from crud_admin.admin import Admin, AdminPool, BatchAction
from crud_admin.controller import CRUDController

__all__ = [
    "Admin",
    "AdminPool",
    "BatchAction",
    "CRUDController",
]

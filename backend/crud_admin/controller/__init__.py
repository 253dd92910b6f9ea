"""
CRUD controller and its per-request helpers.
"""

from crud_admin.controller.batch import BatchRequest
from crud_admin.controller.crud import CRUDController
from crud_admin.controller.factory import ControllerFactory
from crud_admin.controller.preview import PreviewState

__all__ = [
    "BatchRequest",
    "CRUDController",
    "ControllerFactory",
    "PreviewState",
]

"""
Admin descriptors and the pieces they are configured with.
"""

from crud_admin.admin.batch import BatchAction
from crud_admin.admin.context import AdminContext, AdminRequest
from crud_admin.admin.datagrid import Datagrid, Pager, ProxyQuery
from crud_admin.admin.descriptor import Admin, FieldDescription
from crud_admin.admin.filters import FilterTypeRegistry
from crud_admin.admin.forms import AdminForm, ChoiceFieldMask
from crud_admin.admin.pool import AdminPool
from crud_admin.admin.templates import TemplateRegistry

__all__ = [
    "Admin",
    "AdminContext",
    "AdminForm",
    "AdminPool",
    "AdminRequest",
    "BatchAction",
    "ChoiceFieldMask",
    "Datagrid",
    "FieldDescription",
    "FilterTypeRegistry",
    "Pager",
    "ProxyQuery",
    "TemplateRegistry",
]

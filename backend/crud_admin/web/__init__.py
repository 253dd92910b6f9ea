"""
Web helpers: session flash messages and the Jinja2 environment.
"""

from crud_admin.web.flash import add_flash, pop_flashes
from crud_admin.web.templating import create_templates

__all__ = ["add_flash", "pop_flashes", "create_templates"]

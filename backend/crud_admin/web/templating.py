"""
Jinja2 environment for the admin pages.
"""

from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates
from jinja2 import ChoiceLoader, FileSystemLoader

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


def _display(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def create_templates(extra_dirs: list[str | Path] | None = None) -> Jinja2Templates:
    """
    Templates from ``extra_dirs`` (application overrides) win over the bundled
    ``crud/*.html`` ones.
    """
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    if extra_dirs:
        templates.env.loader = ChoiceLoader(
            [FileSystemLoader([str(path) for path in extra_dirs]), templates.env.loader]
        )
    templates.env.filters["display"] = _display
    return templates

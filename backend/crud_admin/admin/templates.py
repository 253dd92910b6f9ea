"""
Template lookup by key, with per-admin overrides.
"""

from crud_shared.utils.exceptions import ConfigurationError

DEFAULT_TEMPLATES: dict[str, str] = {
    "layout": "crud/layout.html",
    "ajax": "crud/ajax_layout.html",
    "list": "crud/list.html",
    "edit": "crud/edit.html",
    "preview": "crud/preview.html",
    "show": "crud/show.html",
    "show_compare": "crud/show_compare.html",
    "history": "crud/history.html",
    "delete": "crud/delete.html",
    "batch_confirmation": "crud/batch_confirmation.html",
    "acl": "crud/acl.html",
    "select_subclass": "crud/select_subclass.html",
}


class TemplateRegistry:
    def __init__(self, templates: dict[str, str] | None = None):
        self._templates = {**DEFAULT_TEMPLATES, **(templates or {})}

    def get_template(self, name: str) -> str:
        try:
            return self._templates[name]
        except KeyError:
            raise ConfigurationError(f'No template registered under "{name}"') from None

    def has_template(self, name: str) -> bool:
        return name in self._templates

    def set_template(self, name: str, template: str) -> None:
        self._templates[name] = template

    def with_overrides(self, templates: dict[str, str] | None) -> "TemplateRegistry":
        return TemplateRegistry({**self._templates, **(templates or {})})

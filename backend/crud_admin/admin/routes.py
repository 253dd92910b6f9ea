"""
Route definitions shared by every admin.

Patterns are relative to the admin's base route pattern; ``{id}`` stands for
the admin's own identifier parameter and is renamed per admin depth
(``id``, ``child_id``, ``child_child_id``).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AdminRoute:
    name: str
    pattern: str
    methods: tuple[str, ...]
    action: str
    # Path parameters passed to the controller action as keyword arguments
    arguments: tuple[str, ...] = ()

    @property
    def object_scoped(self) -> bool:
        return "{id}" in self.pattern


DEFAULT_ROUTES: tuple[AdminRoute, ...] = (
    AdminRoute("list", "/list", ("GET",), "list_action"),
    AdminRoute("create", "/create", ("GET", "POST"), "create_action"),
    # GET is routed too so the controller can answer non-POST batch calls with 404
    AdminRoute("batch", "/batch", ("GET", "POST"), "batch_action"),
    AdminRoute("export", "/export", ("GET",), "export_action"),
    AdminRoute("edit", "/{id}/edit", ("GET", "POST"), "edit_action"),
    AdminRoute("delete", "/{id}/delete", ("GET", "POST", "DELETE"), "delete_action"),
    AdminRoute("show", "/{id}/show", ("GET",), "show_action"),
    AdminRoute("history", "/{id}/history", ("GET",), "history_action"),
    AdminRoute(
        "history_view_revision",
        "/{id}/history/{revision}/view",
        ("GET",),
        "history_view_revision_action",
        ("revision",),
    ),
    AdminRoute(
        "history_compare_revisions",
        "/{id}/history/{base_revision}/{compare_revision}/compare",
        ("GET",),
        "history_compare_revisions_action",
        ("base_revision", "compare_revision"),
    ),
    AdminRoute("acl", "/{id}/acl", ("GET", "POST"), "acl_action"),
)

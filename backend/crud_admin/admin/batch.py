"""
Batch action registry entries.

Handlers are registered explicitly with the admin:

    admin.add_batch_action(
        "publish",
        label="Publish",
        handler=publish_selected,
        ask_confirmation=False,
    )

A handler receives ``(controller, query, request)`` and returns a response.
The optional relevance predicate receives ``(idx, all_elements, request)``
and returns True to proceed, a falsy value for the default "nothing selected"
message, or a message id to flash instead.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from crud_shared.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from starlette.responses import Response

    from crud_admin.admin.context import AdminRequest
    from crud_admin.admin.datagrid import ProxyQuery
    from crud_admin.controller.crud import CRUDController

BatchHandler = Callable[["CRUDController", "ProxyQuery", "AdminRequest"], "Response"]
RelevancePredicate = Callable[[list[str], bool, "AdminRequest"], Any]


@dataclass
class BatchAction:
    name: str
    label: str
    handler: BatchHandler
    ask_confirmation: bool = True
    template: str | None = None
    translation_domain: str | None = None
    is_relevant: RelevancePredicate | None = None

    def __post_init__(self) -> None:
        if not callable(self.handler):
            raise ConfigurationError(f'The "{self.name}" batch action needs a callable handler')
        if self.is_relevant is not None and not callable(self.is_relevant):
            raise ConfigurationError(f'The "{self.name}" batch action relevance check must be callable')

    def check_relevance(self, idx: list[str], all_elements: bool, request: AdminRequest) -> Any:
        if self.is_relevant is not None:
            return self.is_relevant(idx, all_elements, request)
        # at least one item is selected
        return len(idx) > 0 or all_elements


def delete_selected(controller: CRUDController, query: ProxyQuery, request: AdminRequest) -> Response:
    return controller.batch_action_delete(query)

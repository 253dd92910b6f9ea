"""
Preview mode of the create and edit forms.
"""

from __future__ import annotations

from dataclasses import dataclass

from crud_admin.admin.context import AdminRequest
from crud_shared.config.constants import Buttons


@dataclass(frozen=True)
class PreviewState:
    """
    Derived from the submit button that was pressed. When the admin does not
    support preview every flag is False and the create/edit flow ignores it.
    """

    requested: bool = False
    approved: bool = False
    declined: bool = False

    @classmethod
    def from_request(cls, request: AdminRequest, supported: bool) -> PreviewState:
        if not supported:
            return cls()
        return cls(
            requested=request.has(Buttons.PREVIEW),
            approved=request.has(Buttons.PREVIEW_APPROVE),
            declined=request.has(Buttons.PREVIEW_DECLINE),
        )

    @property
    def in_progress(self) -> bool:
        """The preview page is being shown or was just answered."""
        return self.requested or self.approved or self.declined

    @property
    def must_render_preview(self) -> bool:
        return self.requested and not self.approved

    def may_persist(self) -> bool:
        return not self.in_progress or self.approved

"""
Batch request envelope.

A batch form posts either the discrete fields (``action``, ``idx[]``,
``all_elements``) or, when coming back from the confirmation page, a JSON
``data`` field carrying the original payload. Both are normalised to one shape.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from crud_admin.admin.context import AdminRequest, is_truthy
from crud_shared.config.constants import CSRF_FIELD

ENVELOPE_FIELDS = {"action", "idx", "idx[]", "all_elements", "data", "confirmation", CSRF_FIELD}


def _decode(raw: Any) -> dict[str, Any] | None:
    if not raw or not isinstance(raw, str):
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    return data if isinstance(data, dict) and data else None

@dataclass
class BatchRequest:
    action: str | None
    idx: list[str] = field(default_factory=list)
    all_elements: bool = False
    confirmation: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, request: AdminRequest) -> BatchRequest:
        confirmation = request.get("confirmation")
        data = _decode(request.get("data"))

        if data is not None:
            idx = data.get("idx") or []
            if not isinstance(idx, list):
                idx = [idx]
            data.pop(CSRF_FIELD, None)
            return cls(
                action=data.get("action"),
                idx=[str(value) for value in idx],
                all_elements=is_truthy(data.get("all_elements", False)),
                confirmation=confirmation,
                data=data,
            )

        idx = request.getlist("idx")
        all_elements = is_truthy(request.get("all_elements", False))
        action = request.get("action")

        payload: dict[str, Any] = {
            key: value for key, value in request.form_items() if key not in ENVELOPE_FIELDS
        }
        payload.update(action=action, idx=idx, all_elements=all_elements)
        return cls(
            action=action,
            idx=idx,
            all_elements=all_elements,
            confirmation=confirmation,
            data=payload,
        )

    @property
    def is_confirmed(self) -> bool:
        return self.confirmation == "ok"

    def to_json(self) -> str:
        return json.dumps(self.data, default=str)

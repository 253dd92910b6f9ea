from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

from crud_shared.config.constants import FlashLevel

SESSION_KEY = "_flashes"


def add_flash(session: MutableMapping[str, Any], message: str, level: str = FlashLevel.INFO) -> None:
    flashes = session.get(SESSION_KEY, [])
    flashes.append({"message": message, "level": level})
    session[SESSION_KEY] = flashes


def pop_flashes(session: MutableMapping[str, Any]) -> list[dict[str, Any]]:
    flashes = session.get(SESSION_KEY, [])
    session[SESSION_KEY] = []
    return flashes

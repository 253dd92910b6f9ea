"""
Audit logging service.
Records every persisted change of audited classes and reads revisions back
for the history views.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Date, DateTime, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from crud_admin.models import AuditLog
from crud_shared.config.logging import get_logger
from crud_shared.utils.exceptions import NotFoundError

logger = get_logger(__name__)


def entity_type_for(model_class: type) -> str:
    return model_class.__name__


def _entity_id(obj: Any) -> str:
    identity = sa_inspect(obj).identity
    if identity is None:
        return ""
    return "~".join(str(value) for value in identity)


def _json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def serialize_model(obj: Any, exclude: list[str] | None = None) -> dict:
    """
    Serialize a SQLAlchemy model's column attributes to a dictionary.
    """
    exclude = exclude or []
    mapper = sa_inspect(type(obj))
    result = {}
    for attr in mapper.column_attrs:
        if attr.key in exclude:
            continue
        result[attr.key] = _json_value(getattr(obj, attr.key))
    return result


def serialize_committed(obj: Any) -> dict:
    """Column values as last loaded from the database, ignoring pending changes."""
    state = sa_inspect(obj)
    result = {}
    for attr in sa_inspect(type(obj)).column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            value = history.deleted[0]
        elif history.unchanged:
            value = history.unchanged[0]
        else:
            value = getattr(obj, attr.key)
        result[attr.key] = _json_value(value)
    return result


def log_change(
    db: Session,
    *,
    user_id: Optional[str],
    user_email: Optional[str],
    entity_type: str,
    entity_id: str,
    action: str,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
) -> AuditLog:
    """
    Log a change to an entity.

    Args:
        db: Database session
        user_id: User who made the change
        user_email: Email of user who made the change
        entity_type: Type of entity (e.g., "Category")
        entity_id: Normalized identifier of the entity
        action: Action performed (CREATE, UPDATE, DELETE)
        old_values: Previous state of the entity (for UPDATE/DELETE)
        new_values: New state of the entity (for CREATE/UPDATE)

    Returns:
        Created AuditLog entry
    """
    changes = None
    if action == "UPDATE" and old_values and new_values:
        changes = {}
        for key in set(old_values.keys()) | set(new_values.keys()):
            old_val = old_values.get(key)
            new_val = new_values.get(key)
            if old_val != new_val:
                changes[key] = {"old": old_val, "new": new_val}

    audit_entry = AuditLog(
        user_id=user_id,
        user_email=user_email,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        old_values=json.dumps(old_values, default=str) if old_values else None,
        new_values=json.dumps(new_values, default=str) if new_values else None,
        changes=json.dumps(changes, default=str) if changes else None,
    )

    db.add(audit_entry)
    # Don't commit here - let the caller handle the transaction
    return audit_entry


def _user_fields(user: dict | None) -> dict[str, Any]:
    user = user or {}
    return {"user_id": user.get("sub"), "user_email": user.get("email")}


def log_create(db: Session, user: dict | None, entity: Any) -> AuditLog:
    """Log entity creation."""
    return log_change(
        db,
        **_user_fields(user),
        entity_type=entity_type_for(type(entity)),
        entity_id=_entity_id(entity),
        action="CREATE",
        new_values=serialize_model(entity),
    )


def log_update(db: Session, user: dict | None, entity: Any, old_values: dict) -> AuditLog:
    """Log entity update."""
    return log_change(
        db,
        **_user_fields(user),
        entity_type=entity_type_for(type(entity)),
        entity_id=_entity_id(entity),
        action="UPDATE",
        old_values=old_values,
        new_values=serialize_model(entity),
    )


def log_delete(db: Session, user: dict | None, entity: Any) -> AuditLog:
    """Log entity deletion."""
    return log_change(
        db,
        **_user_fields(user),
        entity_type=entity_type_for(type(entity)),
        entity_id=_entity_id(entity),
        action="DELETE",
        old_values=serialize_model(entity),
    )


# =============================================================================
# Revision readers
# =============================================================================


@dataclass(frozen=True)
class Revision:
    rev: int
    timestamp: datetime | None
    username: str | None
    action: str
    changes: dict[str, Any]


class SqlAuditReader:
    """Reads revisions of one session's audit_log rows. Newest revision first."""

    def __init__(self, db: Session):
        self.db = db

    def find_revisions(self, model_class: type, identifier: Any) -> list[Revision]:
        rows = self.db.scalars(
            select(AuditLog)
            .where(
                AuditLog.entity_type == entity_type_for(model_class),
                AuditLog.entity_id == str(identifier),
            )
            .order_by(AuditLog.id.desc())
        ).all()
        return [
            Revision(
                rev=row.id,
                timestamp=row.created_at,
                username=row.user_email or row.user_id,
                action=row.action,
                changes=json.loads(row.changes) if row.changes else {},
            )
            for row in rows
        ]

    def find(self, model_class: type, identifier: Any, revision: Any) -> Any:
        """Rebuild the object as it was at ``revision``; None if there is no such revision."""
        try:
            revision_id = int(revision)
        except (TypeError, ValueError):
            return None

        row = self.db.get(AuditLog, revision_id)
        if (
            row is None
            or row.entity_type != entity_type_for(model_class)
            or row.entity_id != str(identifier)
        ):
            return None

        snapshot = row.new_values if row.action != "DELETE" else row.old_values
        values = json.loads(snapshot) if snapshot else {}
        return self._hydrate(model_class, values)

    def _hydrate(self, model_class: type, values: dict[str, Any]) -> Any:
        obj = model_class()
        for attr in sa_inspect(model_class).column_attrs:
            if attr.key not in values:
                continue
            value = values[attr.key]
            column_type = attr.columns[0].type
            if isinstance(value, str) and isinstance(column_type, DateTime):
                value = datetime.fromisoformat(value)
            elif isinstance(value, str) and isinstance(column_type, Date):
                value = date.fromisoformat(value)
            setattr(obj, attr.key, value)
        return obj


class AuditManager:
    """
    Registry of audited classes. Readers are bound to the request's session
    through ``bind(db)``.
    """

    def __init__(self, reader_class: type = SqlAuditReader, db: Session | None = None):
        self.reader_class = reader_class
        self.db = db
        self._classes: dict[type, type] = {}

    def register(self, model_class: type, reader_class: type | None = None) -> None:
        self._classes[model_class] = reader_class or self.reader_class

    def has_reader(self, model_class: type) -> bool:
        return model_class in self._classes

    def get_reader(self, model_class: type) -> Any:
        if model_class not in self._classes:
            raise NotFoundError("Audit reader", entity_type=entity_type_for(model_class))
        return self._classes[model_class](self.db)

    def bind(self, db: Session) -> AuditManager:
        bound = AuditManager(self.reader_class, db)
        bound._classes = self._classes
        return bound

"""
SQLAlchemy model manager.
Persists admin objects, writes audit revisions and translates driver errors
into ModelManagerException / LockException.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, false, or_
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from crud_admin.admin.datagrid import ProxyQuery
from crud_admin.services.audit import log_create, log_delete, log_update, serialize_committed
from crud_shared.config.constants import Limits
from crud_shared.config.logging import get_logger
from crud_shared.infrastructure.db import safe_commit
from crud_shared.utils.exceptions import LockException, ModelManagerException

if TYPE_CHECKING:
    from crud_admin.services.audit import AuditManager

logger = get_logger(__name__)

IDENTIFIER_SEPARATOR = "~"


class SQLAlchemyModelManager:
    def __init__(self, audit_manager: AuditManager | None = None):
        self.audit_manager = audit_manager

    # =========================================================================
    # Identifiers
    # =========================================================================

    def get_identifier_field_names(self, model_class: type) -> list[str]:
        mapper = sa_inspect(model_class)
        return [mapper.get_property_by_column(column).key for column in mapper.primary_key]

    def get_identifier_values(self, obj: Any) -> list[Any] | None:
        state = sa_inspect(obj)
        if state.identity is not None:
            return list(state.identity)
        values = [getattr(obj, name, None) for name in self.get_identifier_field_names(type(obj))]
        if any(value is None for value in values):
            return None
        return values

    def get_normalized_identifier(self, obj: Any) -> str | None:
        if obj is None:
            return None
        values = self.get_identifier_values(obj)
        if values is None:
            return None
        return IDENTIFIER_SEPARATOR.join(str(value) for value in values)

    def get_url_safe_identifier(self, obj: Any) -> str | None:
        return self.get_normalized_identifier(obj)

    def _parse_identifier(self, model_class: type, identifier: Any) -> tuple[Any, ...] | None:
        """Split a normalized identifier and coerce each part to its column type."""
        mapper = sa_inspect(model_class)
        parts = str(identifier).split(IDENTIFIER_SEPARATOR)
        if len(parts) != len(mapper.primary_key):
            return None

        values = []
        for column, part in zip(mapper.primary_key, parts):
            try:
                python_type = column.type.python_type
            except NotImplementedError:
                python_type = str
            try:
                values.append(python_type(part))
            except (TypeError, ValueError):
                return None
        return tuple(values)

    # =========================================================================
    # Reads
    # =========================================================================

    def find(self, db: Session, model_class: type, identifier: Any) -> Any:
        key = self._parse_identifier(model_class, identifier)
        if key is None:
            return None
        return db.get(model_class, key if len(key) > 1 else key[0])

    def create_query(self, db: Session, model_class: type) -> ProxyQuery:
        return ProxyQuery(db, model_class)

    def add_identifiers_to_query(self, model_class: type, query: ProxyQuery, identifiers: list[Any]) -> None:
        mapper = sa_inspect(model_class)
        columns = [getattr(model_class, mapper.get_property_by_column(column).key) for column in mapper.primary_key]
        keys = [key for key in (self._parse_identifier(model_class, value) for value in identifiers) if key is not None]

        if len(columns) == 1:
            query.where(columns[0].in_([key[0] for key in keys]))
        else:
            # An empty key list must match no rows
            query.where(or_(false(), *[and_(*[column == value for column, value in zip(columns, key)]) for key in keys]))

    def get_data_source_iterator(self, query: ProxyQuery, fields: list[str]) -> Iterator[dict[str, Any]]:
        from crud_admin.admin.descriptor import get_path_value

        for obj in query:
            row = {}
            for name in fields:
                try:
                    value = get_path_value(obj, name)
                except AttributeError:
                    value = None
                row[name] = value
            yield row

    # =========================================================================
    # Optimistic locking
    # =========================================================================

    def get_version_attribute(self, model_class: type) -> str | None:
        mapper = sa_inspect(model_class)
        if mapper.version_id_col is None:
            return None
        return mapper.get_property_by_column(mapper.version_id_col).key

    def lock(self, db: Session, obj: Any, expected_version: Any) -> None:
        attribute = self.get_version_attribute(type(obj))
        if attribute is None:
            return

        # Compare against the stored row, not the in-memory copy
        state = sa_inspect(obj)
        history = state.attrs[attribute].history
        current = history.deleted[0] if history.deleted else getattr(obj, attribute)
        if str(current) != str(expected_version):
            db.rollback()
            logger.warning(
                "Optimistic lock failed",
                model=type(obj).__name__,
                expected_version=expected_version,
                current_version=current,
            )
            raise LockException(
                f"The version of {type(obj).__name__} changed from {expected_version} to {current}"
            )

    # =========================================================================
    # Writes
    # =========================================================================

    def _is_audited(self, obj: Any) -> bool:
        return self.audit_manager is not None and self.audit_manager.has_reader(type(obj))

    def _fail(self, db: Session, action: str, obj_class: type, exc: Exception) -> None:
        db.rollback()
        if isinstance(exc, StaleDataError):
            raise LockException(f"{obj_class.__name__} was modified concurrently") from exc
        raise ModelManagerException(
            f"Failed to {action} object: {obj_class.__name__}", previous=exc
        ) from exc

    def create(self, db: Session, obj: Any, user: dict | None = None) -> Any:
        try:
            db.add(obj)
            db.flush()
            if self._is_audited(obj):
                log_create(db, user, obj)
            safe_commit(db)
        except SQLAlchemyError as exc:
            self._fail(db, "create", type(obj), exc)
        return obj

    def update(self, db: Session, obj: Any, user: dict | None = None) -> Any:
        try:
            old_values = serialize_committed(obj) if self._is_audited(obj) else None
            db.add(obj)
            db.flush()
            if old_values is not None:
                log_update(db, user, obj, old_values)
            safe_commit(db)
        except SQLAlchemyError as exc:
            self._fail(db, "update", type(obj), exc)
        return obj

    def delete(self, db: Session, obj: Any, user: dict | None = None) -> None:
        try:
            if self._is_audited(obj):
                log_delete(db, user, obj)
            db.delete(obj)
            safe_commit(db)
        except SQLAlchemyError as exc:
            self._fail(db, "delete", type(obj), exc)

    def batch_delete(self, model_class: type, query: ProxyQuery, user: dict | None = None) -> int:
        """Delete every object matched by the query, committing in chunks."""
        db = query.session
        deleted = 0
        try:
            # Fetch everything up front: the chunked commits release the cursor
            for obj in list(query.execute()):
                if self._is_audited(obj):
                    log_delete(db, user, obj)
                db.delete(obj)
                deleted += 1
                if deleted % Limits.BATCH_DELETE_CHUNK == 0:
                    safe_commit(db)
            safe_commit(db)
        except SQLAlchemyError as exc:
            self._fail(db, "batch delete", model_class, exc)

        logger.info("Batch delete finished", model=model_class.__name__, deleted=deleted)
        return deleted

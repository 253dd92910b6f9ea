"""
Centralized exceptions for the CRUD admin.

HTTP-facing errors (404, 403, 400) are HTTPException subclasses that log on
construction. Persistence and configuration failures are plain exceptions:
the controller decides whether to degrade them into flash messages or let
them reach the framework's error page.

Usage:
    from crud_shared.utils.exceptions import NotFoundError, ForbiddenError

    raise NotFoundError("Category", category_id)
    raise ForbiddenError("edit", admin_code="admin.category")
"""

from typing import Any

from fastapi import HTTPException, status

from crud_shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base HTTP exception with automatic logging.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity, route or admin not found (404).

    Usage:
        raise NotFoundError("Category", 123)
        raise NotFoundError("Audit reader", entity_type="Category")
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with id {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Access denied (403).

    Usage:
        raise ForbiddenError("delete")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Access denied for action '{action}'"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class BadRequestError(AppException):
    """
    Malformed or untrusted request (400).

    Usage:
        raise BadRequestError("The csrf token is not valid, CSRF attack?")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# Configuration Errors (surface as 500)
# =============================================================================


class ConfigurationError(RuntimeError):
    """
    The admin is wired incorrectly: unknown batch action, missing handler,
    unknown access action, disallowed export format, duplicate admin code.
    """


class AssociationIntegrityError(ConfigurationError):
    """A child admin's object does not belong to the parent object in the URL."""


# =============================================================================
# Persistence Errors
# =============================================================================


class ModelManagerException(Exception):
    """
    Persistence failed. The underlying driver error is kept as ``previous``
    (and chained as ``__cause__`` by ``raise ... from``).
    """

    def __init__(self, message: str, previous: BaseException | None = None):
        super().__init__(message)
        self.previous = previous


class LockException(Exception):
    """The object was modified concurrently (optimistic lock version mismatch)."""

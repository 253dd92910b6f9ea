"""
Constants shared by the admin controller, the security handler and the templates.
"""

from typing import Final


# =============================================================================
# Roles
# =============================================================================

ROLE_SUPER_ADMIN: Final[str] = "ROLE_SUPER_ADMIN"


# =============================================================================
# Flash levels
# =============================================================================


class FlashLevel:
    """Levels used for session flash messages (match the CSS alert classes)."""

    SUCCESS: Final[str] = "success"
    ERROR: Final[str] = "error"
    INFO: Final[str] = "info"
    WARNING: Final[str] = "warning"


# =============================================================================
# CSRF intentions
# =============================================================================


class CsrfIntention:
    BATCH: Final[str] = "crud_admin.batch"
    DELETE: Final[str] = "crud_admin.delete"
    ACL: Final[str] = "crud_admin.acl"


CSRF_FIELD: Final[str] = "_csrf_token"


# =============================================================================
# Form submit buttons
# =============================================================================


class Buttons:
    """Names of the submit buttons that drive the redirect policy and preview mode."""

    UPDATE_AND_LIST: Final[str] = "btn_update_and_list"
    CREATE_AND_LIST: Final[str] = "btn_create_and_list"
    CREATE_AND_CREATE: Final[str] = "btn_create_and_create"
    UPDATE_AND_EDIT: Final[str] = "btn_update_and_edit"
    CREATE_AND_EDIT: Final[str] = "btn_create_and_edit"
    PREVIEW: Final[str] = "btn_preview"
    PREVIEW_APPROVE: Final[str] = "btn_preview_approve"
    PREVIEW_DECLINE: Final[str] = "btn_preview_decline"


# =============================================================================
# Limits
# =============================================================================


class Limits:
    BATCH_DELETE_CHUNK: Final[int] = 20
    MAX_PER_PAGE: Final[int] = 500

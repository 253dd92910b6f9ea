"""
Catalogue-based message translation.

Messages are looked up by id in the requested domain, then in the default
``CrudAdmin`` domain; an unknown id is returned as is. Parameters use the
``%name%`` placeholder style.
"""

from __future__ import annotations

from typing import Any

DEFAULT_DOMAIN = "CrudAdmin"

DEFAULT_MESSAGES: dict[str, str] = {
    "flash_create_success": 'Item "%name%" has been successfully created.',
    "flash_create_error": 'An error has occurred during the creation of item "%name%".',
    "flash_edit_success": 'Item "%name%" has been successfully updated.',
    "flash_edit_error": 'An error has occurred during update of item "%name%".',
    "flash_delete_success": 'Item "%name%" has been deleted successfully.',
    "flash_delete_error": 'An error has occurred during deletion of item "%name%".',
    "flash_batch_delete_success": "Selected items have been successfully deleted.",
    "flash_batch_delete_error": "An error has occurred during selected items deletion.",
    "flash_batch_empty": "Action aborted. No items were selected.",
    "flash_batch_no_elements_processed": "No items were processed.",
    "flash_acl_edit_success": "ACL has been successfully updated.",
    "flash_lock_error": (
        'Another user has modified item "%name%". Please %link_start%click here%link_end% '
        "to reload the page and apply the changes again."
    ),
    "action_delete": "Delete",
    "title_create": "Create",
    "title_edit": 'Edit "%name%"',
    "title_show": 'Show "%name%"',
    "title_delete": "Confirm deletion",
    "title_batch_confirmation": "Confirm batch action '%action%'",
    "title_history": "History",
    "title_acl": "ACL",
    "message_delete_confirmation": 'Are you sure you want to delete the selected "%object%" element?',
    "message_batch_confirmation": "Are you sure you want to confirm this action and execute it for the selected elements?",
    "message_batch_all_confirmation": "Are you sure you want to confirm this action and execute it for all the elements?",
}


class Translator:
    def __init__(self, catalogues: dict[str, dict[str, str]] | None = None, default_domain: str = DEFAULT_DOMAIN):
        self.default_domain = default_domain
        self.catalogues: dict[str, dict[str, str]] = {default_domain: dict(DEFAULT_MESSAGES)}
        for domain, messages in (catalogues or {}).items():
            self.add_messages(domain, messages)

    def add_messages(self, domain: str, messages: dict[str, str]) -> None:
        self.catalogues.setdefault(domain, {}).update(messages)

    def has(self, message_id: str, domain: str | None = None) -> bool:
        return message_id in self.catalogues.get(domain or self.default_domain, {})

    def trans(self, message_id: str, parameters: dict[str, Any] | None = None, domain: str | None = None) -> str:
        message = None
        for candidate in (domain, self.default_domain):
            if candidate and message_id in self.catalogues.get(candidate, {}):
                message = self.catalogues[candidate][message_id]
                break
        if message is None:
            message = message_id

        for name, value in (parameters or {}).items():
            placeholder = name if name.startswith("%") else f"%{name}%"
            message = message.replace(placeholder, str(value))
        return message

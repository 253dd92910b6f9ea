"""
Per-request values handed to the controller and the admin descriptor.

AdminRequest is a synchronous snapshot of the starlette request (the form
body is awaited once, up front), so the controller can run in the thread pool.
AdminContext carries what changes from one request to the next (subject,
uniqid, list mode, DB session, user) so the admin descriptor itself is never
mutated while serving a request.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from starlette.datastructures import FormData, Headers, QueryParams
from starlette.requests import Request

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from crud_admin.admin.descriptor import Admin


FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
JSON_MEDIA_TYPES = {"application/json", "*/*"}
FALSE_VALUES = {"", "0", "false", "off", "no", "null"}


def is_truthy(value: Any) -> bool:
    """Form flags arrive as strings, so "0" or "false" must read as false."""
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_VALUES
    return bool(value)


@dataclass
class AdminRequest:
    method: str = "GET"
    path: str = "/"
    path_params: dict[str, Any] = field(default_factory=dict)
    query: QueryParams = field(default_factory=QueryParams)
    form: FormData = field(default_factory=FormData)
    headers: Headers = field(default_factory=Headers)
    session: MutableMapping[str, Any] = field(default_factory=dict)

    @classmethod
    async def from_starlette(cls, request: Request) -> AdminRequest:
        form = FormData()
        content_type = request.headers.get("content-type", "")
        if request.method != "GET" and content_type.startswith(FORM_CONTENT_TYPES):
            form = await request.form()

        session: MutableMapping[str, Any] = request.session if "session" in request.scope else {}

        return cls(
            method=request.method.upper(),
            path=request.url.path,
            path_params=dict(request.path_params),
            query=request.query_params,
            form=form,
            headers=request.headers,
            session=session,
        )

    @classmethod
    def build(
        cls,
        method: str = "GET",
        path_params: dict[str, Any] | None = None,
        query: Any = None,
        form: Any = None,
        headers: dict[str, str] | None = None,
        session: MutableMapping[str, Any] | None = None,
    ) -> AdminRequest:
        """Build a request by hand (CLI, tests, sub-requests)."""
        return cls(
            method=method.upper(),
            path_params=dict(path_params or {}),
            query=QueryParams(query or {}),
            form=FormData(form or {}),
            headers=Headers(headers=headers or {}),
            session=session if session is not None else {},
        )

    # -------------------------------------------------------------------------
    # Parameter lookup: path parameters, then query string, then form body
    # -------------------------------------------------------------------------

    def get(self, name: str, default: Any = None) -> Any:
        if name in self.path_params:
            return self.path_params[name]
        if name in self.query:
            return self.query[name]
        if name in self.form:
            return self.form[name]
        return default

    def has(self, name: str) -> bool:
        return name in self.path_params or name in self.query or name in self.form

    def getlist(self, name: str) -> list[str]:
        """Multi-valued parameter, accepting both ``idx`` and ``idx[]`` keys."""
        for key in (f"{name}[]", name):
            values = self.form.getlist(key) or self.query.getlist(key)
            if values:
                return [str(value) for value in values]
        return []

    def has_form(self, name: str) -> bool:
        """True if the body holds ``name`` or any ``name[...]`` field."""
        prefix = f"{name}["
        return any(key == name or key.startswith(prefix) for key in self.form.keys())

    def form_items(self) -> list[tuple[str, Any]]:
        return list(self.form.multi_items())

    # -------------------------------------------------------------------------
    # Transport details
    # -------------------------------------------------------------------------

    @property
    def rest_method(self) -> str:
        """HTTP verb, honouring a ``_method`` override posted with a form."""
        override = self.form.get("_method")
        if self.method == "POST" and override:
            return str(override).upper()
        return self.method

    @property
    def is_xml_http_request(self) -> bool:
        return (
            self.headers.get("x-requested-with") == "XMLHttpRequest"
            or is_truthy(self.get("_xml_http_request", False))
        )

    @property
    def acceptable_content_types(self) -> list[str]:
        accept = self.headers.get("accept")
        if not accept:
            return ["*/*"]
        return [part.split(";", 1)[0].strip().lower() for part in accept.split(",") if part.strip()]

    @property
    def accepts_json(self) -> bool:
        return bool(JSON_MEDIA_TYPES.intersection(self.acceptable_content_types))


@dataclass
class AdminContext:
    admin: Admin
    request: AdminRequest
    db: Session | None = None
    user: dict[str, Any] | None = None
    subject: Any = None
    uniqid: str | None = None
    list_mode: str | None = None
    # The admin serves this request as the child of another admin
    current_child: bool = False

    @property
    def roles(self) -> list[str]:
        if not self.user:
            return []
        return list(self.user.get("roles", []))

    @property
    def username(self) -> str | None:
        if not self.user:
            return None
        return self.user.get("sub")

    def for_admin(self, admin: Admin, **changes: Any) -> AdminContext:
        """Context for another admin (parent, child, pool sibling) in the same request."""
        values: dict[str, Any] = {"subject": None, "uniqid": None, "list_mode": None, "current_child": False}
        values.update(changes)
        return replace(self, admin=admin, **values)

    def parent_context(self) -> AdminContext | None:
        if self.admin.parent is None:
            return None
        return self.for_admin(self.admin.parent, current_child=self.admin.parent.is_child)

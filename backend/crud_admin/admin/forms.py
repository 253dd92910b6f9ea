"""
Admin forms backed by pydantic schemas.

An AdminForm binds a schema to a model object: the object's current values
prefill the form, a submitted request is validated through the schema, and
the validated values are written back onto the object.
"""

from __future__ import annotations

import typing
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from crud_admin.admin.context import AdminRequest

SUBMIT_METHODS = {"POST", "PUT", "PATCH"}
LOCK_FIELD = "_lock_version"
SUBMIT_MARKER = "_form"


def _input_type(annotation: Any) -> str:
    types = typing.get_args(annotation) or (annotation,)
    if bool in types:
        return "checkbox"
    if int in types or float in types:
        return "number"
    return "text"


def _is_bool(annotation: Any) -> bool:
    return bool in (typing.get_args(annotation) or (annotation,))


@dataclass
class FieldView:
    name: str
    label: str
    value: Any
    input_type: str
    required: bool
    errors: list[str] = field(default_factory=list)
    mask: dict[str, Any] | None = None


@dataclass
class FormView:
    fields: list[FieldView]
    errors: list[str]
    lock_version: Any = None


@dataclass
class ChoiceFieldMask:
    """
    A choice field whose value decides which other fields are shown.

    ``mask_map`` maps each choice value to the field names it reveals. Field
    names are sanitised for use as DOM ids: ``__`` becomes ``____`` and ``.``
    becomes ``__``.
    """

    name: str
    choices: dict[str, str]
    mask_map: dict[str, list[str]] = field(default_factory=dict)

    @staticmethod
    def sanitize(field_name: str) -> str:
        return field_name.replace("__", "____").replace(".", "__")

    def build_view(self) -> dict[str, Any]:
        sanitized: dict[str, list[str]] = {}
        all_fields: list[str] = []
        for value, field_names in self.mask_map.items():
            for field_name in field_names:
                name = self.sanitize(field_name)
                sanitized.setdefault(value, []).append(name)
                if name not in all_fields:
                    all_fields.append(name)
        return {
            "choices": dict(self.choices),
            "map": sanitized,
            "all_fields": all_fields,
        }


class AdminForm:
    def __init__(
        self,
        schema: type[BaseModel],
        fields: list[str] | None = None,
        labels: dict[str, str] | None = None,
        masks: list[ChoiceFieldMask] | None = None,
        version_attribute: str | None = None,
    ):
        self.schema = schema
        self.fields = list(fields or schema.model_fields.keys())
        self.labels = labels or {}
        self.masks = {mask.name: mask for mask in masks or []}
        self.version_attribute = version_attribute
        self.data: Any = None
        self.values: dict[str, Any] = {}
        self.validated: BaseModel | None = None
        self.lock_version: Any = None
        self._submitted = False
        self._submitted_fields: set[str] = set()
        self._errors: list[tuple[str | None, str]] = []

    def set_data(self, obj: Any) -> None:
        self.data = obj
        self.values = {name: getattr(obj, name, None) for name in self.fields}
        if self.version_attribute:
            self.lock_version = getattr(obj, self.version_attribute, None)

    def handle_request(self, request: AdminRequest) -> None:
        if request.rest_method not in SUBMIT_METHODS:
            return
        # Unchecked checkboxes are not posted, the hidden marker field is
        if SUBMIT_MARKER not in request.form and not any(name in request.form for name in self.fields):
            return

        self._submitted = True
        raw: dict[str, Any] = {}
        for name in self.fields:
            model_field = self.schema.model_fields.get(name)
            if model_field is not None and _is_bool(model_field.annotation):
                raw[name] = name in request.form and request.form.get(name) not in ("", "0", "false")
            elif name in request.form:
                value = request.form.get(name)
                raw[name] = None if value == "" and model_field is not None and not model_field.is_required() else value
        self.values.update(raw)
        self._submitted_fields = set(raw)

        if LOCK_FIELD in request.form:
            self.lock_version = request.form.get(LOCK_FIELD)

        try:
            self.validated = self.schema.model_validate(raw)
        except ValidationError as exc:
            for error in exc.errors():
                loc = ".".join(str(part) for part in error["loc"]) or None
                self._errors.append((loc, error["msg"]))

    def is_submitted(self) -> bool:
        return self._submitted

    def is_valid(self) -> bool:
        return self._submitted and not self._errors

    def add_error(self, message: str, field_name: str | None = None) -> None:
        self._errors.append((field_name, message))

    def get_errors(self) -> list[str]:
        return [f"{loc}: {message}" if loc else message for loc, message in self._errors]

    def get_data(self) -> Any:
        """The bound object, updated with the validated values when the form is valid."""
        if self.validated is not None and self.is_valid():
            for name, value in self.validated.model_dump(include=self._submitted_fields).items():
                setattr(self.data, name, value)
        return self.data

    def create_view(self) -> FormView:
        field_errors: dict[str, list[str]] = {}
        global_errors: list[str] = []
        for loc, message in self._errors:
            if loc and loc.split(".", 1)[0] in self.fields:
                field_errors.setdefault(loc.split(".", 1)[0], []).append(message)
            else:
                global_errors.append(message)

        views = []
        for name in self.fields:
            model_field = self.schema.model_fields.get(name)
            annotation = model_field.annotation if model_field is not None else str
            mask = self.masks.get(name)
            views.append(FieldView(
                name=name,
                label=self.labels.get(name) or (model_field.title if model_field and model_field.title else name.replace("_", " ").capitalize()),
                value=self.values.get(name),
                input_type="choice_mask" if mask else _input_type(annotation),
                required=bool(model_field and model_field.is_required()),
                errors=field_errors.get(name, []),
                mask=mask.build_view() if mask else None,
            ))
        return FormView(fields=views, errors=global_errors, lock_version=self.lock_version)

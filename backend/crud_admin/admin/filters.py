"""
Datagrid filter types.

Filter types are registered with a FilterTypeRegistry under their class path
and, optionally, a short alias. Admins declare filters by alias or class:

    filter_fields = {"name": "string", "active": "boolean"}
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import inspect as sa_inspect

from crud_shared.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from crud_admin.admin.datagrid import ProxyQuery


TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class Filter:
    """Base filter: one model column, one value."""

    alias: ClassVar[str | None] = None
    input_type: ClassVar[str] = "text"

    def __init__(self, name: str, field_name: str | None = None, label: str | None = None, **options: Any):
        self.name = name
        self.field_name = field_name or name
        self.label = label or name.replace("_", " ").capitalize()
        self.options = options

    def column(self, query: ProxyQuery):
        mapper = sa_inspect(query.model_class)
        if self.field_name not in mapper.columns:
            raise ConfigurationError(
                f'Cannot filter {query.model_class.__name__} on unknown column "{self.field_name}"'
            )
        return getattr(query.model_class, self.field_name)

    def normalize(self, value: Any) -> Any:
        if isinstance(value, dict):
            value = value.get("value")
        if value is None or value == "":
            return None
        return value

    def is_active(self, value: Any) -> bool:
        return self.normalize(value) is not None

    def apply(self, query: ProxyQuery, value: Any) -> None:
        raise NotImplementedError

    @classmethod
    def type_name(cls) -> str:
        return f"{cls.__module__}.{cls.__qualname__}"


class StringFilter(Filter):
    """Case-insensitive "contains" match."""

    alias = "string"

    def apply(self, query: ProxyQuery, value: Any) -> None:
        value = self.normalize(value)
        if value is not None:
            query.where(self.column(query).icontains(str(value), autoescape=True))


class NumberFilter(Filter):
    alias = "number"
    input_type = "number"

    def normalize(self, value: Any) -> Any:
        value = super().normalize(value)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            try:
                return float(value)
            except (TypeError, ValueError):
                return None

    def apply(self, query: ProxyQuery, value: Any) -> None:
        value = self.normalize(value)
        if value is not None:
            query.where(self.column(query) == value)


class BooleanFilter(Filter):
    alias = "boolean"
    input_type = "select"

    def normalize(self, value: Any) -> Any:
        value = super().normalize(value)
        if value is None:
            return None
        text = str(value).strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
        return None

    def apply(self, query: ProxyQuery, value: Any) -> None:
        value = self.normalize(value)
        if value is not None:
            query.where(self.column(query).is_(value))


class ChoiceFilter(Filter):
    alias = "choice"
    input_type = "select"

    @property
    def choices(self) -> dict[str, str]:
        return dict(self.options.get("choices", {}))

    def normalize(self, value: Any) -> Any:
        value = super().normalize(value)
        if value is not None and self.choices and str(value) not in self.choices:
            return None
        return value

    def apply(self, query: ProxyQuery, value: Any) -> None:
        value = self.normalize(value)
        if value is not None:
            query.where(self.column(query) == value)


class FilterTypeRegistry:
    """Filter types by class path and alias."""

    def __init__(self):
        self._types: dict[str, type[Filter]] = {}
        self._aliases: dict[str, str] = {}

    def add(self, filter_class: type[Filter], alias: str | None = None) -> None:
        type_name = filter_class.type_name()
        self._types[type_name] = filter_class

        alias = alias or filter_class.alias
        if alias:
            registered = self._aliases.get(alias)
            if registered is not None and registered != type_name:
                raise ConfigurationError(
                    f'Filter alias "{alias}" is already registered for {registered}'
                )
            self._aliases[alias] = type_name

    def has(self, type_or_alias: str | type[Filter]) -> bool:
        try:
            self.resolve(type_or_alias)
        except ConfigurationError:
            return False
        return True

    def resolve(self, type_or_alias: str | type[Filter]) -> type[Filter]:
        if isinstance(type_or_alias, type):
            if not issubclass(type_or_alias, Filter):
                raise ConfigurationError(f"{type_or_alias!r} is not a filter type")
            return type_or_alias

        type_name = self._aliases.get(type_or_alias, type_or_alias)
        try:
            return self._types[type_name]
        except KeyError:
            raise ConfigurationError(f'No filter type registered for "{type_or_alias}"') from None

    def create(self, type_or_alias: str | type[Filter], name: str, **options: Any) -> Filter:
        return self.resolve(type_or_alias)(name, **options)


def default_filter_registry() -> FilterTypeRegistry:
    registry = FilterTypeRegistry()
    for filter_class in (StringFilter, NumberFilter, BooleanFilter, ChoiceFilter):
        registry.add(filter_class)
    return registry

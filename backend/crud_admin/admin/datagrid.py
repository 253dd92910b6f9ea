"""
Datagrid: the list query plus the filter values bound from the request.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from crud_admin.admin.filters import Filter
from crud_shared.config.constants import Limits


class ProxyQuery:
    """
    Mutable wrapper around a SQLAlchemy Select.

    Filters add criteria with where(); paging and sorting are kept aside and
    only applied when the statement is built, so batch actions can reset
    first_result/max_results to act on the whole matching set.
    """

    def __init__(self, session: Session, model_class: type, statement: Select | None = None):
        self.session = session
        self.model_class = model_class
        self.statement = statement if statement is not None else select(model_class)
        self.first_result: int | None = None
        self.max_results: int | None = None
        self.sort_by: str | None = None
        self.sort_order: str = "ASC"

    def where(self, *criteria: Any) -> ProxyQuery:
        self.statement = self.statement.where(*criteria)
        return self

    def get_statement(self) -> Select:
        statement = self.statement
        if self.sort_by and self.sort_by in sa_inspect(self.model_class).columns:
            column = getattr(self.model_class, self.sort_by)
            statement = statement.order_by(column.desc() if self.sort_order == "DESC" else column.asc())
        if self.first_result is not None:
            statement = statement.offset(self.first_result)
        if self.max_results is not None:
            statement = statement.limit(self.max_results)
        return statement

    def execute(self) -> list[Any]:
        return list(self.session.scalars(self.get_statement()).all())

    def count(self) -> int:
        subquery = self.statement.order_by(None).subquery()
        return self.session.scalar(select(func.count()).select_from(subquery)) or 0

    def __iter__(self) -> Iterator[Any]:
        return iter(self.session.scalars(self.get_statement()))


@dataclass
class Pager:
    page: int
    per_page: int
    total: int
    results: list[Any] = field(default_factory=list)

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.last_page

    @property
    def pages(self) -> range:
        return range(1, self.last_page + 1)


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class Datagrid:
    def __init__(self, query: ProxyQuery, filters: dict[str, Filter], values: dict[str, Any]):
        self.query = query
        self.filters = filters
        self.values = values
        self.pager: Pager | None = None
        self._applied = False

    def _apply_filters(self) -> None:
        if self._applied:
            return
        for name, filter_ in self.filters.items():
            if name in self.values:
                filter_.apply(self.query, self.values[name])
        self.query.sort_by = self.values.get("_sort_by") or None
        self.query.sort_order = "DESC" if str(self.values.get("_sort_order", "ASC")).upper() == "DESC" else "ASC"
        self._applied = True

    @property
    def page(self) -> int:
        return max(1, _to_int(self.values.get("_page"), 1))

    @property
    def per_page(self) -> int:
        per_page = _to_int(self.values.get("_per_page"), 25)
        return min(max(1, per_page), Limits.MAX_PER_PAGE)

    def build_pager(self) -> Pager:
        self._apply_filters()
        if self.pager is None:
            self.query.first_result = (self.page - 1) * self.per_page
            self.query.max_results = self.per_page
            self.pager = Pager(page=self.page, per_page=self.per_page, total=self.query.count())
        return self.pager

    def get_query(self) -> ProxyQuery:
        self.build_pager()
        return self.query

    def get_results(self) -> list[Any]:
        pager = self.build_pager()
        if not pager.results:
            pager.results = self.query.execute()
        return pager.results

    def has_active_filters(self) -> bool:
        return any(
            filter_.is_active(self.values.get(name))
            for name, filter_ in self.filters.items()
        )

    def create_filter_view(self) -> list[dict[str, Any]]:
        view = []
        for name, filter_ in self.filters.items():
            value = filter_.normalize(self.values.get(name))
            view.append({
                "name": name,
                "label": filter_.label,
                "input_type": filter_.input_type,
                "value": "" if value is None else value,
                "choices": filter_.options.get("choices", {}),
                "active": value is not None,
            })
        return view

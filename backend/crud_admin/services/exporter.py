"""
Data export: streams the rows of an admin's datagrid as CSV, JSON or XML.
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from typing import TYPE_CHECKING, Any
from xml.sax.saxutils import escape

from fastapi.responses import StreamingResponse

from crud_shared.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from crud_admin.admin.descriptor import Admin

Row = dict[str, Any]


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def write_csv(rows: Iterable[Row]) -> Iterator[str]:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    header_written = False
    for row in rows:
        if not header_written:
            writer.writerow(list(row.keys()))
            header_written = True
        writer.writerow([_text(value) for value in row.values()])
        yield buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
    if buffer.getvalue():
        yield buffer.getvalue()


def write_json(rows: Iterable[Row]) -> Iterator[str]:
    yield "["
    for position, row in enumerate(rows):
        yield ("," if position else "") + json.dumps(row, default=_text)
    yield "]"


def write_xml(rows: Iterable[Row]) -> Iterator[str]:
    yield '<?xml version="1.0" ?>\n<datas>\n'
    for row in rows:
        yield "  <data>\n"
        for name, value in row.items():
            tag = name.replace(".", "_")
            yield f"    <{tag}>{escape(_text(value))}</{tag}>\n"
        yield "  </data>\n"
    yield "</datas>\n"


class Exporter:
    WRITERS: dict[str, tuple[Callable[[Iterable[Row]], Iterator[str]], str]] = {
        "csv": (write_csv, "text/csv"),
        "json": (write_json, "application/json"),
        "xml": (write_xml, "text/xml"),
    }

    def get_available_formats(self) -> list[str]:
        return list(self.WRITERS)

    def get_response(self, fmt: str, filename: str, rows: Iterable[Row]) -> StreamingResponse:
        if fmt not in self.WRITERS:
            raise ConfigurationError(f'Export format "{fmt}" is not supported')
        writer, media_type = self.WRITERS[fmt]
        return StreamingResponse(
            writer(rows),
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )


class AdminExporter:
    def __init__(self, exporter: Exporter | None = None):
        self.exporter = exporter or Exporter()

    def get_available_formats(self, admin: Admin) -> list[str]:
        supported = self.exporter.get_available_formats()
        return [fmt for fmt in admin.get_export_formats() if fmt in supported]

    def get_export_filename(self, admin: Admin, fmt: str) -> str:
        stamp = datetime.now().strftime("%Y_%m_%d_%H_%M_%S")
        return f"export_{admin.model_class.__name__.lower()}_{stamp}.{fmt}"

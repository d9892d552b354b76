"""
Excel export helper wrapping xlsxwriter.

``ExcelExporter`` builds a styled Conecta2 workbook in memory and returns
its bytes for streaming through FastAPI's ``StreamingResponse``.

Usage example::

    exporter = ExcelExporter(title="Solicitudes de compra", filters={"Estado": "Pendiente"})
    exporter.add_header()
    exporter.add_summary({"Solicitudes": 12, "Total PEN": 5400.0})
    exporter.add_data_table(headers, rows, numeric_cols={6, 7})
    file_bytes = exporter.finalize()

Column widths follow the longest value per column, capped at 60
characters.  Amounts use the ``#,##0.00`` format and data rows alternate
a light-grey fill.
"""

from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Any, Sequence

import xlsxwriter

_COLOR_PRIMARY = "#2563eb"
_COLOR_HEADER_BG = "#1E3A5F"
_COLOR_WHITE = "#FFFFFF"
_COLOR_LIGHT_GREY = "#F3F4F6"
_COLOR_BORDER = "#E5E7EB"

_MAX_COL_WIDTH = 60
_MIN_COL_WIDTH = 8
_MONEY = "#,##0.00"


class ExcelExporter:
    """Single-sheet workbook: title block, optional summary, data table.

    Args:
        title: Title shown in the merged header row.
        filters: Applied filters as ``{label: value}``, listed under the title.
        sheet_name: Worksheet tab name.
    """

    def __init__(
        self,
        title: str,
        filters: dict[str, str] | None = None,
        sheet_name: str = "Datos",
    ) -> None:
        self._title = title
        self._filters = filters or {}
        self._buffer = io.BytesIO()
        self._workbook = xlsxwriter.Workbook(self._buffer, {"in_memory": True})
        self._worksheet = self._workbook.add_worksheet(sheet_name)
        self._row = 0
        self._width = 6
        self._formats = self._build_formats()

    def _build_formats(self) -> dict[str, Any]:
        wb = self._workbook
        cell = {"font_size": 9, "valign": "vcenter", "border": 1, "border_color": _COLOR_BORDER}
        return {
            "title": wb.add_format({
                "bold": True,
                "font_size": 16,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_PRIMARY,
                "align": "center",
                "valign": "vcenter",
            }),
            "subtitle": wb.add_format({
                "font_size": 10,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_HEADER_BG,
                "align": "center",
            }),
            "filter_key": wb.add_format({"bold": True, "font_size": 9, "bg_color": "#E5E7EB", "align": "right"}),
            "filter_value": wb.add_format({"font_size": 9, "bg_color": "#F9FAFB"}),
            "summary_label": wb.add_format({
                "bold": True,
                "font_size": 10,
                "bg_color": "#EFF6FF",
                "align": "center",
                "border": 1,
                "border_color": "#BFDBFE",
            }),
            "summary_value": wb.add_format({
                "bold": True,
                "font_size": 12,
                "font_color": _COLOR_PRIMARY,
                "bg_color": "#EFF6FF",
                "align": "center",
                "num_format": _MONEY,
                "border": 1,
                "border_color": "#BFDBFE",
            }),
            "col_header": wb.add_format({
                "bold": True,
                "font_size": 10,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_HEADER_BG,
                "align": "center",
                "valign": "vcenter",
                "border": 1,
                "text_wrap": True,
            }),
            "text": wb.add_format({**cell, "bg_color": _COLOR_WHITE}),
            "text_alt": wb.add_format({**cell, "bg_color": _COLOR_LIGHT_GREY}),
            "number": wb.add_format({**cell, "bg_color": _COLOR_WHITE, "align": "right", "num_format": _MONEY}),
            "number_alt": wb.add_format({**cell, "bg_color": _COLOR_LIGHT_GREY, "align": "right", "num_format": _MONEY}),
        }

    def add_header(self) -> "ExcelExporter":
        ws = self._worksheet
        last_col = self._width - 1

        ws.set_row(self._row, 30)
        ws.merge_range(self._row, 0, self._row, last_col, f"Conecta2 · {self._title}", self._formats["title"])
        self._row += 1

        generated = datetime.now(timezone.utc).strftime("%d/%m/%Y %H:%M UTC")
        ws.merge_range(self._row, 0, self._row, last_col, f"Generado: {generated}", self._formats["subtitle"])
        self._row += 1

        for key, value in self._filters.items():
            ws.write(self._row, 0, key, self._formats["filter_key"])
            ws.merge_range(self._row, 1, self._row, last_col, value, self._formats["filter_value"])
            self._row += 1

        self._row += 1
        return self

    def add_summary(self, values: dict[str, Any]) -> "ExcelExporter":
        """Write ``{label: value}`` pairs as a label row over a value row."""
        ws = self._worksheet
        for col, (label, value) in enumerate(values.items()):
            ws.write(self._row, col, label, self._formats["summary_label"])
            ws.write(self._row + 1, col, value, self._formats["summary_value"])
        self._row += 3
        return self

    def add_data_table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        numeric_cols: set[int] | None = None,
    ) -> "ExcelExporter":
        """Write the table with alternating shading and auto-sized columns.

        Args:
            headers: Column titles.
            rows: Data rows, each as long as ``headers``.
            numeric_cols: Zero-based indices written right-aligned with the
                          money format.
        """
        ws = self._worksheet
        numeric_cols = numeric_cols or set()
        widths = [len(str(h)) for h in headers]

        ws.set_row(self._row, 20)
        for col, header in enumerate(headers):
            ws.write(self._row, col, header, self._formats["col_header"])
        self._row += 1

        for index, row in enumerate(rows):
            alt = index % 2 == 1
            for col, value in enumerate(row):
                if col in numeric_cols:
                    fmt = self._formats["number_alt" if alt else "number"]
                else:
                    fmt = self._formats["text_alt" if alt else "text"]
                ws.write(self._row, col, value if value is not None else "", fmt)
                widths[col] = min(_MAX_COL_WIDTH, max(widths[col], len(str(value or ""))))
            self._row += 1

        for col, width in enumerate(widths):
            ws.set_column(col, col, max(width + 2, _MIN_COL_WIDTH))
        ws.freeze_panes(self._row - len(rows), 0)
        return self

    def finalize(self) -> bytes:
        """Close the workbook and return the ``.xlsx`` bytes."""
        self._workbook.close()
        self._buffer.seek(0)
        return self._buffer.read()

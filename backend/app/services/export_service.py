"""
Export Service

Turns list-endpoint rows into downloadable CSV or Excel files.
"""
import io
import logging
from typing import List, Dict, Tuple, Sequence
from datetime import datetime, date
from decimal import Decimal

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter

from app.core.errors import ValidationFailed

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv"
EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPORT_FORMATS = ("csv", "excel")


def _cell_value(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        # Excel cannot store timezone-aware datetimes
        return value.replace(tzinfo=None)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return value


def _header(column: str) -> str:
    return column.replace("_", " ").title()


def _to_csv(rows: List[Dict], columns: Sequence[str]) -> bytes:
    df = pd.DataFrame(
        [[_cell_value(row.get(col)) for col in columns] for row in rows],
        columns=[_header(col) for col in columns]
    )
    return df.to_csv(index=False).encode("utf-8")


def _to_excel(rows: List[Dict], columns: Sequence[str], sheet_title: str) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True)

    for col_num, column in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_num, value=_header(column))
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center', vertical='center')

    for row_num, row in enumerate(rows, 2):
        for col_num, column in enumerate(columns, 1):
            value = _cell_value(row.get(column))
            cell = ws.cell(row=row_num, column=col_num, value=value)
            if isinstance(value, (datetime, date)):
                cell.number_format = 'yyyy-mm-dd hh:mm' if isinstance(value, datetime) else 'yyyy-mm-dd'

    for col_num, column in enumerate(columns, 1):
        longest = max([len(_header(column))] + [len(str(row.get(column) or "")) for row in rows])
        ws.column_dimensions[get_column_letter(col_num)].width = min(50, longest + 2)

    # Freeze header row
    ws.freeze_panes = 'A2'

    excel_file = io.BytesIO()
    wb.save(excel_file)
    return excel_file.getvalue()


def export_rows(
    rows: List[Dict],
    columns: Sequence[str],
    fmt: str = "csv",
    sheet_title: str = "Export"
) -> Tuple[bytes, str, str]:
    """
    Render rows as a file.

    Returns:
        (content, media_type, file extension)

    Raises:
        ValidationFailed: for formats other than csv / excel
    """
    fmt = (fmt or "").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValidationFailed(
            f"Unsupported export format: {fmt}",
            errors=[{"field": "format", "message": "Must be one of: csv, excel"}]
        )

    logger.info(f"Exporting {len(rows)} rows as {fmt}")

    if fmt == "csv":
        return _to_csv(rows, columns), CSV_MEDIA_TYPE, "csv"
    return _to_excel(rows, columns, sheet_title), EXCEL_MEDIA_TYPE, "xlsx"


def export_filename(prefix: str, extension: str) -> str:
    return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{extension}"

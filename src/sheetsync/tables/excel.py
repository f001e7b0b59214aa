"""Workbook table source backed by openpyxl."""

from __future__ import annotations

import datetime as dt
import re
import zipfile
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from sheetsync.core.errors import SourceError
from sheetsync.tables.base import RowSet


# Quoted text, escapes, bracketed codes and padding directives carry no digits
_FORMAT_LITERALS_RE = re.compile(r'"[^"]*"|\\.|\[[^\]]*\]|_.|\*.')
_CURRENCY_RE = re.compile(r"\[\$([^\]-]*)(?:-[^\]]*)?\]|([$€£¥])")
_DECIMALS_RE = re.compile(r"\.([0#]+)")


def format_number(value: int | float, number_format: str) -> str | None:
    """Render a number under a fixed, percent or currency format.

    Only the positive section of the format is honored. Returns None for
    General, text, scientific and fraction formats, which fall back to the
    plain rendering.
    """
    section = number_format.split(";")[0]
    pattern = _FORMAT_LITERALS_RE.sub("", section)
    if not any(ch in pattern for ch in "0#") or "E" in pattern.upper() or "/" in pattern:
        return None

    number = Decimal(repr(value))
    percent = "%" in pattern
    if percent:
        number *= 100

    decimals = _DECIMALS_RE.search(pattern)
    min_places = decimals.group(1).count("0") if decimals else 0
    max_places = len(decimals.group(1)) if decimals else 0
    try:
        number = number.quantize(Decimal(1).scaleb(-max_places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None

    grouping = "," if "," in pattern.split(".")[0] else ""
    text = f"{abs(number):{grouping}.{max_places}f}"
    if max_places > min_places:
        whole, _, fraction = text.partition(".")
        fraction = fraction.rstrip("0").ljust(min_places, "0")
        text = f"{whole}.{fraction}" if fraction else whole
    if percent:
        text += "%"

    currency = _CURRENCY_RE.search(section)
    if currency is not None:
        symbol = currency.group(1) or currency.group(2)
        first_digit = min(i for i in (section.find("0"), section.find("#")) if i >= 0)
        text = f"{symbol}{text}" if currency.start() < first_digit else f"{text} {symbol}"

    return f"-{text}" if number < 0 else text


def cell_to_text(value: Any, number_format: str | None = None) -> str:
    """Coerce a cell value to the text a user would see in the cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if number_format and isinstance(value, (int, float)):
        formatted = format_number(value, number_format)
        if formatted is not None:
            return formatted
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, dt.datetime):
        # Midnight datetimes are plain dates in the sheet
        if value.time() == dt.time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        total = int(value.total_seconds())
        hours, rem = divmod(total, 3600)
        minutes, seconds = divmod(rem, 60)
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return str(value)


def _trim_row(cells: list[str]) -> list[str]:
    end = len(cells)
    while end and cells[end - 1] == "":
        end -= 1
    return cells[:end]


@dataclass
class ExcelTableSource:
    """Reads sheets from .xlsx/.xlsm workbooks.

    Cached formula results are read (``data_only``), so the values match what
    the exporting application last saved. Trailing empty cells and rows are
    dropped, since worksheets often report a larger used range than the data.
    """

    logger: structlog.stdlib.BoundLogger = field(
        default_factory=lambda: structlog.get_logger().bind(logger="excel")
    )

    def read_table(self, path: Path, table: str) -> RowSet:
        self.logger.debug("sheet_read_started", path=str(path), table=table)

        try:
            workbook = load_workbook(path, read_only=True, data_only=True)
        except FileNotFoundError as e:
            raise SourceError.file_unreadable(str(path), "file not found") from e
        except PermissionError as e:
            raise SourceError.file_unreadable(str(path), "permission denied") from e
        except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
            raise SourceError.file_unreadable(str(path), f"not a valid workbook ({e})") from e
        except OSError as e:
            raise SourceError.file_unreadable(str(path), e.strerror or str(e)) from e

        try:
            if table not in workbook.sheetnames:
                raise SourceError.table_not_found(str(path), table)
            worksheet = workbook[table]
            try:
                rows = [
                    _trim_row([cell_to_text(cell.value, cell.number_format) for cell in row])
                    for row in worksheet.iter_rows()
                ]
            except (ValueError, TypeError, KeyError) as e:
                raise SourceError.parse_error(str(path), table, str(e)) from e
        finally:
            try:
                workbook.close()
            except OSError as e:
                self.logger.warning("workbook_close_failed", path=str(path), error=str(e))

        while rows and not rows[-1]:
            rows.pop()

        self.logger.info("sheet_read", path=str(path), table=table, rows=len(rows))
        return rows

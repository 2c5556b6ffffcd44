from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Iterable

from ledgerdesk.domain.errors import SpreadsheetProbeError, UnsupportedFileTypeError
from ledgerdesk.domain.models import ColumnProbeResult
from ledgerdesk.domain.selection_rules import ACCEPTED_EXTENSIONS
from ledgerdesk.ports.spreadsheet_port import SpreadsheetPort


class ExcelSpreadsheetProbe(SpreadsheetPort):
    """Reads headers and row counts from the first worksheet of .xlsx/.xls files."""

    def probe(self, path: Path) -> ColumnProbeResult:
        self._require_supported(path.name)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise SpreadsheetProbeError(f"Cannot read {path.name}: {exc}") from exc
        return self.probe_bytes(data, path.name)

    def probe_bytes(self, data: bytes, file_name: str) -> ColumnProbeResult:
        suffix = self._require_supported(file_name)
        if suffix == ".xlsx":
            rows = self._read_xlsx_rows(data, file_name)
        else:
            rows = self._read_xls_rows(data, file_name)
        return summarize_rows(rows)

    @staticmethod
    def _require_supported(file_name: str) -> str:
        suffix = Path(file_name).suffix.lower()
        if suffix not in ACCEPTED_EXTENSIONS:
            raise UnsupportedFileTypeError([file_name], ACCEPTED_EXTENSIONS)
        return suffix

    @staticmethod
    def _read_xlsx_rows(data: bytes, file_name: str) -> list[tuple[Any, ...]]:
        import openpyxl

        try:
            workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except Exception as exc:
            raise SpreadsheetProbeError(f"Cannot read {file_name}: {exc}") from exc
        try:
            if not workbook.worksheets:
                return []
            sheet = workbook.worksheets[0]
            return [tuple(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

    @staticmethod
    def _read_xls_rows(data: bytes, file_name: str) -> list[tuple[Any, ...]]:
        import xlrd

        try:
            workbook = xlrd.open_workbook(file_contents=data, on_demand=True)
        except Exception as exc:
            raise SpreadsheetProbeError(f"Cannot read {file_name}: {exc}") from exc
        try:
            if workbook.nsheets == 0:
                return []
            sheet = workbook.sheet_by_index(0)
            return [tuple(sheet.row_values(index)) for index in range(sheet.nrows)]
        finally:
            workbook.release_resources()


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def summarize_rows(rows: Iterable[tuple[Any, ...]]) -> ColumnProbeResult:
    """Row 1 becomes the column list.

    Every row between the header and the last non-blank row counts as a data
    row, blank ones included. Trailing blank rows are ignored.
    """

    iterator = iter(rows)
    header = next(iterator, None)
    if header is None:
        return ColumnProbeResult(columns=[], row_count=0)
    columns = [str(value).strip() for value in header if not _is_blank(value)]
    row_count = 0
    for position, row in enumerate(iterator, start=1):
        if not all(_is_blank(value) for value in row):
            row_count = position
    return ColumnProbeResult(columns=columns, row_count=row_count)

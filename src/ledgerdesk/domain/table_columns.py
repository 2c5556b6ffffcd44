from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from ledgerdesk.domain.models import Session, UploadedFile

T = TypeVar("T")


class CellKind(str, Enum):
    """How a grid cell is rendered: plain text, a select over options, or derived."""

    TEXT = "TEXT"
    ENUM_SELECT = "ENUM_SELECT"
    COMPUTED = "COMPUTED"


@dataclass(frozen=True)
class ColumnDescriptor(Generic[T]):
    key: str
    header: str
    kind: CellKind
    accessor: Callable[[T], Any]
    formatter: Callable[[Any], str] = str
    options: Callable[[T], list[str]] | None = None
    editable: bool = False

    def value(self, row: T) -> Any:
        return self.accessor(row)

    def display(self, row: T) -> str:
        return self.formatter(self.accessor(row))

    def choices(self, row: T) -> list[str]:
        if self.kind is not CellKind.ENUM_SELECT or self.options is None:
            return []
        return self.options(row)


def format_count(value: Any) -> str:
    return f"{int(value or 0):,}"


def format_amount(value: Any) -> str:
    if value is None:
        return "-"
    return f"{float(value):,.0f}"


def format_optional(value: Any) -> str:
    return str(value) if value else "-"


def format_accounts(values: Any) -> str:
    if not values:
        return "-"
    items = list(values)
    return f"{', '.join(items)} ({len(items)})"


def format_flag(value: Any) -> str:
    return "yes" if value else "no"


FILE_COLUMNS: list[ColumnDescriptor[UploadedFile]] = [
    ColumnDescriptor("file_name", "File", CellKind.TEXT, lambda f: f.file_name),
    ColumnDescriptor("row_count", "Rows", CellKind.TEXT, lambda f: f.row_count, format_count),
    ColumnDescriptor(
        "account_column_name",
        "Account column",
        CellKind.ENUM_SELECT,
        lambda f: f.account_column_name,
        format_optional,
        options=lambda f: list(f.detected_columns),
        editable=True,
    ),
    ColumnDescriptor(
        "amount_column_name",
        "Amount column",
        CellKind.ENUM_SELECT,
        lambda f: f.amount_column_name,
        format_optional,
        options=lambda f: list(f.detected_columns),
        editable=True,
    ),
    ColumnDescriptor(
        "account_contents",
        "Accounts",
        CellKind.COMPUTED,
        lambda f: f.account_contents,
        format_accounts,
    ),
    ColumnDescriptor(
        "total_amount", "Total amount", CellKind.COMPUTED, lambda f: f.total_amount, format_amount
    ),
    ColumnDescriptor("status", "Status", CellKind.TEXT, lambda f: f.status.value),
    ColumnDescriptor("session_id", "Session", CellKind.TEXT, lambda f: f.session_id, format_optional),
]


SESSION_COLUMNS: list[ColumnDescriptor[Session]] = [
    ColumnDescriptor(
        "session_name", "Session", CellKind.TEXT, lambda s: s.session_name, editable=True
    ),
    ColumnDescriptor(
        "worker_name", "Worker", CellKind.TEXT, lambda s: s.worker_name, format_optional, editable=True
    ),
    ColumnDescriptor(
        "account_name",
        "Account",
        CellKind.COMPUTED,
        lambda s: s.account_names[0] if s.account_names else None,
        format_optional,
    ),
    ColumnDescriptor("total_files", "Files", CellKind.TEXT, lambda s: s.total_files, format_count),
    ColumnDescriptor(
        "total_row_count", "Rows", CellKind.TEXT, lambda s: s.total_row_count, format_count
    ),
    ColumnDescriptor(
        "total_amount", "Total amount", CellKind.TEXT, lambda s: s.total_amount, format_amount
    ),
    ColumnDescriptor("state", "State", CellKind.TEXT, lambda s: s.state),
    ColumnDescriptor(
        "downloadable",
        "Result",
        CellKind.COMPUTED,
        lambda s: s.is_completed and bool(s.export_path),
        format_flag,
    ),
]


def render_rows(columns: list[ColumnDescriptor[T]], rows: list[T]) -> list[dict[str, str]]:
    return [{column.header: column.display(row) for column in columns} for row in rows]

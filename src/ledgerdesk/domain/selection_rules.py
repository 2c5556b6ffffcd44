from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from ledgerdesk.domain.errors import (
    EmptySelectionError,
    IncompleteColumnsError,
    SelectionCardinalityError,
    UnsupportedFileTypeError,
)
from ledgerdesk.domain.models import UploadedFile

ACCEPTED_EXTENSIONS = (".xlsx", ".xls")
CONTENT_TYPES = {
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
}


def content_type_for(file_name: str) -> str:
    return CONTENT_TYPES.get(Path(file_name).suffix.lower(), "application/octet-stream")


def is_spreadsheet_name(file_name: str) -> bool:
    return Path(file_name).suffix.lower() in ACCEPTED_EXTENSIONS


def require_spreadsheets(file_names: Iterable[str]) -> None:
    rejected = [name for name in file_names if not is_spreadsheet_name(name)]
    if rejected:
        raise UnsupportedFileTypeError(rejected, ACCEPTED_EXTENSIONS)


def require_at_least(action: str, ids: Sequence[str], minimum: int) -> list[str]:
    if not ids:
        raise EmptySelectionError(f"Select at least {minimum} item(s) to {action}.")
    if len(ids) < minimum:
        raise SelectionCardinalityError(action, f"at least {minimum}", len(ids))
    return list(ids)


def require_exactly_one(action: str, ids: Sequence[str]) -> str:
    if len(ids) != 1:
        raise SelectionCardinalityError(action, "exactly 1", len(ids))
    return ids[0]


def incomplete_files(files: Iterable[UploadedFile]) -> list[UploadedFile]:
    return [file for file in files if not file.has_columns]


def require_complete_columns(files: Sequence[UploadedFile]) -> None:
    if not files:
        raise EmptySelectionError("Select at least one file.")
    missing = incomplete_files(files)
    if missing:
        raise IncompleteColumnsError([file.file_name for file in missing])

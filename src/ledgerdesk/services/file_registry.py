from __future__ import annotations

from collections.abc import Iterable

from ledgerdesk.domain.errors import NotFoundError
from ledgerdesk.domain.models import ColumnUpdate, UploadedFile
from ledgerdesk.domain.selection_rules import incomplete_files, require_complete_columns


class FileRegistry:
    """Files of the project currently on screen, plus the user's selection.

    The registry is a view: it is rebuilt with ``load`` whenever the project
    is reloaded and never talks to the backend itself.
    """

    def __init__(self, files: Iterable[UploadedFile] | None = None) -> None:
        self._files: dict[str, UploadedFile] = {}
        self._selected: dict[str, None] = {}
        if files is not None:
            self.load(files)

    def add(self, file: UploadedFile) -> None:
        self._files[file.file_id] = file

    def remove(self, file_id: str) -> UploadedFile | None:
        self._selected.pop(file_id, None)
        return self._files.pop(file_id, None)

    def get(self, file_id: str) -> UploadedFile | None:
        return self._files.get(file_id)

    def require(self, file_id: str) -> UploadedFile:
        file = self._files.get(file_id)
        if file is None:
            raise NotFoundError(f"File not found: {file_id}")
        return file

    def files(self) -> list[UploadedFile]:
        return list(self._files.values())

    def load(self, files: Iterable[UploadedFile]) -> None:
        self._files = {file.file_id: file for file in files}
        self._selected = {
            file_id: None for file_id in self._selected if file_id in self._files
        }

    def update_columns(self, file_id: str, update: ColumnUpdate) -> UploadedFile:
        file = self.require(file_id)
        if (
            update.account_column_name is not None
            and update.account_column_name != file.account_column_name
        ):
            file.account_column_name = update.account_column_name
            file.account_contents = None
        if update.account_contents is not None and file.account_column_name:
            file.account_contents = list(update.account_contents)
        if (
            update.amount_column_name is not None
            and update.amount_column_name != file.amount_column_name
        ):
            file.amount_column_name = update.amount_column_name
            file.total_amount = None
        if update.total_amount is not None and file.amount_column_name:
            file.total_amount = update.total_amount
        return file

    def clear_derived(
        self, file_id: str, account: bool = False, amount: bool = False
    ) -> UploadedFile:
        file = self.require(file_id)
        if account:
            file.account_contents = None
        if amount:
            file.total_amount = None
        return file

    def link_session(self, file_ids: Iterable[str], session_id: str | None) -> None:
        for file_id in file_ids:
            file = self._files.get(file_id)
            if file is not None:
                file.session_id = session_id

    def files_in_session(self, session_id: str) -> list[UploadedFile]:
        return [file for file in self._files.values() if file.session_id == session_id]

    # Selection

    def select(self, file_ids: Iterable[str]) -> None:
        for file_id in file_ids:
            if file_id in self._files:
                self._selected[file_id] = None

    def deselect(self, file_ids: Iterable[str]) -> None:
        for file_id in file_ids:
            self._selected.pop(file_id, None)

    def select_all(self) -> None:
        self._selected = {file_id: None for file_id in self._files}

    def clear_selection(self) -> None:
        self._selected = {}

    def selected_ids(self) -> list[str]:
        return list(self._selected)

    def selected_files(self) -> list[UploadedFile]:
        return [self._files[file_id] for file_id in self._selected if file_id in self._files]

    def incomplete_selection(self) -> list[UploadedFile]:
        return incomplete_files(self.selected_files())

    def require_complete_selection(self) -> list[UploadedFile]:
        selected = self.selected_files()
        require_complete_columns(selected)
        return selected

from __future__ import annotations

import logging

from ledgerdesk.domain.errors import OperationCancelledError, UnknownColumnError
from ledgerdesk.domain.models import ColumnUpdate, UploadedFile
from ledgerdesk.ports.backend_port import UploadBackendPort
from ledgerdesk.ports.confirm_port import ConfirmPort
from ledgerdesk.services.file_registry import FileRegistry

logger = logging.getLogger(__name__)


class ColumnAssignmentService:
    def __init__(
        self,
        backend: UploadBackendPort,
        registry: FileRegistry,
        confirm: ConfirmPort,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._confirm = confirm

    def assign_columns(
        self,
        project_id: str,
        file_id: str,
        account_column_name: str | None = None,
        amount_column_name: str | None = None,
    ) -> UploadedFile:
        """Tag a file's account and/or amount column.

        A reassigned column drops its stale derived value before the backend
        is called. The column names themselves are only written from the
        backend response, so a rejected change keeps the previous assignment.
        """

        file = self._registry.require(file_id)
        for column in (account_column_name, amount_column_name):
            if column is not None and column not in file.detected_columns:
                raise UnknownColumnError(
                    f"Column {column!r} is not one of the columns of {file.file_name}."
                )
        if account_column_name is None and amount_column_name is None:
            return file
        self._registry.clear_derived(
            file_id,
            account=account_column_name not in (None, file.account_column_name),
            amount=amount_column_name not in (None, file.amount_column_name),
        )
        updated = self._backend.set_file_columns(
            project_id,
            file_id,
            account_column_name=account_column_name,
            amount_column_name=amount_column_name,
        )
        logger.info(
            "columns assigned project=%s file_id=%s account=%s amount=%s",
            project_id,
            file_id,
            account_column_name,
            amount_column_name,
        )
        return self._registry.update_columns(
            file_id,
            ColumnUpdate(
                account_column_name=updated.account_column_name,
                amount_column_name=updated.amount_column_name,
                account_contents=updated.account_contents,
                total_amount=updated.total_amount,
            ),
        )

    def extract_account_values(self, project_id: str, file_id: str) -> list[str]:
        file = self._registry.require(file_id)
        if not file.account_column_name:
            raise UnknownColumnError(f"No account column assigned for {file.file_name}.")
        values = self._backend.extract_account_values(
            project_id, file_id, file.account_column_name
        )
        self._registry.update_columns(file_id, ColumnUpdate(account_contents=values))
        return values

    def calculate_total_amount(self, project_id: str, file_id: str) -> float:
        file = self._registry.require(file_id)
        if not file.amount_column_name:
            raise UnknownColumnError(f"No amount column assigned for {file.file_name}.")
        total = self._backend.calculate_total_amount(project_id, file_id, file.amount_column_name)
        self._registry.update_columns(file_id, ColumnUpdate(total_amount=total))
        return total

    def delete_file(self, project_id: str, file_id: str) -> None:
        file = self._registry.require(file_id)
        if not self._confirm.confirm(f"Delete {file.file_name}? This cannot be undone."):
            raise OperationCancelledError(f"Deletion of {file.file_name} was cancelled.")
        self._backend.delete_file(project_id, file_id)
        self._registry.remove(file_id)
        logger.info("file deleted project=%s file_id=%s", project_id, file_id)

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ledgerdesk.domain.models import (
    FinalizeUpload,
    Partition,
    Session,
    UploadedFile,
    UploadSlot,
    UploadStatus,
)


@runtime_checkable
class UploadBackendPort(Protocol):
    def request_upload_slot(
        self, project_id: str, file_name: str, file_size: int, session_id: str | None = None
    ) -> UploadSlot:
        """Allocate a pending upload and return where to write the bytes."""

    def finalize_upload(self, project_id: str, upload: FinalizeUpload) -> UploadedFile:
        """Turn a transferred pending upload into a queryable file."""

    def get_upload_status(self, project_id: str, upload_id: str) -> UploadStatus:
        """Return the ingestion job status for an upload."""

    def list_files(self, project_id: str) -> list[UploadedFile]:
        """Return uploaded files for a project."""

    def set_file_columns(
        self,
        project_id: str,
        file_id: str,
        account_column_name: str | None = None,
        amount_column_name: str | None = None,
    ) -> UploadedFile:
        """Assign account/amount columns and return the updated file."""

    def extract_account_values(self, project_id: str, file_id: str, column_name: str) -> list[str]:
        """Return distinct account values found in a column."""

    def calculate_total_amount(self, project_id: str, file_id: str, column_name: str) -> float:
        """Return the sum of an amount column."""

    def delete_file(self, project_id: str, file_id: str) -> None:
        """Delete an uploaded file."""

    def analyze_partitions(self, project_id: str, file_ids: list[str]) -> list[Partition]:
        """Group files by account value into proposed partitions."""

    def list_sessions(self, project_id: str) -> list[Session]:
        """Return live sessions for a project."""

    def create_sessions(self, project_id: str, partitions: list[Partition]) -> list[Session]:
        """Create one session per partition."""

    def update_session(
        self,
        project_id: str,
        session_id: str,
        session_name: str | None = None,
        worker_name: str | None = None,
    ) -> Session:
        """Rename a session or reassign its worker."""

    def merge_sessions(self, project_id: str, session_ids: list[str]) -> Session:
        """Merge sessions into the first listed one."""

    def delete_sessions(self, project_id: str, session_ids: list[str]) -> None:
        """Delete sessions; their files become session-less."""

    def add_files_to_session(self, project_id: str, session_id: str, file_ids: list[str]) -> Session:
        """Attach files to an existing session."""

    def start_session(self, project_id: str, session_id: str) -> Session:
        """Hand a session to the next pipeline stage."""

    def complete_session(self, project_id: str, session_id: str) -> Session:
        """Mark a session complete and trigger account extraction."""

    def get_download_url(self, project_id: str, session_id: str) -> str:
        """Return a download URL for a completed session's result."""

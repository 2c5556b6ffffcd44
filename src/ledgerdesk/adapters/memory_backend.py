from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from uuid import uuid4

from ledgerdesk.domain.errors import (
    BackendError,
    NotFoundError,
    SpreadsheetProbeError,
    TransferError,
)
from ledgerdesk.domain.lifecycle import COMPLETED, STARTED, advance_session
from ledgerdesk.domain.models import (
    FileStatus,
    FinalizeUpload,
    Partition,
    Session,
    UploadedFile,
    UploadSlot,
    UploadStatus,
)
from ledgerdesk.domain.partitioning import (
    derive_partitions,
    merge_into_first,
    session_from_partition,
)
from ledgerdesk.ports.backend_port import UploadBackendPort
from ledgerdesk.ports.object_store_port import ObjectStorePort
from ledgerdesk.ports.spreadsheet_port import SpreadsheetPort

logger = logging.getLogger(__name__)


class InMemoryObjectStore(ObjectStorePort):
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.failing_urls: set[str] = set()

    def transfer(
        self,
        write_url: str,
        data: bytes,
        content_type: str,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        _ = content_type
        if write_url in self.failing_urls:
            raise TransferError(f"Upload failed: 500 for {write_url}")
        self.objects[write_url] = data
        if on_progress is not None:
            for percent in (50, 100):
                on_progress(percent)


class InMemoryUploadBackend(UploadBackendPort):
    """Backend stand-in for offline runs and tests.

    When a probe is given, finalize reads headers and row counts from the
    transferred bytes the way the ingestion job would. Column values are not
    parsed; seed them with ``seed_column_values`` to drive account extraction
    and amount totals.
    """

    def __init__(
        self,
        object_store: InMemoryObjectStore | None = None,
        probe: SpreadsheetPort | None = None,
    ) -> None:
        self._object_store = object_store
        self._probe = probe
        self._pending: dict[str, dict] = {}
        self._files: dict[str, tuple[str, UploadedFile]] = {}
        self._sessions: dict[str, tuple[str, Session]] = {}
        self._status_scripts: dict[str, list[UploadStatus]] = {}
        self._column_values: dict[tuple[str, str], list] = {}
        self.calls: list[str] = []

    def seed_column_values(self, file_id: str, column_name: str, values: list) -> None:
        self._column_values[(file_id, column_name)] = list(values)

    def script_status(self, upload_id: str, statuses: list[UploadStatus]) -> None:
        self._status_scripts[upload_id] = list(statuses)

    def request_upload_slot(
        self, project_id: str, file_name: str, file_size: int, session_id: str | None = None
    ) -> UploadSlot:
        self.calls.append("request_upload_slot")
        upload_id = str(uuid4())
        slot = UploadSlot(
            write_url=f"memory://{project_id}/{upload_id}",
            upload_id=upload_id,
            object_key=f"projects/{project_id}/uploads/{upload_id}/{file_name}",
            session_id=session_id or str(uuid4()),
        )
        self._pending[upload_id] = {
            "project_id": project_id,
            "file_name": file_name,
            "file_size": file_size,
            "write_url": slot.write_url,
        }
        return slot

    def finalize_upload(self, project_id: str, upload: FinalizeUpload) -> UploadedFile:
        self.calls.append("finalize_upload")
        pending = self._pending.pop(upload.upload_id, None)
        if pending is None or pending["project_id"] != project_id:
            raise NotFoundError(f"No pending upload {upload.upload_id}", 404)
        if self._object_store is not None and pending["write_url"] not in self._object_store.objects:
            raise BackendError("Upload bytes were never transferred.", 409)
        if upload.upload_id in self._status_scripts:
            status = FileStatus.PROCESSING
        else:
            status = FileStatus.UPLOADED
        uploaded = UploadedFile(
            file_id=str(uuid4()),
            file_name=upload.file_name,
            file_size=upload.file_size,
            object_key=upload.object_key,
            status=status,
            upload_id=upload.upload_id,
        )
        data = self._stored_bytes(pending["write_url"])
        if self._probe is not None and data is not None:
            try:
                result = self._probe.probe_bytes(data, upload.file_name)
            except SpreadsheetProbeError as exc:
                logger.warning("ingestion failed upload_id=%s: %s", upload.upload_id, exc)
                uploaded.status = FileStatus.FAILED
                self._status_scripts[upload.upload_id] = [
                    UploadStatus(status=FileStatus.FAILED, progress=0, error=str(exc))
                ]
            else:
                uploaded.detected_columns = result.columns
                uploaded.row_count = result.row_count
        self._files[uploaded.file_id] = (project_id, uploaded)
        return _copy_file(uploaded)

    def get_upload_status(self, project_id: str, upload_id: str) -> UploadStatus:
        self.calls.append("get_upload_status")
        script = self._status_scripts.get(upload_id)
        if script:
            status = script.pop(0) if len(script) > 1 else script[0]
        else:
            status = UploadStatus(status=FileStatus.COMPLETED, progress=100)
        for owner, file in self._files.values():
            if owner == project_id and file.upload_id == upload_id:
                file.status = status.status
        return status

    def list_files(self, project_id: str) -> list[UploadedFile]:
        self.calls.append("list_files")
        return [_copy_file(file) for owner, file in self._files.values() if owner == project_id]

    def set_file_columns(
        self,
        project_id: str,
        file_id: str,
        account_column_name: str | None = None,
        amount_column_name: str | None = None,
    ) -> UploadedFile:
        self.calls.append("set_file_columns")
        file = self._file(project_id, file_id)
        if account_column_name is not None:
            file.account_column_name = account_column_name
            file.account_contents = self._accounts(file_id, account_column_name)
        if amount_column_name is not None:
            file.amount_column_name = amount_column_name
            file.total_amount = self._amount(file_id, amount_column_name)
        return _copy_file(file)

    def extract_account_values(self, project_id: str, file_id: str, column_name: str) -> list[str]:
        self.calls.append("extract_account_values")
        self._file(project_id, file_id)
        return self._accounts(file_id, column_name) or []

    def calculate_total_amount(self, project_id: str, file_id: str, column_name: str) -> float:
        self.calls.append("calculate_total_amount")
        self._file(project_id, file_id)
        return self._amount(file_id, column_name) or 0.0

    def delete_file(self, project_id: str, file_id: str) -> None:
        self.calls.append("delete_file")
        self._file(project_id, file_id)
        del self._files[file_id]
        for _, session in self._sessions.values():
            if file_id in session.file_ids:
                session.file_ids.remove(file_id)
                session.total_files = len(session.file_ids)

    def analyze_partitions(self, project_id: str, file_ids: list[str]) -> list[Partition]:
        self.calls.append("analyze_partitions")
        files = [self._file(project_id, file_id) for file_id in dict.fromkeys(file_ids)]
        return derive_partitions(files)

    def list_sessions(self, project_id: str) -> list[Session]:
        self.calls.append("list_sessions")
        return [_copy_session(s) for owner, s in self._sessions.values() if owner == project_id]

    def create_sessions(self, project_id: str, partitions: list[Partition]) -> list[Session]:
        self.calls.append("create_sessions")
        files_by_id = self._files_by_id(project_id)
        created: list[Session] = []
        for partition in partitions:
            session = session_from_partition(str(uuid4()), partition, files_by_id)
            if not session.file_ids:
                logger.warning("no known files for partition account=%s", partition.account_name)
                continue
            for file_id in session.file_ids:
                files_by_id[file_id].session_id = session.session_id
            self._sessions[session.session_id] = (project_id, session)
            created.append(_copy_session(session))
        return created

    def update_session(
        self,
        project_id: str,
        session_id: str,
        session_name: str | None = None,
        worker_name: str | None = None,
    ) -> Session:
        self.calls.append("update_session")
        session = self._session(project_id, session_id)
        if session_name is not None:
            session.session_name = session_name
        if worker_name is not None:
            session.worker_name = worker_name
        return _copy_session(session)

    def merge_sessions(self, project_id: str, session_ids: list[str]) -> Session:
        self.calls.append("merge_sessions")
        sessions = [self._session(project_id, session_id) for session_id in session_ids]
        merged = merge_into_first(sessions, self._files_by_id(project_id))
        for file_id in merged.file_ids:
            if file_id in self._files:
                self._files[file_id][1].session_id = merged.session_id
        for session in sessions[1:]:
            del self._sessions[session.session_id]
        return _copy_session(merged)

    def delete_sessions(self, project_id: str, session_ids: list[str]) -> None:
        self.calls.append("delete_sessions")
        for session_id in session_ids:
            session = self._session(project_id, session_id)
            for file_id in session.file_ids:
                if file_id in self._files:
                    self._files[file_id][1].session_id = None
            del self._sessions[session_id]

    def add_files_to_session(self, project_id: str, session_id: str, file_ids: list[str]) -> Session:
        self.calls.append("add_files_to_session")
        session = self._session(project_id, session_id)
        files_by_id = self._files_by_id(project_id)
        for file_id in file_ids:
            if file_id not in files_by_id:
                raise NotFoundError(f"File not found: {file_id}", 404)
        for owner, other in self._sessions.values():
            if owner == project_id and other.session_id != session_id:
                other.file_ids = [fid for fid in other.file_ids if fid not in file_ids]
                other.total_files = len(other.file_ids)
        extra = Session(session_id="", session_name="", file_ids=list(file_ids))
        merged = merge_into_first([session, extra], files_by_id)
        for file_id in file_ids:
            files_by_id[file_id].session_id = session_id
        return _copy_session(merged)

    def start_session(self, project_id: str, session_id: str) -> Session:
        self.calls.append("start_session")
        session = self._session(project_id, session_id)
        session.state = advance_session(session.state, STARTED)
        return _copy_session(session)

    def complete_session(self, project_id: str, session_id: str) -> Session:
        self.calls.append("complete_session")
        session = self._session(project_id, session_id)
        if not session.file_ids:
            raise BackendError("Session has no files.", 400)
        session.state = advance_session(session.state, COMPLETED)
        session.is_completed = True
        session.export_path = f"exports/{project_id}/{session_id}.xlsx"
        return _copy_session(session)

    def get_download_url(self, project_id: str, session_id: str) -> str:
        self.calls.append("get_download_url")
        session = self._session(project_id, session_id)
        if not session.export_path:
            raise BackendError("No result available yet.", 409)
        return f"memory://{session.export_path}"

    def _file(self, project_id: str, file_id: str) -> UploadedFile:
        entry = self._files.get(file_id)
        if entry is None or entry[0] != project_id:
            raise NotFoundError(f"File not found: {file_id}", 404)
        return entry[1]

    def _session(self, project_id: str, session_id: str) -> Session:
        entry = self._sessions.get(session_id)
        if entry is None or entry[0] != project_id:
            raise NotFoundError(f"Session not found: {session_id}", 404)
        return entry[1]

    def _stored_bytes(self, write_url: str) -> bytes | None:
        if self._object_store is None:
            return None
        return self._object_store.objects.get(write_url)

    def _files_by_id(self, project_id: str) -> dict[str, UploadedFile]:
        return {fid: file for fid, (owner, file) in self._files.items() if owner == project_id}

    def _accounts(self, file_id: str, column_name: str) -> list[str] | None:
        values = self._column_values.get((file_id, column_name))
        if values is None:
            return None
        distinct: list[str] = []
        for value in values:
            text = str(value).strip()
            if text and text not in distinct:
                distinct.append(text)
        return distinct

    def _amount(self, file_id: str, column_name: str) -> float | None:
        values = self._column_values.get((file_id, column_name))
        if values is None:
            return None
        total = 0.0
        for value in values:
            try:
                total += float(value)
            except (TypeError, ValueError):
                continue
        return total


def _copy_file(file: UploadedFile) -> UploadedFile:
    contents = list(file.account_contents) if file.account_contents is not None else None
    return replace(file, detected_columns=list(file.detected_columns), account_contents=contents)


def _copy_session(session: Session) -> Session:
    return replace(
        session, file_ids=list(session.file_ids), account_names=list(session.account_names)
    )

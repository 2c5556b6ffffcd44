from __future__ import annotations

import logging
import queue
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path

from ledgerdesk.domain.errors import (
    EmptySelectionError,
    IngestionFailedError,
    LedgerDeskError,
)
from ledgerdesk.domain.lifecycle import FileUploadState, FileUploadTracker
from ledgerdesk.domain.models import (
    BatchUploadResult,
    FileStatus,
    FinalizeUpload,
    UploadedFile,
    UploadFailure,
)
from ledgerdesk.domain.selection_rules import content_type_for, require_spreadsheets
from ledgerdesk.ports.backend_port import UploadBackendPort
from ledgerdesk.ports.object_store_port import ObjectStorePort
from ledgerdesk.services.column_probe import ColumnProbe
from ledgerdesk.services.file_registry import FileRegistry
from ledgerdesk.services.upload_status_poller import CancelToken, UploadStatusPoller

logger = logging.getLogger(__name__)


@dataclass
class _Attempt:
    tracker: FileUploadTracker
    stage: str = "probe"
    uploaded: UploadedFile | None = None
    error: Exception | None = None


class ObjectStoreUploader:
    """Moves local spreadsheets into a project: slot, direct transfer, finalize.

    The backend never sees the file bytes; they go straight to the object
    store through the write URL handed out with the slot. Finalize is only
    called once the transfer succeeded.
    """

    def __init__(
        self,
        backend: UploadBackendPort,
        object_store: ObjectStorePort,
        column_probe: ColumnProbe,
        registry: FileRegistry,
        poller: UploadStatusPoller | None = None,
        wait_for_ingestion: bool = False,
        workers: int = 1,
    ) -> None:
        self._backend = backend
        self._object_store = object_store
        self._column_probe = column_probe
        self._registry = registry
        self._poller = poller
        self._wait_for_ingestion = wait_for_ingestion and poller is not None
        self._workers = max(1, workers)

    def upload_file(
        self,
        project_id: str,
        path: Path,
        session_id: str | None = None,
        progress_callback: Callable[[dict], None] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> UploadedFile:
        require_spreadsheets([path.name])
        attempt = self._run_attempt(
            project_id, path, session_id, progress_callback, cancel_token, index=1, total=1
        )
        self._record(attempt)
        if attempt.error is not None:
            raise attempt.error
        if attempt.uploaded is None:
            raise LedgerDeskError(f"Upload of {path.name} did not finish.")
        return attempt.uploaded

    def upload_batch(
        self,
        project_id: str,
        paths: Sequence[Path],
        session_id: str | None = None,
        progress_callback: Callable[[dict], None] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> BatchUploadResult:
        if not paths:
            raise EmptySelectionError("Select at least one file to upload.")
        require_spreadsheets([path.name for path in paths])
        token = cancel_token or CancelToken()
        total = len(paths)
        run_mode = "serial" if self._workers <= 1 or total <= 1 else "parallel"
        self._emit_progress(
            progress_callback,
            stage="start",
            project_id=project_id,
            total=total,
            mode=run_mode,
        )
        logger.info("upload batch started project=%s files=%s mode=%s", project_id, total, run_mode)
        if run_mode == "serial":
            attempts = self._run_serial(project_id, paths, session_id, progress_callback, token)
        else:
            attempts = self._run_parallel(project_id, paths, session_id, progress_callback, token)

        result = BatchUploadResult()
        for attempt in attempts:
            self._record(attempt)
            if attempt.uploaded is not None and attempt.error is None:
                result.uploaded.append(attempt.uploaded)
                continue
            message = str(attempt.error) if attempt.error is not None else "not uploaded"
            result.failures.append(
                UploadFailure(
                    file_name=attempt.tracker.file_name,
                    stage=attempt.stage,
                    message=message,
                )
            )
        self._emit_progress(
            progress_callback,
            stage="complete",
            project_id=project_id,
            total=total,
            uploaded=len(result.uploaded),
            failed=len(result.failures),
        )
        logger.info(
            "upload batch finished project=%s uploaded=%s failed=%s",
            project_id,
            len(result.uploaded),
            len(result.failures),
        )
        return result

    def _run_serial(
        self,
        project_id: str,
        paths: Sequence[Path],
        session_id: str | None,
        progress_callback: Callable[[dict], None] | None,
        token: CancelToken,
    ) -> list[_Attempt]:
        total = len(paths)
        return [
            self._run_attempt(project_id, path, session_id, progress_callback, token, index, total)
            for index, path in enumerate(paths, start=1)
        ]

    def _run_parallel(
        self,
        project_id: str,
        paths: Sequence[Path],
        session_id: str | None,
        progress_callback: Callable[[dict], None] | None,
        token: CancelToken,
    ) -> list[_Attempt]:
        total = len(paths)
        by_position: dict[int, _Attempt] = {}
        # Workers only queue their events; the caller's thread emits them.
        events: queue.Queue[dict] = queue.Queue()
        with ThreadPoolExecutor(max_workers=self._workers) as executor:
            future_map = {
                executor.submit(
                    self._run_attempt, project_id, path, session_id, events.put, token, index, total
                ): index
                for index, path in enumerate(paths, start=1)
            }
            pending = set(future_map)
            while pending:
                done, pending = wait(pending, timeout=0.05, return_when=FIRST_COMPLETED)
                self._drain_events(events, progress_callback)
                for future in done:
                    by_position[future_map[future]] = future.result()
        self._drain_events(events, progress_callback)
        return [by_position[index] for index in sorted(by_position)]

    def _run_attempt(
        self,
        project_id: str,
        path: Path,
        session_id: str | None,
        progress_callback: Callable[[dict], None] | None,
        token: CancelToken | None,
        index: int,
        total: int,
    ) -> _Attempt:
        if token is not None and token.cancelled:
            attempt = self._cancelled_attempt(path)
        else:
            attempt = _Attempt(tracker=FileUploadTracker(file_name=path.name))
            try:
                self._upload(
                    project_id, path, session_id, progress_callback, token, index, total, attempt
                )
            except (LedgerDeskError, OSError) as exc:
                attempt.error = exc
                attempt.tracker.move_to(FileUploadState.FAILED, error=str(exc))
                logger.warning(
                    "upload failed project=%s file=%s stage=%s: %s",
                    project_id,
                    path.name,
                    attempt.stage,
                    exc,
                )
        if attempt.error is not None:
            self._emit_progress(
                progress_callback,
                stage="file_failed",
                file_name=path.name,
                step=attempt.stage,
                message=str(attempt.error),
                index=index,
                total=total,
            )
        return attempt

    def _upload(
        self,
        project_id: str,
        path: Path,
        session_id: str | None,
        progress_callback: Callable[[dict], None] | None,
        token: CancelToken | None,
        index: int,
        total: int,
        attempt: _Attempt,
    ) -> None:
        tracker = attempt.tracker
        probe = self._column_probe.probe(path)
        data = path.read_bytes()
        self._emit_progress(
            progress_callback,
            stage="probe_done",
            file_name=path.name,
            columns=list(probe.columns),
            row_count=probe.row_count,
            index=index,
            total=total,
        )

        tracker.move_to(FileUploadState.UPLOADING)
        attempt.stage = "slot"
        slot = self._backend.request_upload_slot(project_id, path.name, len(data), session_id)
        self._emit_progress(
            progress_callback,
            stage="slot_ready",
            file_name=path.name,
            upload_id=slot.upload_id,
            index=index,
            total=total,
        )

        attempt.stage = "transfer"
        self._object_store.transfer(
            slot.write_url,
            data,
            content_type_for(path.name),
            on_progress=lambda percent: self._emit_progress(
                progress_callback,
                stage="transfer_progress",
                file_name=path.name,
                percent=percent,
                index=index,
                total=total,
            ),
        )

        attempt.stage = "finalize"
        uploaded = self._backend.finalize_upload(
            project_id,
            FinalizeUpload(
                upload_id=slot.upload_id,
                session_id=slot.session_id or session_id,
                file_name=path.name,
                file_size=len(data),
                object_key=slot.object_key,
            ),
        )
        uploaded.upload_id = uploaded.upload_id or slot.upload_id
        uploaded.detected_columns = list(probe.columns)
        uploaded.row_count = probe.row_count
        attempt.uploaded = uploaded
        self._emit_progress(
            progress_callback,
            stage="finalized",
            file_name=path.name,
            file_id=uploaded.file_id,
            index=index,
            total=total,
        )
        logger.info(
            "file finalized project=%s file_id=%s upload_id=%s",
            project_id,
            uploaded.file_id,
            slot.upload_id,
        )

        if not self._wait_for_ingestion or self._poller is None:
            tracker.move_to(FileUploadState.DONE)
            return
        tracker.move_to(FileUploadState.AWAITING_INGESTION)
        attempt.stage = "ingestion"
        try:
            status = self._poller.poll(
                project_id,
                slot.upload_id,
                on_progress=lambda percent: self._emit_progress(
                    progress_callback,
                    stage="ingestion_progress",
                    file_name=path.name,
                    percent=percent,
                    index=index,
                    total=total,
                ),
                cancel_token=token,
            )
        except IngestionFailedError:
            uploaded.status = FileStatus.FAILED
            raise
        uploaded.status = status.status
        tracker.move_to(FileUploadState.DONE)

    def _record(self, attempt: _Attempt) -> None:
        # Finalized files stay visible even when ingestion failed, so they can be retried.
        if attempt.uploaded is not None:
            self._registry.add(attempt.uploaded)

    @staticmethod
    def _cancelled_attempt(path: Path) -> _Attempt:
        tracker = FileUploadTracker(file_name=path.name)
        tracker.move_to(FileUploadState.FAILED, error="cancelled")
        return _Attempt(
            tracker=tracker,
            stage="cancelled",
            error=LedgerDeskError(f"Upload of {path.name} was cancelled."),
        )

    @classmethod
    def _drain_events(
        cls,
        events: queue.Queue,
        callback: Callable[[dict], None] | None,
    ) -> None:
        while True:
            try:
                event = events.get_nowait()
            except queue.Empty:
                return
            cls._emit_progress(callback, **event)

    @staticmethod
    def _emit_progress(
        callback: Callable[[dict], None] | None,
        **payload: object,
    ) -> None:
        if callback is None:
            return
        callback(dict(payload))

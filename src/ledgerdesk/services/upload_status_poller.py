from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from ledgerdesk.domain.errors import (
    IngestionFailedError,
    IngestionTimeoutError,
    PollCancelledError,
)
from ledgerdesk.domain.models import FileStatus, UploadStatus
from ledgerdesk.ports.backend_port import UploadBackendPort

logger = logging.getLogger(__name__)


class CancelToken:
    """Handle the caller keeps to stop polling, e.g. when a dialog is closed."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Block up to ``seconds``; returns True as soon as the token is cancelled."""

        return self._event.wait(seconds)


class UploadStatusPoller:
    def __init__(
        self,
        backend: UploadBackendPort,
        interval_seconds: float = 1.0,
        max_attempts: int = 300,
        progress_low: int = 40,
        progress_high: int = 95,
    ) -> None:
        if progress_low > progress_high:
            raise ValueError("progress_low must not exceed progress_high")
        self._backend = backend
        self._interval_seconds = interval_seconds
        self._max_attempts = max_attempts
        self._progress_low = progress_low
        self._progress_high = progress_high

    def poll(
        self,
        project_id: str,
        upload_id: str,
        on_progress: Callable[[int], None] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> UploadStatus:
        token = cancel_token or CancelToken()
        reported = self._progress_low
        attempts = 0
        while attempts < self._max_attempts:
            if token.wait(self._interval_seconds):
                logger.info("polling cancelled upload_id=%s attempts=%s", upload_id, attempts)
                raise PollCancelledError(f"Polling cancelled for upload {upload_id}")
            status = self._backend.get_upload_status(project_id, upload_id)
            attempts += 1
            if status.status is FileStatus.COMPLETED:
                _emit(on_progress, 100)
                logger.info("ingestion completed upload_id=%s attempts=%s", upload_id, attempts)
                return status
            if status.status is FileStatus.FAILED:
                raise IngestionFailedError(upload_id, status.error or "ingestion failed")
            reported = max(reported, self._map_progress(status.progress))
            _emit(on_progress, reported)
        raise IngestionTimeoutError(upload_id, attempts)

    def _map_progress(self, progress: int) -> int:
        clamped = min(max(progress or 0, 0), 100)
        span = self._progress_high - self._progress_low
        return round(self._progress_low + span * clamped / 100)


def _emit(callback: Callable[[int], None] | None, value: int) -> None:
    if callback is None:
        return
    callback(value)

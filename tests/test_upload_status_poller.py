from unittest.mock import Mock

import pytest

from ledgerdesk.domain.errors import (
    IngestionFailedError,
    IngestionTimeoutError,
    PollCancelledError,
)
from ledgerdesk.domain.models import FileStatus, UploadStatus
from ledgerdesk.services.upload_status_poller import CancelToken, UploadStatusPoller


def _status(status: FileStatus, progress: int = 0, error: str | None = None) -> UploadStatus:
    return UploadStatus(status=status, progress=progress, error=error)


def test_poll_stops_on_completion_with_monotonic_progress() -> None:
    backend = Mock()
    backend.get_upload_status.side_effect = [
        _status(FileStatus.PROCESSING, 20),
        _status(FileStatus.PROCESSING, 60),
        _status(FileStatus.PROCESSING, 40),
        _status(FileStatus.COMPLETED, 100),
    ]
    reported: list[int] = []

    poller = UploadStatusPoller(backend, interval_seconds=0)
    status = poller.poll("p1", "u1", on_progress=reported.append)

    assert status.status is FileStatus.COMPLETED
    assert backend.get_upload_status.call_count == 4
    assert reported == [51, 73, 73, 100]
    assert reported == sorted(reported)
    assert all(40 <= value <= 95 for value in reported[:-1])


def test_poll_raises_failure_reason() -> None:
    backend = Mock()
    backend.get_upload_status.side_effect = [
        _status(FileStatus.PROCESSING, 10),
        _status(FileStatus.FAILED, error="bad header"),
    ]

    poller = UploadStatusPoller(backend, interval_seconds=0)
    with pytest.raises(IngestionFailedError) as excinfo:
        poller.poll("p1", "u1")

    assert excinfo.value.reason == "bad header"
    assert backend.get_upload_status.call_count == 2


def test_poll_times_out_after_max_attempts() -> None:
    backend = Mock()
    backend.get_upload_status.return_value = _status(FileStatus.PROCESSING, 5)

    poller = UploadStatusPoller(backend, interval_seconds=0, max_attempts=3)
    with pytest.raises(IngestionTimeoutError) as excinfo:
        poller.poll("p1", "u1")

    assert excinfo.value.attempts == 3
    assert backend.get_upload_status.call_count == 3


def test_uploaded_status_keeps_polling() -> None:
    backend = Mock()
    backend.get_upload_status.side_effect = [
        _status(FileStatus.UPLOADED),
        _status(FileStatus.COMPLETED, 100),
    ]

    poller = UploadStatusPoller(backend, interval_seconds=0)
    poller.poll("p1", "u1")

    assert backend.get_upload_status.call_count == 2


def test_cancelled_token_stops_before_next_query() -> None:
    backend = Mock()
    token = CancelToken()

    def cancel_after_first(project_id: str, upload_id: str) -> UploadStatus:
        token.cancel()
        return _status(FileStatus.PROCESSING, 10)

    backend.get_upload_status.side_effect = cancel_after_first

    poller = UploadStatusPoller(backend, interval_seconds=0)
    with pytest.raises(PollCancelledError):
        poller.poll("p1", "u1", cancel_token=token)

    assert backend.get_upload_status.call_count == 1


def test_progress_bounds_are_validated() -> None:
    with pytest.raises(ValueError):
        UploadStatusPoller(Mock(), progress_low=90, progress_high=40)


def test_repeated_half_progress_then_completion_takes_four_queries() -> None:
    backend = Mock()
    backend.get_upload_status.side_effect = [
        _status(FileStatus.PROCESSING, 50),
        _status(FileStatus.PROCESSING, 50),
        _status(FileStatus.PROCESSING, 50),
        _status(FileStatus.COMPLETED),
    ]
    reported: list[int] = []

    UploadStatusPoller(backend, interval_seconds=0).poll("p1", "u1", on_progress=reported.append)

    assert backend.get_upload_status.call_count == 4
    assert reported == sorted(reported)
    assert reported[-1] == 100

import threading
from pathlib import Path
from unittest.mock import Mock

import openpyxl
import pytest

from ledgerdesk.adapters.memory_backend import InMemoryObjectStore, InMemoryUploadBackend
from ledgerdesk.adapters.spreadsheet_probe import ExcelSpreadsheetProbe
from ledgerdesk.domain.errors import (
    EmptySelectionError,
    LedgerDeskError,
    TransferError,
    UnsupportedFileTypeError,
)
from ledgerdesk.domain.models import FileStatus, UploadedFile, UploadSlot, UploadStatus
from ledgerdesk.services.column_probe import ColumnProbe
from ledgerdesk.services.file_registry import FileRegistry
from ledgerdesk.services.upload_service import ObjectStoreUploader
from ledgerdesk.services.upload_status_poller import CancelToken, UploadStatusPoller


def _workbook(path: Path, header: list[str], rows: list[list]) -> Path:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(header)
    for row in rows:
        sheet.append(row)
    workbook.save(path)
    return path


def _uploader(backend, object_store, registry: FileRegistry, **kwargs) -> ObjectStoreUploader:
    return ObjectStoreUploader(
        backend,
        object_store,
        ColumnProbe(ExcelSpreadsheetProbe()),
        registry,
        **kwargs,
    )


def test_batch_with_unsupported_file_is_rejected_before_any_request(tmp_path: Path) -> None:
    good = _workbook(tmp_path / "a.xlsx", ["Account", "Amount"], [["A", 1]])
    bad = tmp_path / "notes.csv"
    bad.write_text("x,y\n")
    backend = Mock()
    object_store = Mock()

    uploader = _uploader(backend, object_store, FileRegistry())
    with pytest.raises(UnsupportedFileTypeError):
        uploader.upload_batch("p1", [good, bad])

    backend.request_upload_slot.assert_not_called()
    object_store.transfer.assert_not_called()


def test_empty_batch_is_rejected() -> None:
    uploader = _uploader(Mock(), Mock(), FileRegistry())
    with pytest.raises(EmptySelectionError):
        uploader.upload_batch("p1", [])


def test_batch_uploads_and_registers_files(tmp_path: Path) -> None:
    first = _workbook(tmp_path / "jan.xlsx", ["Account", "Amount"], [["A", 1], ["A", 2]])
    second = _workbook(tmp_path / "feb.xlsx", ["Account", "Amount", "Memo"], [["B", 3]])
    object_store = InMemoryObjectStore()
    backend = InMemoryUploadBackend(object_store=object_store)
    registry = FileRegistry()
    events: list[dict] = []

    uploader = _uploader(backend, object_store, registry)
    result = uploader.upload_batch("p1", [first, second], progress_callback=events.append)

    assert result.ok
    assert [file.file_name for file in result.uploaded] == ["jan.xlsx", "feb.xlsx"]
    assert result.uploaded[0].row_count == 2
    assert result.uploaded[1].detected_columns == ["Account", "Amount", "Memo"]
    assert [file.file_id for file in registry.files()] == [f.file_id for f in result.uploaded]
    assert backend.calls == [
        "request_upload_slot",
        "finalize_upload",
        "request_upload_slot",
        "finalize_upload",
    ]
    stages = [event["stage"] for event in events]
    assert stages[0] == "start"
    assert stages[-1] == "complete"
    for stage in ("probe_done", "slot_ready", "transfer_progress", "finalized"):
        assert stage in stages
    assert stages.index("slot_ready") < stages.index("transfer_progress") < stages.index("finalized")


def test_transfer_failure_skips_finalize(tmp_path: Path) -> None:
    path = _workbook(tmp_path / "a.xlsx", ["Account", "Amount"], [["A", 1]])
    backend = InMemoryUploadBackend()
    object_store = Mock()
    object_store.transfer.side_effect = TransferError("Upload failed: 403")
    registry = FileRegistry()

    uploader = _uploader(backend, object_store, registry)
    result = uploader.upload_batch("p1", [path])

    assert not result.ok
    assert result.failures[0].stage == "transfer"
    assert result.failures[0].message == "Upload failed: 403"
    assert "finalize_upload" not in backend.calls
    assert registry.files() == []


def test_upload_file_reraises_transfer_failure(tmp_path: Path) -> None:
    path = _workbook(tmp_path / "a.xlsx", ["Account"], [["A"]])
    object_store = Mock()
    object_store.transfer.side_effect = TransferError("Upload failed: 500")

    uploader = _uploader(InMemoryUploadBackend(), object_store, FileRegistry())
    with pytest.raises(TransferError):
        uploader.upload_file("p1", path)


def test_finalize_uses_session_id_returned_with_slot(tmp_path: Path) -> None:
    path = _workbook(tmp_path / "a.xlsx", ["Account", "Amount"], [["A", 1]])
    backend = Mock()
    backend.request_upload_slot.return_value = UploadSlot(
        write_url="https://bucket/put",
        upload_id="u1",
        object_key="projects/p1/a.xlsx",
        session_id="srv-session",
    )
    backend.finalize_upload.return_value = UploadedFile(
        file_id="f1", file_name="a.xlsx", file_size=path.stat().st_size, object_key="k"
    )

    uploader = _uploader(backend, Mock(), FileRegistry())
    uploaded = uploader.upload_file("p1", path)

    backend.request_upload_slot.assert_called_once_with("p1", "a.xlsx", path.stat().st_size, None)
    finalize = backend.finalize_upload.call_args.args[1]
    assert finalize.session_id == "srv-session"
    assert finalize.upload_id == "u1"
    assert finalize.object_key == "projects/p1/a.xlsx"
    assert uploaded.upload_id == "u1"
    assert uploaded.detected_columns == ["Account", "Amount"]


def test_unreadable_spreadsheet_does_not_abort_batch(tmp_path: Path) -> None:
    broken = tmp_path / "broken.xlsx"
    broken.write_bytes(b"not a workbook")
    good = _workbook(tmp_path / "good.xlsx", ["Account"], [["A"]])
    object_store = InMemoryObjectStore()
    backend = InMemoryUploadBackend(object_store=object_store)

    uploader = _uploader(backend, object_store, FileRegistry())
    result = uploader.upload_batch("p1", [broken, good])

    assert [file.file_name for file in result.uploaded] == ["good.xlsx"]
    assert result.failures[0].file_name == "broken.xlsx"
    assert result.failures[0].stage == "probe"
    assert backend.calls == ["request_upload_slot", "finalize_upload"]


def test_failed_ingestion_keeps_file_for_retry(tmp_path: Path) -> None:
    path = _workbook(tmp_path / "a.xlsx", ["Account"], [["A"]])
    backend = Mock()
    backend.request_upload_slot.return_value = UploadSlot(
        write_url="https://bucket/put", upload_id="u1", object_key="k", session_id=None
    )
    backend.finalize_upload.return_value = UploadedFile(
        file_id="f1", file_name="a.xlsx", file_size=1, object_key="k", status=FileStatus.PROCESSING
    )
    backend.get_upload_status.return_value = UploadStatus(
        status=FileStatus.FAILED, error="sheet is empty"
    )
    registry = FileRegistry()
    poller = UploadStatusPoller(backend, interval_seconds=0)

    uploader = _uploader(backend, Mock(), registry, poller=poller, wait_for_ingestion=True)
    result = uploader.upload_batch("p1", [path])

    assert result.failures[0].stage == "ingestion"
    assert "sheet is empty" in result.failures[0].message
    assert registry.get("f1").status is FileStatus.FAILED


def test_ingestion_progress_is_reported(tmp_path: Path) -> None:
    path = _workbook(tmp_path / "a.xlsx", ["Account"], [["A"]])
    object_store = InMemoryObjectStore()
    backend = InMemoryUploadBackend(object_store=object_store)
    events: list[dict] = []
    poller = UploadStatusPoller(backend, interval_seconds=0)

    uploader = _uploader(
        backend, object_store, FileRegistry(), poller=poller, wait_for_ingestion=True
    )
    uploaded = uploader.upload_file("p1", path, progress_callback=events.append)

    assert uploaded.status is FileStatus.COMPLETED
    ingestion = [event["percent"] for event in events if event["stage"] == "ingestion_progress"]
    assert ingestion == [100]


def test_parallel_batch_keeps_input_order(tmp_path: Path) -> None:
    paths = [
        _workbook(tmp_path / f"{name}.xlsx", ["Account"], [[name]])
        for name in ("a", "b", "c", "d")
    ]
    object_store = InMemoryObjectStore()
    backend = InMemoryUploadBackend(object_store=object_store)
    registry = FileRegistry()
    events: list[dict] = []

    uploader = _uploader(backend, object_store, registry, workers=3)
    result = uploader.upload_batch("p1", paths, progress_callback=events.append)

    assert result.ok
    assert [file.file_name for file in result.uploaded] == ["a.xlsx", "b.xlsx", "c.xlsx", "d.xlsx"]
    assert [file.file_name for file in registry.files()] == ["a.xlsx", "b.xlsx", "c.xlsx", "d.xlsx"]
    assert events[0]["mode"] == "parallel"
    assert sum(1 for event in events if event["stage"] == "finalized") == 4
    stages = [event["stage"] for event in events]
    assert stages[0] == "start"
    assert stages[-1] == "complete"
    transfers = {event["file_name"] for event in events if event["stage"] == "transfer_progress"}
    assert transfers == {"a.xlsx", "b.xlsx", "c.xlsx", "d.xlsx"}
    assert sum(1 for event in events if event["stage"] == "probe_done") == 4
    for name in ("a.xlsx", "d.xlsx"):
        own = [event["stage"] for event in events if event.get("file_name") == name]
        assert own.index("probe_done") < own.index("transfer_progress") < own.index("finalized")


def test_parallel_events_are_emitted_from_calling_thread(tmp_path: Path) -> None:
    paths = [_workbook(tmp_path / f"{name}.xlsx", ["Account"], [[name]]) for name in ("a", "b")]
    object_store = InMemoryObjectStore()
    backend = InMemoryUploadBackend(object_store=object_store)
    threads: set[int] = set()

    uploader = _uploader(backend, object_store, FileRegistry(), workers=2)
    uploader.upload_batch(
        "p1", paths, progress_callback=lambda event: threads.add(threading.get_ident())
    )

    assert threads == {threading.get_ident()}


@pytest.mark.parametrize("workers", [1, 3])
def test_cancelled_batch_starts_no_uploads(tmp_path: Path, workers: int) -> None:
    paths = [
        _workbook(tmp_path / f"{index}.xlsx", ["Account"], [["A"]]) for index in range(6)
    ]
    object_store = InMemoryObjectStore()
    backend = InMemoryUploadBackend(object_store=object_store)
    registry = FileRegistry()
    token = CancelToken()
    token.cancel()
    events: list[dict] = []

    uploader = _uploader(backend, object_store, registry, workers=workers)
    result = uploader.upload_batch("p1", paths, progress_callback=events.append, cancel_token=token)

    assert result.uploaded == []
    assert [failure.stage for failure in result.failures] == ["cancelled"] * 6
    assert [failure.file_name for failure in result.failures] == [path.name for path in paths]
    assert backend.calls == []
    assert registry.files() == []
    assert "finalized" not in [event["stage"] for event in events]


def test_upload_file_without_result_raises(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = _workbook(tmp_path / "a.xlsx", ["Account"], [["A"]])
    uploader = _uploader(Mock(), Mock(), FileRegistry())
    monkeypatch.setattr(uploader, "_upload", lambda *args: None)

    with pytest.raises(LedgerDeskError, match="did not finish"):
        uploader.upload_file("p1", path)

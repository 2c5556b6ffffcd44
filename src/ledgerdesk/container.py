from __future__ import annotations

from typing import Any

from ledgerdesk.adapters.confirm import StaticConfirm
from ledgerdesk.adapters.memory_backend import InMemoryObjectStore, InMemoryUploadBackend
from ledgerdesk.adapters.presigned_object_store import PresignedObjectStore
from ledgerdesk.adapters.rest_backend import RestUploadBackend
from ledgerdesk.adapters.spreadsheet_probe import ExcelSpreadsheetProbe
from ledgerdesk.ports.confirm_port import ConfirmPort
from ledgerdesk.services.column_assignment_service import ColumnAssignmentService
from ledgerdesk.services.column_probe import ColumnProbe
from ledgerdesk.services.file_registry import FileRegistry
from ledgerdesk.services.partition_service import PartitionAnalyzer
from ledgerdesk.services.session_service import SessionLifecycleManager
from ledgerdesk.services.upload_service import ObjectStoreUploader
from ledgerdesk.services.upload_status_poller import UploadStatusPoller
from ledgerdesk.settings import (
    BACKEND_MODE,
    HTTP_TIMEOUT_SECONDS,
    LEDGERDESK_API_URL,
    PARTITION_MODE,
    POLL_INTERVAL_SECONDS,
    POLL_MAX_ATTEMPTS,
    POLL_PROGRESS_HIGH,
    POLL_PROGRESS_LOW,
    TRANSFER_CHUNK_BYTES,
    TRANSFER_TIMEOUT_SECONDS,
    UPLOAD_WORKERS,
    WAIT_FOR_INGESTION,
)


def build_services(
    access_token: str,
    api_url: str | None = None,
    confirm: ConfirmPort | None = None,
    backend_mode: str | None = None,
) -> dict[str, Any]:
    reader = ExcelSpreadsheetProbe()
    mode = (backend_mode or BACKEND_MODE).lower()
    if mode == "memory":
        object_store = InMemoryObjectStore()
        backend = InMemoryUploadBackend(object_store=object_store, probe=reader)
    else:
        object_store = PresignedObjectStore(
            timeout=TRANSFER_TIMEOUT_SECONDS,
            chunk_bytes=TRANSFER_CHUNK_BYTES,
        )
        backend = RestUploadBackend(
            api_url or LEDGERDESK_API_URL,
            access_token,
            timeout=HTTP_TIMEOUT_SECONDS,
        )
    confirm = confirm or StaticConfirm(False)
    registry = FileRegistry()
    poller = UploadStatusPoller(
        backend,
        interval_seconds=POLL_INTERVAL_SECONDS,
        max_attempts=POLL_MAX_ATTEMPTS,
        progress_low=POLL_PROGRESS_LOW,
        progress_high=POLL_PROGRESS_HIGH,
    )
    column_probe = ColumnProbe(reader)
    return {
        "upload_service": ObjectStoreUploader(
            backend,
            object_store,
            column_probe,
            registry,
            poller=poller,
            wait_for_ingestion=WAIT_FOR_INGESTION,
            workers=UPLOAD_WORKERS,
        ),
        "column_assignment_service": ColumnAssignmentService(backend, registry, confirm),
        "partition_analyzer": PartitionAnalyzer(backend, registry, mode=PARTITION_MODE),
        "session_manager": SessionLifecycleManager(backend, registry, confirm),
        "column_probe": column_probe,
        "poller": poller,
        "registry": registry,
        "backend": backend,
        "object_store": object_store,
        "confirm": confirm,
    }

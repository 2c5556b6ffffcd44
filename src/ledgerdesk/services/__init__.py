from .column_assignment_service import ColumnAssignmentService
from .column_probe import ColumnProbe
from .file_registry import FileRegistry
from .partition_service import PartitionAnalyzer
from .session_service import SessionLifecycleManager
from .upload_service import ObjectStoreUploader
from .upload_status_poller import CancelToken, UploadStatusPoller

__all__ = [
    "CancelToken",
    "ColumnAssignmentService",
    "ColumnProbe",
    "FileRegistry",
    "ObjectStoreUploader",
    "PartitionAnalyzer",
    "SessionLifecycleManager",
    "UploadStatusPoller",
]

from .models import (
    FileStatus,
    Partition,
    Session,
    UploadedFile,
)
from .partitioning import default_session_name, derive_partitions, merge_into_first

__all__ = [
    "FileStatus",
    "Partition",
    "Session",
    "UploadedFile",
    "default_session_name",
    "derive_partitions",
    "merge_into_first",
]

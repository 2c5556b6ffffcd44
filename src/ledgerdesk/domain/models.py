from dataclasses import dataclass, field
from enum import Enum


class FileStatus(str, Enum):
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class UploadedFile:
    file_id: str
    file_name: str
    file_size: int
    object_key: str
    status: FileStatus = FileStatus.UPLOADED
    upload_id: str | None = None
    row_count: int = 0
    detected_columns: list[str] = field(default_factory=list)
    account_column_name: str | None = None
    amount_column_name: str | None = None
    account_contents: list[str] | None = None
    total_amount: float | None = None
    session_id: str | None = None

    @property
    def has_columns(self) -> bool:
        return bool(self.account_column_name) and bool(self.amount_column_name)


@dataclass
class ColumnProbeResult:
    columns: list[str]
    row_count: int


@dataclass
class ColumnUpdate:
    """Partial update for a file's column assignment.

    Fields left as None are not touched. Derived values (account contents,
    total amount) only apply to the column carried in the same update or to
    the column already assigned.
    """

    account_column_name: str | None = None
    amount_column_name: str | None = None
    account_contents: list[str] | None = None
    total_amount: float | None = None


@dataclass
class UploadSlot:
    write_url: str
    upload_id: str
    object_key: str
    session_id: str | None


@dataclass
class FinalizeUpload:
    upload_id: str
    session_id: str | None
    file_name: str
    file_size: int
    object_key: str


@dataclass
class UploadStatus:
    status: FileStatus
    progress: int = 0
    error: str | None = None


@dataclass
class UploadFailure:
    file_name: str
    stage: str
    message: str


@dataclass
class BatchUploadResult:
    uploaded: list[UploadedFile] = field(default_factory=list)
    failures: list[UploadFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class Partition:
    account_name: str
    file_ids: list[str]
    file_count: int
    total_rows: int
    total_amount: float
    session_name: str
    worker_name: str = ""
    selected: bool = True


@dataclass
class Session:
    session_id: str
    session_name: str
    file_ids: list[str]
    worker_name: str = ""
    account_names: list[str] = field(default_factory=list)
    total_files: int = 0
    total_row_count: int = 0
    total_amount: float = 0.0
    is_completed: bool = False
    export_path: str | None = None
    state: str = "CREATED"


@dataclass
class SessionBatchResult:
    created: list[Session] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def nothing_approved(self) -> bool:
        return not self.created and not self.missing

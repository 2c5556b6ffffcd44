from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ledgerdesk.domain.errors import InvalidTransitionError

CREATED = "CREATED"
STARTED = "STARTED"
COMPLETED = "COMPLETED"
MERGED = "MERGED"
DELETED = "DELETED"

SESSION_TRANSITIONS: dict[str, frozenset[str]] = {
    CREATED: frozenset({STARTED, COMPLETED, MERGED, DELETED}),
    STARTED: frozenset({COMPLETED, MERGED, DELETED}),
    COMPLETED: frozenset(),
    MERGED: frozenset(),
    DELETED: frozenset(),
}


def advance_session(current: str, target: str) -> str:
    """Return the target session state or raise if the move is not allowed."""

    allowed = SESSION_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError("session", current, target)
    return target


def session_state_from_flags(is_completed: bool, current_step: str | None) -> str:
    if is_completed:
        return COMPLETED
    if current_step:
        return STARTED
    return CREATED


class FileUploadState(str, Enum):
    """Client-side progress of a single file through the upload flow."""

    IDLE = "IDLE"
    UPLOADING = "UPLOADING"
    AWAITING_INGESTION = "AWAITING_INGESTION"
    DONE = "DONE"
    FAILED = "FAILED"


_UPLOAD_TRANSITIONS: dict[FileUploadState, frozenset[FileUploadState]] = {
    FileUploadState.IDLE: frozenset({FileUploadState.UPLOADING, FileUploadState.FAILED}),
    FileUploadState.UPLOADING: frozenset(
        {
            FileUploadState.AWAITING_INGESTION,
            FileUploadState.DONE,
            FileUploadState.FAILED,
        }
    ),
    FileUploadState.AWAITING_INGESTION: frozenset(
        {FileUploadState.DONE, FileUploadState.FAILED}
    ),
    FileUploadState.DONE: frozenset(),
    FileUploadState.FAILED: frozenset(),
}


@dataclass
class FileUploadTracker:
    file_name: str
    state: FileUploadState = FileUploadState.IDLE
    history: list[FileUploadState] = field(default_factory=list)
    error: str | None = None

    def move_to(self, target: FileUploadState, error: str | None = None) -> None:
        if target not in _UPLOAD_TRANSITIONS[self.state]:
            raise InvalidTransitionError("upload", self.state.value, target.value)
        self.history.append(self.state)
        self.state = target
        if error is not None:
            self.error = error

    @property
    def finished(self) -> bool:
        return self.state in (FileUploadState.DONE, FileUploadState.FAILED)

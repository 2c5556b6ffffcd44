from __future__ import annotations


class LedgerDeskError(Exception):
    """Base error for the upload and session workflow."""


class SelectionError(LedgerDeskError):
    """Raised before any network call when user input is not acceptable."""


class EmptySelectionError(SelectionError):
    pass


class SelectionCardinalityError(SelectionError):
    def __init__(self, action: str, expected: str, actual: int) -> None:
        super().__init__(f"{action} requires {expected} selection(s), got {actual}.")
        self.action = action
        self.expected = expected
        self.actual = actual


class IncompleteColumnsError(SelectionError):
    def __init__(self, file_names: list[str]) -> None:
        joined = ", ".join(file_names)
        super().__init__(
            f"Account and amount columns must be assigned for: {joined}"
        )
        self.file_names = file_names


class UnsupportedFileTypeError(SelectionError):
    def __init__(self, file_names: list[str], accepted: tuple[str, ...]) -> None:
        super().__init__(
            f"Only {', '.join(accepted)} files can be uploaded. Rejected: {', '.join(file_names)}"
        )
        self.file_names = file_names


class UnknownColumnError(SelectionError):
    pass


class OperationCancelledError(LedgerDeskError):
    """Raised when a destructive action was not confirmed."""


class InvalidTransitionError(LedgerDeskError):
    def __init__(self, kind: str, current: str, target: str) -> None:
        super().__init__(f"Cannot move {kind} from {current} to {target}.")
        self.current = current
        self.target = target


class BackendError(LedgerDeskError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(BackendError):
    pass


class NotFoundError(BackendError):
    pass


class TransferError(LedgerDeskError):
    pass


class SpreadsheetProbeError(LedgerDeskError):
    pass


class IngestionFailedError(LedgerDeskError):
    def __init__(self, upload_id: str, reason: str) -> None:
        super().__init__(f"Ingestion failed for upload {upload_id}: {reason}")
        self.upload_id = upload_id
        self.reason = reason


class IngestionTimeoutError(LedgerDeskError):
    def __init__(self, upload_id: str, attempts: int) -> None:
        super().__init__(
            f"Ingestion for upload {upload_id} still running after {attempts} checks."
        )
        self.upload_id = upload_id
        self.attempts = attempts


class PollCancelledError(LedgerDeskError):
    pass

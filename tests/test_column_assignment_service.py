from unittest.mock import Mock

import pytest

from ledgerdesk.adapters.confirm import StaticConfirm
from ledgerdesk.domain.errors import (
    BackendError,
    IncompleteColumnsError,
    OperationCancelledError,
    UnknownColumnError,
)
from ledgerdesk.domain.models import UploadedFile
from ledgerdesk.services.column_assignment_service import ColumnAssignmentService
from ledgerdesk.services.file_registry import FileRegistry
from ledgerdesk.services.partition_service import PartitionAnalyzer


def _file(**overrides) -> UploadedFile:
    values = {
        "file_id": "f1",
        "file_name": "a.xlsx",
        "file_size": 1,
        "object_key": "k",
        "detected_columns": ["Account", "Client", "Amount"],
    }
    values.update(overrides)
    return UploadedFile(**values)


def test_assign_columns_applies_backend_values() -> None:
    registry = FileRegistry([_file()])
    backend = Mock()
    backend.set_file_columns.return_value = _file(
        account_column_name="Account",
        amount_column_name="Amount",
        account_contents=["A", "B"],
        total_amount=42.0,
    )

    service = ColumnAssignmentService(backend, registry, StaticConfirm(True))
    updated = service.assign_columns(
        "p1", "f1", account_column_name="Account", amount_column_name="Amount"
    )

    backend.set_file_columns.assert_called_once_with(
        "p1", "f1", account_column_name="Account", amount_column_name="Amount"
    )
    assert updated.account_contents == ["A", "B"]
    assert updated.total_amount == 42.0
    assert updated.has_columns


def test_unknown_column_is_rejected_without_backend_call() -> None:
    registry = FileRegistry([_file()])
    backend = Mock()

    service = ColumnAssignmentService(backend, registry, StaticConfirm(True))
    with pytest.raises(UnknownColumnError):
        service.assign_columns("p1", "f1", account_column_name="Nope")

    backend.set_file_columns.assert_not_called()


def test_reassignment_keeps_previous_column_when_backend_fails() -> None:
    registry = FileRegistry(
        [_file(account_column_name="Account", account_contents=["A"], total_amount=3.0)]
    )
    backend = Mock()
    backend.set_file_columns.side_effect = BackendError("boom")

    service = ColumnAssignmentService(backend, registry, StaticConfirm(True))
    with pytest.raises(BackendError):
        service.assign_columns("p1", "f1", account_column_name="Client")

    assert registry.get("f1").account_column_name == "Account"
    assert registry.get("f1").account_contents is None
    assert registry.get("f1").total_amount == 3.0


def test_rejected_assignments_leave_file_incomplete() -> None:
    registry = FileRegistry([_file()])
    backend = Mock()
    backend.set_file_columns.side_effect = BackendError("rejected")

    service = ColumnAssignmentService(backend, registry, StaticConfirm(True))
    with pytest.raises(BackendError):
        service.assign_columns("p1", "f1", account_column_name="Account")
    with pytest.raises(BackendError):
        service.assign_columns("p1", "f1", amount_column_name="Amount")

    assert not registry.get("f1").has_columns
    with pytest.raises(IncompleteColumnsError):
        PartitionAnalyzer(backend, registry).analyze("p1", ["f1"])
    backend.analyze_partitions.assert_not_called()


def test_extract_and_calculate_refresh_derived_values() -> None:
    registry = FileRegistry(
        [_file(account_column_name="Account", amount_column_name="Amount")]
    )
    backend = Mock()
    backend.extract_account_values.return_value = ["X"]
    backend.calculate_total_amount.return_value = 7.5

    service = ColumnAssignmentService(backend, registry, StaticConfirm(True))

    assert service.extract_account_values("p1", "f1") == ["X"]
    assert service.calculate_total_amount("p1", "f1") == 7.5
    backend.extract_account_values.assert_called_once_with("p1", "f1", "Account")
    backend.calculate_total_amount.assert_called_once_with("p1", "f1", "Amount")
    assert registry.get("f1").account_contents == ["X"]
    assert registry.get("f1").total_amount == 7.5


def test_extract_requires_assigned_column() -> None:
    service = ColumnAssignmentService(Mock(), FileRegistry([_file()]), StaticConfirm(True))
    with pytest.raises(UnknownColumnError):
        service.extract_account_values("p1", "f1")


def test_delete_file_needs_confirmation() -> None:
    registry = FileRegistry([_file()])
    backend = Mock()
    confirm = StaticConfirm(False)

    service = ColumnAssignmentService(backend, registry, confirm)
    with pytest.raises(OperationCancelledError):
        service.delete_file("p1", "f1")

    backend.delete_file.assert_not_called()
    assert registry.get("f1") is not None
    assert confirm.prompts

    confirm.answer = True
    service.delete_file("p1", "f1")
    backend.delete_file.assert_called_once_with("p1", "f1")
    assert registry.get("f1") is None

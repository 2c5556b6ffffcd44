from unittest.mock import Mock

import pytest

from ledgerdesk.adapters.confirm import StaticConfirm
from ledgerdesk.domain.errors import OperationCancelledError
from ledgerdesk.domain.models import UploadedFile
from ledgerdesk.services.column_assignment_service import ColumnAssignmentService
from ledgerdesk.services.file_registry import FileRegistry
from ledgerdesk.ui_streamlit.helpers import _describe_event, _event_fraction, _run_confirmed


def _services(confirm: StaticConfirm) -> dict:
    registry = FileRegistry(
        [UploadedFile(file_id="f1", file_name="a.xlsx", file_size=1, object_key="k")]
    )
    backend = Mock()
    return {
        "confirm": confirm,
        "registry": registry,
        "backend": backend,
        "column_assignment_service": ColumnAssignmentService(backend, registry, confirm),
    }


def test_file_delete_uses_its_own_checkbox_answer() -> None:
    # A previous action left the shared answer at True.
    services = _services(StaticConfirm(True))

    with pytest.raises(OperationCancelledError):
        _run_confirmed(
            services,
            False,
            lambda: services["column_assignment_service"].delete_file("p1", "f1"),
        )

    services["backend"].delete_file.assert_not_called()
    assert services["registry"].get("f1") is not None

    _run_confirmed(
        services, True, lambda: services["column_assignment_service"].delete_file("p1", "f1")
    )
    services["backend"].delete_file.assert_called_once_with("p1", "f1")
    assert services["registry"].get("f1") is None


def test_run_confirmed_returns_action_result() -> None:
    services = _services(StaticConfirm(False))
    assert _run_confirmed(services, True, lambda: "https://download") == "https://download"
    assert services["confirm"].answer is True


def test_event_helpers_describe_parallel_progress() -> None:
    event = {
        "stage": "transfer_progress",
        "file_name": "b.xlsx",
        "percent": 50,
        "index": 2,
        "total": 4,
    }
    assert _describe_event(event) == "2/4 b.xlsx: transferring 50%"
    assert _event_fraction(event) == pytest.approx(0.375)
    assert _event_fraction({"stage": "complete"}) == 1.0

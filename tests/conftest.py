from unittest.mock import Mock

import pytest

from ledgerdesk.adapters.memory_backend import InMemoryObjectStore, InMemoryUploadBackend
from ledgerdesk.domain.models import ColumnProbeResult, FinalizeUpload
from ledgerdesk.services.file_registry import FileRegistry


@pytest.fixture
def seeded_project():
    """Build a memory backend holding files with the given (rows, accounts) specs."""

    def build(specs: list[tuple[int, list[str]]]):
        object_store = InMemoryObjectStore()
        probe = Mock()
        probe.probe_bytes.side_effect = [
            ColumnProbeResult(columns=["Account", "Amount"], row_count=rows) for rows, _ in specs
        ]
        backend = InMemoryUploadBackend(object_store=object_store, probe=probe)
        registry = FileRegistry()
        for index, (_, accounts) in enumerate(specs):
            name = f"file{index}.xlsx"
            slot = backend.request_upload_slot("p1", name, 1)
            object_store.transfer(slot.write_url, b"x", "application/octet-stream")
            uploaded = backend.finalize_upload(
                "p1",
                FinalizeUpload(
                    upload_id=slot.upload_id,
                    session_id=slot.session_id,
                    file_name=name,
                    file_size=1,
                    object_key=slot.object_key,
                ),
            )
            backend.seed_column_values(uploaded.file_id, "Account", accounts)
            backend.seed_column_values(uploaded.file_id, "Amount", [1.0] * len(accounts))
            registry.add(
                backend.set_file_columns(
                    "p1",
                    uploaded.file_id,
                    account_column_name="Account",
                    amount_column_name="Amount",
                )
            )
        backend.calls.clear()
        return backend, registry

    return build

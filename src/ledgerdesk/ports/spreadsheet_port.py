from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from ledgerdesk.domain.models import ColumnProbeResult


@runtime_checkable
class SpreadsheetPort(Protocol):
    def probe(self, path: Path) -> ColumnProbeResult:
        """Return header names and data row count of the first worksheet."""

    def probe_bytes(self, data: bytes, file_name: str) -> ColumnProbeResult:
        """Same as probe, for an in-memory workbook named file_name."""

from __future__ import annotations

import logging
from pathlib import Path

from ledgerdesk.domain.models import ColumnProbeResult
from ledgerdesk.domain.selection_rules import require_spreadsheets
from ledgerdesk.ports.spreadsheet_port import SpreadsheetPort

logger = logging.getLogger(__name__)


class ColumnProbe:
    """Reads the header row and row count of a local spreadsheet before upload."""

    def __init__(self, reader: SpreadsheetPort) -> None:
        self._reader = reader

    def probe(self, path: Path) -> ColumnProbeResult:
        require_spreadsheets([path.name])
        result = self._reader.probe(path)
        logger.debug(
            "probed file=%s columns=%s row_count=%s",
            path.name,
            len(result.columns),
            result.row_count,
        )
        return result

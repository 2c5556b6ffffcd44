from __future__ import annotations

import logging
from collections.abc import Iterable

from ledgerdesk.domain.models import Partition
from ledgerdesk.domain.partitioning import approved_partitions, derive_partitions
from ledgerdesk.domain.selection_rules import require_complete_columns
from ledgerdesk.ports.backend_port import UploadBackendPort
from ledgerdesk.services.file_registry import FileRegistry

logger = logging.getLogger(__name__)

_MODES = {"remote", "local"}


class PartitionAnalyzer:
    """Proposes one session per group of files sharing the same account values.

    Analysis never persists anything. ``remote`` mode asks the backend to
    group the files; ``local`` mode groups the registry entries directly.
    """

    def __init__(
        self,
        backend: UploadBackendPort,
        registry: FileRegistry,
        mode: str = "remote",
    ) -> None:
        if mode not in _MODES:
            raise ValueError(f"Unknown partition mode: {mode}")
        self._backend = backend
        self._registry = registry
        self._mode = mode

    def analyze(self, project_id: str, file_ids: Iterable[str]) -> list[Partition]:
        unique_ids = list(dict.fromkeys(file_ids))
        files = [self._registry.require(file_id) for file_id in unique_ids]
        require_complete_columns(files)
        if self._mode == "local":
            partitions = derive_partitions(files)
        else:
            partitions = self._backend.analyze_partitions(project_id, unique_ids)
        logger.info(
            "partitions analyzed project=%s files=%s partitions=%s mode=%s",
            project_id,
            len(unique_ids),
            len(partitions),
            self._mode,
        )
        return partitions

    def analyze_selection(self, project_id: str) -> list[Partition]:
        return self.analyze(project_id, self._registry.selected_ids())

    @staticmethod
    def approved(partitions: Iterable[Partition]) -> list[Partition]:
        return approved_partitions(partitions)

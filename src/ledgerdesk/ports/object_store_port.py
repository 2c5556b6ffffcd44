from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class ObjectStorePort(Protocol):
    def transfer(
        self,
        write_url: str,
        data: bytes,
        content_type: str,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        """Write bytes to a pre-authorized URL, reporting percent complete."""

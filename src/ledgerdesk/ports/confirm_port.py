from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ConfirmPort(Protocol):
    def confirm(self, message: str) -> bool:
        """Ask the operator to approve a destructive action."""

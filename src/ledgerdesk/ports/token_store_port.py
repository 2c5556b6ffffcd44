from __future__ import annotations

from typing import Protocol


class TokenStorePort(Protocol):
    def get_token(self) -> str | None:
        """Return the cached backend token, if any."""

    def set_token(self, token: str) -> bool:
        """Cache a backend token. Returns False when no keychain is available."""

    def clear_token(self) -> None:
        """Forget the cached token."""

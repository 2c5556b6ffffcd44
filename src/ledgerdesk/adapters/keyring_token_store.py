from __future__ import annotations

import logging

import keyring
from keyring.errors import KeyringError

from ledgerdesk.ports.token_store_port import TokenStorePort

logger = logging.getLogger(__name__)

_KEYRING_SERVICE = "ledgerdesk-backend"
_KEYRING_TOKEN = "access_token"


class KeyringTokenStore(TokenStorePort):
    def __init__(self, service: str = _KEYRING_SERVICE, username: str = _KEYRING_TOKEN) -> None:
        self._service = service
        self._username = username

    def get_token(self) -> str | None:
        try:
            return keyring.get_password(self._service, self._username)
        except KeyringError as exc:
            logger.info("keyring unavailable, no cached token: %s", exc)
            return None

    def set_token(self, token: str) -> bool:
        try:
            keyring.set_password(self._service, self._username, token)
            return True
        except KeyringError as exc:
            logger.info("keyring unavailable, token not cached: %s", exc)
            return False

    def clear_token(self) -> None:
        try:
            keyring.delete_password(self._service, self._username)
        except KeyringError:
            return

from __future__ import annotations

import logging
from collections.abc import Callable

import requests

from ledgerdesk.domain.errors import TransferError
from ledgerdesk.ports.object_store_port import ObjectStorePort

logger = logging.getLogger(__name__)


class _ProgressBody:
    """File-like request body that reports percent complete as it is read.

    Exposing ``__len__`` lets requests send a Content-Length header, which
    presigned PUT URLs require (no chunked encoding).
    """

    def __init__(
        self,
        data: bytes,
        chunk_bytes: int,
        on_progress: Callable[[int], None] | None,
    ) -> None:
        self._data = data
        self._chunk_bytes = chunk_bytes
        self._on_progress = on_progress
        self._offset = 0
        self._last_percent = -1

    def __len__(self) -> int:
        return len(self._data)

    @property
    def last_percent(self) -> int:
        return self._last_percent

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = self._chunk_bytes
        size = min(size, self._chunk_bytes)
        chunk = self._data[self._offset : self._offset + size]
        self._offset += len(chunk)
        self._report()
        return chunk

    def _report(self) -> None:
        if self._on_progress is None:
            return
        total = len(self._data)
        percent = 100 if total == 0 else round(self._offset * 100 / total)
        if percent != self._last_percent:
            self._last_percent = percent
            self._on_progress(percent)


class PresignedObjectStore(ObjectStorePort):
    def __init__(self, timeout: float = 300, chunk_bytes: int = 256 * 1024) -> None:
        self._timeout = timeout
        self._chunk_bytes = chunk_bytes

    def transfer(
        self,
        write_url: str,
        data: bytes,
        content_type: str,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        body = _ProgressBody(data, self._chunk_bytes, on_progress)
        try:
            response = requests.put(
                write_url,
                data=body,
                headers={"Content-Type": content_type, "Content-Length": str(len(data))},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise TransferError(f"Upload failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            logger.warning("object store rejected transfer status=%s", response.status_code)
            raise TransferError(f"Upload failed: {response.status_code}")
        if on_progress is not None and body.last_percent < 100:
            on_progress(100)

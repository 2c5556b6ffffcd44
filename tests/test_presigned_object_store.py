import pytest
import requests

from ledgerdesk.adapters.presigned_object_store import PresignedObjectStore
from ledgerdesk.domain.errors import TransferError


class DummyResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


def test_transfer_streams_body_and_reports_progress(monkeypatch) -> None:
    captured: dict = {}

    def fake_put(url, data=None, headers=None, timeout=None):
        captured["url"] = url
        captured["headers"] = headers
        captured["timeout"] = timeout
        chunks = []
        while True:
            chunk = data.read(8192)
            if not chunk:
                break
            chunks.append(chunk)
        captured["body"] = b"".join(chunks)
        captured["length"] = len(data)
        return DummyResponse(200)

    monkeypatch.setattr(requests, "put", fake_put)
    reported: list[int] = []
    payload = b"x" * 10

    store = PresignedObjectStore(timeout=5, chunk_bytes=4)
    store.transfer("https://bucket/put?sig=1", payload, "application/vnd.ms-excel", reported.append)

    assert captured["url"] == "https://bucket/put?sig=1"
    assert captured["body"] == payload
    assert captured["length"] == 10
    assert captured["headers"]["Content-Type"] == "application/vnd.ms-excel"
    assert captured["headers"]["Content-Length"] == "10"
    assert captured["timeout"] == 5
    assert reported == [40, 80, 100]


def test_transfer_rejects_non_success_status(monkeypatch) -> None:
    monkeypatch.setattr(requests, "put", lambda *args, **kwargs: DummyResponse(403))
    with pytest.raises(TransferError):
        PresignedObjectStore().transfer("https://bucket/put", b"abc", "text/plain")


def test_transfer_wraps_connection_errors(monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise requests.ConnectionError("reset")

    monkeypatch.setattr(requests, "put", boom)
    with pytest.raises(TransferError):
        PresignedObjectStore().transfer("https://bucket/put", b"abc", "text/plain")


def test_transfer_reports_completion_when_body_not_read(monkeypatch) -> None:
    monkeypatch.setattr(requests, "put", lambda *args, **kwargs: DummyResponse(200))
    reported: list[int] = []

    PresignedObjectStore().transfer("https://bucket/put", b"abc", "text/plain", reported.append)

    assert reported == [100]

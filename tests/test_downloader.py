from __future__ import annotations

from typing import Any

import pytest
import requests
from PySide6.QtCore import QThreadPool

from inline_preview.downloader import DownloadError, ImageDownloader, fetch_bytes


class FakeResponse:
    """Minimal stand-in for :class:`requests.Response`."""

    def __init__(self, payload: bytes, status_code: int = 200) -> None:
        self.content = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Callable mimicking :meth:`requests.Session.get` for tests."""

    def __init__(self, responses: dict[str, Any]) -> None:
        self._responses = responses
        self.requests: list[tuple[str, float]] = []

    def get(self, url: str, *, timeout: float) -> FakeResponse:
        self.requests.append((url, timeout))
        response = self._responses[url]
        if isinstance(response, Exception):
            raise response
        return response


def _settle(pool: QThreadPool, qapp) -> None:
    pool.waitForDone(5000)
    qapp.processEvents()


def test_fetch_bytes_returns_body() -> None:
    session = FakeSession({"https://example.com/a.png": FakeResponse(b"data")})

    assert fetch_bytes(session, "https://example.com/a.png", timeout=3.0) == b"data"
    assert session.requests == [("https://example.com/a.png", 3.0)]


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(b"", status_code=404),
        requests.ConnectionError("unreachable"),
    ],
)
def test_fetch_bytes_wraps_failures(response: Any) -> None:
    session = FakeSession({"https://example.com/a.png": response})

    with pytest.raises(DownloadError):
        fetch_bytes(session, "https://example.com/a.png", timeout=1.0)


def test_downloader_reports_completion(qapp) -> None:
    url = "https://example.com/a.png"
    session = FakeSession({url: FakeResponse(b"payload")})
    pool = QThreadPool()
    downloader = ImageDownloader(session=session, thread_pool=pool, timeout=2.0)
    finished: list[tuple[bytes, str]] = []
    downloader.downloadFinished.connect(lambda data, key: finished.append((data, key)))

    assert downloader.download(url) is True
    assert downloader.download(url) is False
    assert downloader.is_pending(url)

    _settle(pool, qapp)

    assert finished == [(b"payload", url)]
    assert downloader.pending_count() == 0
    assert session.requests == [(url, 2.0)]


def test_downloader_reports_failure(qapp) -> None:
    url = "https://example.com/missing.png"
    session = FakeSession({url: FakeResponse(b"", status_code=500)})
    pool = QThreadPool()
    downloader = ImageDownloader(session=session, thread_pool=pool)
    failures: list[str] = []
    downloader.downloadFailed.connect(lambda key, message: failures.append(key))

    downloader.download(url)
    _settle(pool, qapp)

    assert failures == [url]
    assert downloader.pending_count() == 0

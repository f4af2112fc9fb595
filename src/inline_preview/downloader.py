"""Background retrieval of remote images."""

from __future__ import annotations

import logging
from typing import Any

import requests
from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from .config import get_config

__all__ = ["DownloadError", "ImageDownloader", "fetch_bytes"]

logger = logging.getLogger(__name__)


class DownloadError(RuntimeError):
    """Raised when a remote image cannot be retrieved."""


def fetch_bytes(session: Any, url: str, *, timeout: float) -> bytes:
    """Return the body served at *url* using *session*."""

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise DownloadError(f"Failed to download {url}: {exc}") from exc
    return response.content


class _DownloadSignals(QObject):
    """Signals emitted by :class:`_DownloadTask`."""

    finished = Signal(str, object)
    failed = Signal(str, str)


class _DownloadTask(QRunnable):
    """Background task fetching a single URL."""

    def __init__(self, url: str, session: Any, timeout: float) -> None:
        super().__init__()
        self._url = url
        self._session = session
        self._timeout = timeout
        self.signals = _DownloadSignals()

    def run(self) -> None:  # pragma: no cover - executed via Qt threads
        try:
            payload = fetch_bytes(self._session, self._url, timeout=self._timeout)
        except DownloadError as exc:
            self.signals.failed.emit(self._url, str(exc))
        else:
            self.signals.finished.emit(self._url, payload)


class ImageDownloader(QObject):
    """Fetch remote images on a thread pool and report back on the owning thread."""

    downloadFinished = Signal(object, str)
    """Emitted with ``(payload, url)`` once a download succeeds."""

    downloadFailed = Signal(str, str)
    """Emitted with ``(url, message)`` when a download fails."""

    def __init__(
        self,
        *,
        session: Any | None = None,
        thread_pool: QThreadPool | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        config = get_config()
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": user_agent or config.user_agent})
        self._session = session
        self._thread_pool = thread_pool or QThreadPool.globalInstance()
        self._timeout = timeout if timeout is not None else config.download_timeout
        self._tasks: dict[str, _DownloadTask] = {}

    def download(self, url: str) -> bool:
        """Start fetching *url*; returns ``False`` when it is already in flight."""

        if url in self._tasks:
            return False

        task = _DownloadTask(url, self._session, self._timeout)
        task.signals.finished.connect(self._handle_finished)
        task.signals.failed.connect(self._handle_failed)
        self._tasks[url] = task
        logger.debug("Downloading %s", url)
        self._thread_pool.start(task)
        return True

    def pending_count(self) -> int:
        return len(self._tasks)

    def is_pending(self, url: str) -> bool:
        return url in self._tasks

    @Slot(str, object)
    def _handle_finished(self, url: str, payload: object) -> None:
        task = self._tasks.pop(url, None)
        del task  # allow the task to be garbage collected
        data = bytes(payload) if isinstance(payload, (bytes, bytearray)) else b""
        logger.debug("Downloaded %s (%d bytes)", url, len(data))
        self.downloadFinished.emit(data, url)

    @Slot(str, str)
    def _handle_failed(self, url: str, message: str) -> None:
        self._tasks.pop(url, None)
        logger.info("Image download failed for %s: %s", url, message)
        self.downloadFailed.emit(url, message)

"""Keep rendered image blocks in sync with the image references of a document.

Every line holding exactly one markdown image reference gets a generated
artifact block right after it. The artifact block contains a single
:data:`~inline_preview.document.PLACEHOLDER` character and a payload naming
the image source it renders. Scans are debounced behind user edits, run one
at a time, and reconcile whatever the user did to the document since the
previous pass: orphaned artifact blocks are dropped, stale ones are pointed
at their new source, and placeholder characters the user typed around are
stripped.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from .cache import CacheEntry, ImageCache, ImageDecoder, decode_image
from .config import get_config
from .document import PLACEHOLDER, ArtifactPayload, Block, BlockDocument
from .downloader import ImageDownloader
from .references import extract_reference, resolve_reference
from .utils.paths import base_path_of, coerce_optional_path

__all__ = ["PreviewEngine", "is_artifact_block", "is_corrupted_block"]

logger = logging.getLogger(__name__)


def is_artifact_block(block: Block | None) -> bool:
    """Return ``True`` when *block* holds nothing but one placeholder."""

    return block is not None and block.text.strip() == PLACEHOLDER


def is_corrupted_block(block: Block) -> bool:
    """Return ``True`` when placeholders are mixed with other visible text."""

    text = block.text
    if PLACEHOLDER not in text:
        return False
    return any(not char.isspace() and char != PLACEHOLDER for char in text)


class PreviewEngine(QObject):
    """Maintain one rendered image block per image reference in *document*."""

    statusChanged = Signal()
    """Emitted once a scan or a full clear has finished."""

    def __init__(
        self,
        document: BlockDocument,
        *,
        downloader: ImageDownloader | None = None,
        decoder: ImageDecoder = decode_image,
        preview_permitted: Callable[[], bool] | None = None,
        base_path: str | Path | None = None,
        interval_ms: int | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        config = get_config()
        interval = interval_ms if interval_ms is not None else config.debounce_interval_ms
        if interval <= 0:
            raise ValueError("Debounce interval must be positive")

        self._document = document
        self._decoder = decoder
        self._preview_permitted = preview_permitted or (lambda: get_config().enable_preview_images)
        self._base_path = coerce_optional_path(base_path)
        self._cache = ImageCache()
        self._failed_keys: set[str] = set()
        self._completed_downloads: deque[tuple[str, bytes]] = deque()

        self._enabled = True
        self._scanning = False
        self._mutating = 0
        self._pending_clear = False
        self._pending_refresh = False

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(interval)
        self._timer.timeout.connect(self._handle_timeout)

        self._downloader = downloader or ImageDownloader(parent=self)
        self._downloader.downloadFinished.connect(self._handle_download_finished)
        self._downloader.downloadFailed.connect(self._handle_download_failed)

        document.contentsChange.connect(self._handle_contents_change)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def cache(self) -> ImageCache:
        return self._cache

    @property
    def document(self) -> BlockDocument:
        return self._document

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    def is_enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        """Turn previewing on and schedule a scan when it is globally permitted."""

        self._enabled = True
        if self._preview_permitted():
            self._restart_timer()

    def disable(self) -> None:
        """Turn previewing off and remove every generated block.

        While a scan is running the clear is deferred until it finishes.
        """

        self._enabled = False
        if self._scanning:
            self._pending_clear = True
            return
        self.clear_all_artifacts()

    def refresh(self) -> None:
        """Drop every cached image and rebuild all previews from scratch."""

        if self._scanning:
            self._pending_refresh = True
            return

        self._refresh_now()
        self.statusChanged.emit()

    def preview_images(self) -> None:
        """Scan the whole document and reconcile its artifact blocks."""

        if self._scanning:
            return

        if not self._enabled:
            return

        self._scanning = True
        logger.debug("Scanning document for image references")
        try:
            block = self._document.first_block()
            while block is not None and self._enabled:
                if is_artifact_block(block):
                    if self._is_valid_artifact(block):
                        block = self._document.next_block(block)
                    else:
                        block = self._remove_artifact(block)
                else:
                    self._clear_corrupted_block(block)
                    block = self._preview_block(block)
        finally:
            self._scanning = False

        if self._pending_clear:
            self._pending_clear = False
            self._clear_all()

        if self._pending_refresh:
            self._pending_refresh = False
            self._refresh_now()

        self.statusChanged.emit()

    def clear_all_artifacts(self) -> None:
        """Remove every artifact block and strip stray placeholders."""

        self._clear_all()
        self.statusChanged.emit()

    def _clear_all(self) -> None:
        document = self._document
        with self._engine_edit():
            block = document.first_block()
            while block is not None:
                if is_artifact_block(block):
                    successor = document.next_block(block)
                    document.remove_block(block)
                    block = successor
                else:
                    self._clear_corrupted_block(block)
                    block = document.next_block(block)

    def _refresh_now(self) -> None:
        self._timer.stop()
        self._cache.clear()
        self._failed_keys.clear()
        self._clear_all()
        self._timer.start()

    def source_key(self, text: str) -> str | None:
        """Return the source key referenced by the line *text*, if any."""

        reference = extract_reference(text)
        if reference is None:
            return None
        key = resolve_reference(reference, self._resolve_base_path())
        return key or None

    def cached_image(self, block: Block) -> object | None:
        """Return the cached image rendered by the artifact *block*."""

        payload = self._document.artifact_payload(block)
        if payload is None:
            return None
        entry = self._cache.get(payload.source_key)
        return entry.image if entry is not None else None

    def resolve_cache_resource(self, key: str) -> str | None:
        """Return the resource name for *key*, loading or fetching it as needed.

        Local files are decoded synchronously. Remote sources are downloaded in
        the background and ``None`` is returned until they arrive.
        """

        entry = self._cache.get(key)
        if entry is not None:
            return entry.resource_name

        if key in self._failed_keys:
            return None

        path = self._local_path(key)
        if path is None:
            self._downloader.download(key)
            return None

        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.debug("Unable to read image %s: %s", path, exc)
            data = b""

        image = self._decoder(data) if data else None
        if image is None:
            logger.debug("Image %s could not be decoded; leaving it unpreviewed", key)
            self._failed_keys.add(key)
            return None

        return self._register(key, image).resource_name

    def on_downloaded(self, data: bytes, key: str) -> None:
        """Register a downloaded image and schedule a scan to show it."""

        self._completed_downloads.append((key, data))
        self._drain_downloads()

    # ------------------------------------------------------------------
    # Scan steps
    # ------------------------------------------------------------------
    def _is_valid_artifact(self, block: Block) -> bool:
        previous = self._document.previous_block(block)
        if previous is None:
            return False

        key = self.source_key(previous.text)
        if key is None:
            return False

        payload = self._document.artifact_payload(block)
        return payload is not None and payload.source_key == key

    def _preview_block(self, block: Block) -> Block | None:
        """Preview *block* and return the block the scan resumes from."""

        following = self._document.next_block(block)
        key = self.source_key(block.text)
        if key is None:
            return following

        if is_artifact_block(following):
            resume = self._document.next_block(following)
            self._update_artifact(following, key)
            return resume

        artifact = self._insert_artifact(block, key)
        return self._document.next_block(artifact)

    def _insert_artifact(self, block: Block, key: str) -> Block:
        name = self.resolve_cache_resource(key)
        if name is None:
            return block

        document = self._document
        with self._engine_edit():
            artifact = document.insert_block_after(block, PLACEHOLDER)
            document.set_artifact_payload(artifact, ArtifactPayload(source_key=key, resource_name=name))
        return artifact

    def _update_artifact(self, block: Block, key: str) -> None:
        payload = self._document.artifact_payload(block)
        if payload is not None and payload.source_key == key:
            return

        name = self.resolve_cache_resource(key)
        if name is None:
            self._remove_artifact(block)
            return

        document = self._document
        with self._engine_edit():
            document.set_artifact_payload(block, ArtifactPayload(source_key=key, resource_name=name))

    def _remove_artifact(self, block: Block) -> Block | None:
        """Delete *block* and return its successor."""

        document = self._document
        successor = document.next_block(block)
        with self._engine_edit():
            document.remove_block(block)
        return successor

    def _clear_corrupted_block(self, block: Block) -> None:
        if not is_corrupted_block(block):
            return

        document = self._document
        with self._engine_edit():
            document.set_block_text(block, block.text.replace(PLACEHOLDER, ""))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _engine_edit(self) -> Iterator[None]:
        """Apply one atomic edit that leaves the modified flag untouched.

        Changes made here do not restart the debounce timer.
        """

        document = self._document
        modified = document.is_modified()
        self._mutating += 1
        try:
            with document.edit_block():
                yield
        finally:
            self._mutating -= 1
            document.set_modified(modified)

    def _register(self, key: str, image: object) -> CacheEntry:
        entry = self._cache.register(key, image)
        self._document.add_resource(entry.resource_name, entry.image)
        return entry

    def _drain_downloads(self) -> None:
        registered = False
        while self._completed_downloads:
            key, data = self._completed_downloads.popleft()
            image = self._decoder(data) if data else None
            if image is None:
                logger.debug("Downloaded data for %s is not an image", key)
                self._failed_keys.add(key)
                continue
            if key in self._cache:
                logger.debug("Image %s already cached; dropping download", key)
                continue
            self._register(key, image)
            registered = True

        if registered:
            self._restart_timer()

    def _resolve_base_path(self) -> Path:
        if self._base_path is not None:
            return self._base_path
        return base_path_of(self._document)

    def _local_path(self, key: str) -> Path | None:
        try:
            path = Path(key)
            if path.is_absolute() and path.exists():
                return path
        except (OSError, ValueError):
            return None
        return None

    def _restart_timer(self) -> None:
        self._timer.stop()
        self._timer.start()

    @Slot()
    def _handle_timeout(self) -> None:
        if not self._preview_permitted():
            if self._enabled:
                self.disable()
            return

        if not self._enabled:
            return

        self.preview_images()

    @Slot(int, int, int)
    def _handle_contents_change(self, position: int, removed: int, added: int) -> None:
        if removed == 0 and added == 0:
            return
        if self._mutating:
            return
        self._restart_timer()

    @Slot(object, str)
    def _handle_download_finished(self, payload: object, url: str) -> None:
        data = bytes(payload) if isinstance(payload, (bytes, bytearray)) else b""
        self.on_downloaded(data, url)

    @Slot(str, str)
    def _handle_download_failed(self, url: str, message: str) -> None:
        self._failed_keys.add(url)

"""In-memory image cache keyed by resolved image sources."""

from __future__ import annotations

import io
import logging
from collections.abc import Callable
from dataclasses import dataclass

from PIL import Image

__all__ = [
    "CacheEntry",
    "ImageCache",
    "ImageDecoder",
    "decode_image",
    "resource_name_for",
]

logger = logging.getLogger(__name__)

ImageDecoder = Callable[[bytes], object | None]
"""Callable turning raw bytes into a decoded image, or ``None`` on failure."""


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A decoded image registered under a document resource name."""

    key: str
    resource_name: str
    image: object


def resource_name_for(key: str) -> str:
    """Return the document resource name used for the image behind *key*."""

    return key.strip()


def decode_image(data: bytes) -> Image.Image | None:
    """Decode *data* into a Pillow image, returning ``None`` when it is not an image."""

    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as handle:
            handle.load()
            return handle.copy()
    except (EOFError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        logger.debug("Unable to decode image payload (%d bytes): %s", len(data), exc)
        return None


class ImageCache:
    """Map source keys to decoded images for the lifetime of a document session.

    Entries are never evicted individually; :meth:`clear` drops them all.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        return list(self._entries)

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def register(self, key: str, image: object) -> CacheEntry:
        """Store *image* under *key* unless an entry already exists.

        The first registration wins; later images for the same key are
        discarded and the existing entry is returned.
        """

        existing = self._entries.get(key)
        if existing is not None:
            logger.debug("Discarding duplicate image for %s", key)
            return existing

        entry = CacheEntry(key=key, resource_name=resource_name_for(key), image=image)
        self._entries[key] = entry
        logger.debug("Cached image %s as resource %s", key, entry.resource_name)
        return entry

    def clear(self) -> None:
        self._entries.clear()

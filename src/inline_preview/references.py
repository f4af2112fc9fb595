"""Detect markdown image references and turn them into cache keys."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit
from urllib.request import url2pathname

__all__ = [
    "IMAGE_REFERENCE_PATTERN",
    "extract_reference",
    "normalize_url",
    "resolve_reference",
]

logger = logging.getLogger(__name__)

IMAGE_REFERENCE_PATTERN = re.compile(r"!\[[^\]]*\]\(([^)]+)\)")
"""Markdown image syntax ``![alt](target)`` capturing the target."""


def extract_reference(text: str) -> str | None:
    """Return the target of the single image reference in *text*.

    Lines with no reference, or with more than one, are ambiguous and yield
    ``None``.
    """

    matches = IMAGE_REFERENCE_PATTERN.finditer(text)
    first = next(matches, None)
    if first is None or next(matches, None) is not None:
        return None
    return first.group(1)


def resolve_reference(reference: str, base_path: str | Path) -> str:
    """Return the source key for *reference* relative to *base_path*.

    Existing filesystem entries, including ``file:`` URLs that point at one,
    resolve to their absolute path; anything else is treated as a URL.
    Resolution never fails: in the worst case the raw reference is returned.
    """

    try:
        candidate = Path(base_path) / reference
        if candidate.exists():
            return str(candidate.resolve())
        local = _file_url_path(reference)
        if local is not None and local.exists():
            return str(local.resolve())
    except (OSError, ValueError):
        logger.debug("Reference %r is not a usable filesystem path", reference)

    return normalize_url(reference)


def normalize_url(reference: str) -> str:
    """Return *reference* in a normalized URL form.

    Scheme and host are lowercased; user info and port are kept as written.
    """

    text = reference.strip()
    try:
        parts = urlsplit(text)
    except ValueError:
        return text

    netloc = parts.netloc
    if netloc:
        userinfo, separator, hostport = netloc.rpartition("@")
        netloc = f"{userinfo}{separator}{hostport.lower()}"
    return urlunsplit((parts.scheme.lower(), netloc, parts.path, parts.query, parts.fragment))


def _file_url_path(reference: str) -> Path | None:
    parts = urlsplit(reference.strip())
    if parts.scheme.lower() != "file":
        return None
    if parts.netloc and parts.netloc.lower() != "localhost":
        return None
    return Path(url2pathname(parts.path))

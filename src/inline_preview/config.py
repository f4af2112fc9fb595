"""Configuration helpers for the inline image previewer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

__all__ = [
    "DEFAULT_DEBOUNCE_INTERVAL_MS",
    "DEFAULT_DOWNLOAD_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "DOWNLOAD_TIMEOUT_ENV_VAR",
    "ENABLED_ENV_VAR",
    "INTERVAL_ENV_VAR",
    "PreviewConfig",
    "configure",
    "get_config",
]

ENABLED_ENV_VAR: Final[str] = "INLINE_PREVIEW_ENABLED"
"""Environment variable that globally permits or forbids image previews."""

INTERVAL_ENV_VAR: Final[str] = "INLINE_PREVIEW_INTERVAL_MS"
"""Environment variable overriding the debounce interval in milliseconds."""

DOWNLOAD_TIMEOUT_ENV_VAR: Final[str] = "INLINE_PREVIEW_DOWNLOAD_TIMEOUT"
"""Environment variable overriding the HTTP timeout in seconds."""

DEFAULT_DEBOUNCE_INTERVAL_MS: Final[int] = 500
"""Quiet period after the last edit before a document scan runs."""

DEFAULT_DOWNLOAD_TIMEOUT: Final[float] = 30.0
"""Seconds the HTTP transport waits before giving up on a remote image."""

DEFAULT_USER_AGENT: Final[str] = "inline-image-preview"


@dataclass(frozen=True, slots=True)
class PreviewConfig:
    """Runtime configuration for image previewing."""

    enable_preview_images: bool = True
    debounce_interval_ms: int = DEFAULT_DEBOUNCE_INTERVAL_MS
    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if self.debounce_interval_ms <= 0:
            raise ValueError("Debounce interval must be a positive number of milliseconds")
        if self.download_timeout <= 0:
            raise ValueError("Download timeout must be a positive number of seconds")


_CONFIG: PreviewConfig | None = None


def get_config() -> PreviewConfig:
    """Return the cached :class:`PreviewConfig` instance."""

    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _build_config()
    return _CONFIG


def configure(
    *,
    enable_preview_images: bool | None = None,
    debounce_interval_ms: int | None = None,
    download_timeout: float | None = None,
    user_agent: str | None = None,
) -> PreviewConfig:
    """Rebuild the global configuration with optional overrides."""

    global _CONFIG
    _CONFIG = _build_config(
        enable_preview_images=enable_preview_images,
        debounce_interval_ms=debounce_interval_ms,
        download_timeout=download_timeout,
        user_agent=user_agent,
    )
    return _CONFIG


def _build_config(
    *,
    enable_preview_images: bool | None = None,
    debounce_interval_ms: int | None = None,
    download_timeout: float | None = None,
    user_agent: str | None = None,
) -> PreviewConfig:
    if enable_preview_images is None:
        enable_preview_images = _coerce_bool(os.environ.get(ENABLED_ENV_VAR), True)

    if debounce_interval_ms is None:
        debounce_interval_ms = _coerce_positive_int(
            os.environ.get(INTERVAL_ENV_VAR),
            DEFAULT_DEBOUNCE_INTERVAL_MS,
        )

    if download_timeout is None:
        download_timeout = _coerce_positive_float(
            os.environ.get(DOWNLOAD_TIMEOUT_ENV_VAR),
            DEFAULT_DOWNLOAD_TIMEOUT,
        )

    return PreviewConfig(
        enable_preview_images=bool(enable_preview_images),
        debounce_interval_ms=int(debounce_interval_ms),
        download_timeout=float(download_timeout),
        user_agent=user_agent or DEFAULT_USER_AGENT,
    )


def _coerce_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def _coerce_positive_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    stripped = value.strip()
    if not stripped.isdigit():
        return default
    parsed = int(stripped)
    return parsed if parsed > 0 else default


def _coerce_positive_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default

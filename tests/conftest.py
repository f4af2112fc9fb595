"""Pytest configuration helpers for inline_preview tests."""

from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

try:  # pragma: no cover - dependency availability varies between environments
    from PySide6.QtCore import QCoreApplication
except ImportError:  # pragma: no cover - used when Qt is unavailable
    QCoreApplication = None  # type: ignore[assignment]

# Ensure the source directory is importable without requiring an editable install.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@pytest.fixture(autouse=True)
def reset_preview_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure each test runs with the default preview configuration."""

    from inline_preview.config import (
        DOWNLOAD_TIMEOUT_ENV_VAR,
        ENABLED_ENV_VAR,
        INTERVAL_ENV_VAR,
        configure,
    )

    for name in (ENABLED_ENV_VAR, INTERVAL_ENV_VAR, DOWNLOAD_TIMEOUT_ENV_VAR):
        monkeypatch.delenv(name, raising=False)
    configure()
    yield
    configure()


@pytest.fixture(scope="session")
def qapp():
    """Provide a ``QCoreApplication`` instance for Qt-backed tests."""

    if QCoreApplication is None:
        pytest.skip("PySide6 is unavailable in this environment")

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


def png_bytes(size: tuple[int, int] = (4, 3), color: tuple[int, int, int] = (200, 40, 40)) -> bytes:
    """Return an encoded PNG of *size* filled with *color*."""

    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_png():
    return png_bytes

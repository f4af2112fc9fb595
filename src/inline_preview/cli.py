"""Command line front end rendering the previews of a markdown file."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from PySide6.QtCore import QCoreApplication, QEventLoop, QTimer

from .config import get_config
from .document import TextDocument
from .downloader import ImageDownloader
from .engine import PreviewEngine, is_artifact_block
from .utils.paths import coerce_required_path

__all__ = ["build_parser", "main", "render_document"]

logger = logging.getLogger(__name__)


class _OfflineDownloader(ImageDownloader):
    """Downloader that refuses every remote source."""

    def download(self, url: str) -> bool:
        self.downloadFailed.emit(url, "Remote images are disabled")
        return False


def render_document(engine: PreviewEngine) -> str:
    """Return the document text with artifact blocks spelled out."""

    document = engine.document
    lines: list[str] = []
    for block in document.blocks():
        if not is_artifact_block(block):
            lines.append(block.text)
            continue
        payload = document.artifact_payload(block)
        image = engine.cached_image(block)
        size = getattr(image, "size", None)
        if payload is None:
            lines.append("[image]")
        elif size:
            width, height = size
            lines.append(f"[image {width}x{height}: {payload.source_key}]")
        else:
            lines.append(f"[image: {payload.source_key}]")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inline-image-preview",
        description="Show where image previews would be injected into a markdown file.",
    )
    parser.add_argument("file", help="Markdown file to preview")
    parser.add_argument(
        "--no-remote",
        action="store_true",
        help="Do not download images referenced by URL",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for remote images (defaults to the download timeout)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``inline-image-preview`` script."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        path = coerce_required_path(args.file, empty_error="Markdown file path cannot be empty")
    except ValueError as exc:
        logger.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Unable to read %s: %s", path, exc)
        print(f"error: unable to read {path}: {exc}", file=sys.stderr)
        return 2

    app = QCoreApplication.instance()
    if app is None:
        logger.debug("Creating QCoreApplication")
        app = QCoreApplication(sys.argv[:1])

    config = get_config()
    document = TextDocument(text, base_path=path.parent)
    downloader = _OfflineDownloader() if args.no_remote else ImageDownloader()
    engine = PreviewEngine(document, downloader=downloader)

    if not config.enable_preview_images:
        logger.info("Image previews are disabled by configuration")
        print(document.to_plain_text())
        return 0

    engine.preview_images()
    if downloader.pending_count():
        timeout = args.timeout if args.timeout is not None else config.download_timeout
        _wait_for_downloads(downloader, timeout)
        engine.preview_images()

    print(render_document(engine))
    return 0


def _wait_for_downloads(downloader: ImageDownloader, timeout: float) -> None:
    loop = QEventLoop()

    def _check_done(*_args: object) -> None:
        if not downloader.pending_count():
            loop.quit()

    downloader.downloadFinished.connect(_check_done)
    downloader.downloadFailed.connect(_check_done)
    QTimer.singleShot(max(1, int(timeout * 1000)), loop.quit)
    logger.info("Waiting for %d remote image(s)", downloader.pending_count())
    loop.exec()


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())

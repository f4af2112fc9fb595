from __future__ import annotations

from pathlib import Path

import pytest

from inline_preview.cli import main
from inline_preview.config import configure


def test_cli_renders_local_previews(qapp, tmp_path: Path, make_png, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "shot.png").write_bytes(make_png((4, 3)))
    note = tmp_path / "note.md"
    note.write_text("# Title\n![shot](shot.png)\nEnd", encoding="utf-8")

    exit_code = main([str(note)])

    output = capsys.readouterr().out.splitlines()
    assert exit_code == 0
    assert output == [
        "# Title",
        "![shot](shot.png)",
        f"[image 4x3: {(tmp_path / 'shot.png').resolve()}]",
        "End",
    ]


def test_cli_offline_skips_remote_images(qapp, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    note = tmp_path / "note.md"
    note.write_text("![remote](https://example.com/a.png)", encoding="utf-8")

    exit_code = main([str(note), "--no-remote"])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["![remote](https://example.com/a.png)"]


def test_cli_respects_disabled_previews(qapp, tmp_path: Path, make_png, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "shot.png").write_bytes(make_png())
    note = tmp_path / "note.md"
    note.write_text("![shot](shot.png)", encoding="utf-8")
    configure(enable_preview_images=False)

    exit_code = main([str(note)])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["![shot](shot.png)"]


def test_cli_reports_unreadable_file(qapp, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main([str(tmp_path / "missing.md")])

    assert exit_code == 2
    assert "unable to read" in capsys.readouterr().err


def test_cli_rejects_empty_path(qapp, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main([""])

    assert exit_code == 2
    assert "cannot be empty" in capsys.readouterr().err

from __future__ import annotations

from pathlib import Path

import pytest

from inline_preview.utils.paths import coerce_optional_path, coerce_required_path


def test_coerce_required_path_resolves(tmp_path: Path) -> None:
    assert coerce_required_path(f"  {tmp_path}  ") == tmp_path.resolve()


def test_coerce_required_path_rejects_empty() -> None:
    with pytest.raises(ValueError, match="cannot be empty"):
        coerce_required_path("   ", empty_error="Base path cannot be empty")


@pytest.mark.parametrize("candidate", [None, "", "   ", 42])
def test_coerce_optional_path_rejects_non_paths(candidate: object) -> None:
    assert coerce_optional_path(candidate) is None

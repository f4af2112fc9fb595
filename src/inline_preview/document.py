"""Block-oriented text document consumed by the preview engine."""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Protocol, runtime_checkable

from PySide6.QtCore import QObject, Signal

from .utils.paths import coerce_optional_path

__all__ = [
    "ArtifactPayload",
    "Block",
    "BlockDocument",
    "PLACEHOLDER",
    "TextDocument",
]

PLACEHOLDER: Final[str] = "\ufffc"
"""Object replacement character standing in for a rendered image."""

_BLOCK_IDS = itertools.count(1)


@dataclass(eq=False, slots=True)
class Block:
    """A single line of a document.

    Blocks compare by identity; ``id`` stays stable while the block lives.
    """

    text: str = ""
    id: int = field(default_factory=lambda: next(_BLOCK_IDS))


@dataclass(frozen=True, slots=True)
class ArtifactPayload:
    """Annotation attached to a generated image block."""

    source_key: str
    resource_name: str


@runtime_checkable
class BlockDocument(Protocol):
    """Interface the preview engine requires from its document host."""

    contentsChange: Any

    def first_block(self) -> Block | None: ...

    def next_block(self, block: Block) -> Block | None: ...

    def previous_block(self, block: Block) -> Block | None: ...

    def is_valid(self, block: Block) -> bool: ...

    def position(self, block: Block) -> int: ...

    def insert_block_after(self, block: Block, text: str = "") -> Block: ...

    def remove_block(self, block: Block) -> None: ...

    def set_block_text(self, block: Block, text: str) -> None: ...

    def set_artifact_payload(self, block: Block, payload: ArtifactPayload | None) -> None: ...

    def artifact_payload(self, block: Block) -> ArtifactPayload | None: ...

    def edit_block(self) -> Any: ...

    def is_modified(self) -> bool: ...

    def set_modified(self, modified: bool) -> None: ...

    def add_resource(self, name: str, image: Any) -> None: ...

    def resource(self, name: str) -> Any: ...


class TextDocument(QObject):
    """In-memory document made of newline separated blocks."""

    contentsChange = Signal(int, int, int)
    """Emitted with ``(position, chars_removed, chars_added)`` after each edit."""

    modificationChanged = Signal(bool)

    def __init__(
        self,
        text: str = "",
        *,
        base_path: str | Path | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.base_path: Path | None = coerce_optional_path(base_path)
        self._blocks: list[Block] = [Block(line) for line in text.split("\n")]
        self._index: dict[int, int] | None = None
        self._payloads: dict[int, ArtifactPayload] = {}
        self._resources: dict[str, Any] = {}
        self._modified = False
        self._edit_depth = 0
        self._pending_change: list[int] | None = None

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def blocks(self) -> list[Block]:
        """Return a snapshot of the blocks in document order."""

        return list(self._blocks)

    def block_count(self) -> int:
        return len(self._blocks)

    def first_block(self) -> Block | None:
        return self._blocks[0] if self._blocks else None

    def last_block(self) -> Block | None:
        return self._blocks[-1] if self._blocks else None

    def find_block(self, number: int) -> Block | None:
        if 0 <= number < len(self._blocks):
            return self._blocks[number]
        return None

    def next_block(self, block: Block) -> Block | None:
        index = self._index_of(block)
        if index is None or index + 1 >= len(self._blocks):
            return None
        return self._blocks[index + 1]

    def previous_block(self, block: Block) -> Block | None:
        index = self._index_of(block)
        if index is None or index == 0:
            return None
        return self._blocks[index - 1]

    def is_valid(self, block: Block | None) -> bool:
        return block is not None and self._index_of(block) is not None

    def position(self, block: Block) -> int:
        """Return the ordinal of *block*, or ``-1`` once it has been removed."""

        index = self._index_of(block)
        return -1 if index is None else index

    def character_position(self, block: Block) -> int:
        """Return the offset of the first character of *block* in the plain text."""

        index = self._index_of(block)
        if index is None:
            raise ValueError("Block does not belong to this document")
        return sum(len(candidate.text) + 1 for candidate in self._blocks[:index])

    def to_plain_text(self) -> str:
        return "\n".join(block.text for block in self._blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks())

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    @contextmanager
    def edit_block(self) -> Iterator[None]:
        """Group mutations into one atomic edit with a single change notification."""

        self._edit_depth += 1
        try:
            yield
        finally:
            self._edit_depth -= 1
            if self._edit_depth == 0:
                self._flush_change()

    def set_plain_text(self, text: str) -> None:
        """Replace the whole content, as a user paste would."""

        removed = len(self.to_plain_text())
        self._blocks = [Block(line) for line in text.split("\n")]
        self._payloads.clear()
        self._invalidate()
        self._record_change(0, removed, len(text))

    def insert_block_after(self, block: Block, text: str = "") -> Block:
        index = self._require_index(block)
        position = self.character_position(block) + len(block.text)
        created = Block(text)
        self._blocks.insert(index + 1, created)
        self._invalidate()
        self._record_change(position, 0, len(text) + 1)
        return created

    def remove_block(self, block: Block) -> None:
        """Delete *block* together with its line separator.

        The document always keeps one block: removing the last one empties it.
        """

        index = self._require_index(block)
        self._payloads.pop(block.id, None)
        if len(self._blocks) == 1:
            removed = len(block.text)
            block.text = ""
            if removed:
                self._record_change(0, removed, 0)
            return

        position = self.character_position(block)
        if index > 0:
            position -= 1
        del self._blocks[index]
        self._invalidate()
        self._record_change(position, len(block.text) + 1, 0)

    def set_block_text(self, block: Block, text: str) -> None:
        self._require_index(block)
        if text == block.text:
            return
        position = self.character_position(block)
        removed = len(block.text)
        block.text = text
        if PLACEHOLDER not in text:
            self._payloads.pop(block.id, None)
        self._record_change(position, removed, len(text))

    def insert_text(self, block: Block, offset: int, text: str) -> None:
        """Insert *text* at *offset* within *block*, as typing would."""

        current = block.text
        offset = max(0, min(offset, len(current)))
        self.set_block_text(block, current[:offset] + text + current[offset:])

    # ------------------------------------------------------------------
    # Artifact payloads
    # ------------------------------------------------------------------
    def set_artifact_payload(self, block: Block, payload: ArtifactPayload | None) -> None:
        self._require_index(block)
        if payload is None:
            self._payloads.pop(block.id, None)
        else:
            self._payloads[block.id] = payload

    def artifact_payload(self, block: Block) -> ArtifactPayload | None:
        return self._payloads.get(block.id)

    # ------------------------------------------------------------------
    # Modification state and resources
    # ------------------------------------------------------------------
    def is_modified(self) -> bool:
        return self._modified

    def set_modified(self, modified: bool) -> None:
        modified = bool(modified)
        if modified == self._modified:
            return
        self._modified = modified
        self.modificationChanged.emit(modified)

    def add_resource(self, name: str, image: Any) -> None:
        self._resources[name] = image

    def resource(self, name: str) -> Any:
        return self._resources.get(name)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _index_of(self, block: Block) -> int | None:
        if self._index is None:
            self._index = {candidate.id: i for i, candidate in enumerate(self._blocks)}
        return self._index.get(block.id)

    def _require_index(self, block: Block) -> int:
        index = self._index_of(block)
        if index is None:
            raise ValueError("Block does not belong to this document")
        return index

    def _invalidate(self) -> None:
        self._index = None

    def _record_change(self, position: int, removed: int, added: int) -> None:
        self.set_modified(True)
        if self._pending_change is None:
            self._pending_change = [position, removed, added]
        else:
            start, total_removed, total_added = self._pending_change
            self._pending_change = [min(start, position), total_removed + removed, total_added + added]
        if self._edit_depth == 0:
            self._flush_change()

    def _flush_change(self) -> None:
        pending = self._pending_change
        self._pending_change = None
        if pending is None:
            return
        position, removed, added = pending
        self.contentsChange.emit(position, removed, added)

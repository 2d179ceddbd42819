# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Editor boundary types: documents, positions and symbol providers."""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

FUNCTION_KIND = "function"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class Position:
    """A 0-based line/character position in a document."""

    line: int
    character: int = 0


@dataclass(frozen=True)
class Range:
    """An inclusive span between two positions."""

    start: Position
    end: Position

    @classmethod
    def from_lines(cls, start_line: int, end_line: int) -> "Range":
        return cls(start=Position(line=start_line), end=Position(line=end_line))


@dataclass(frozen=True)
class SymbolEntry:
    """Represent one symbol reported by the editor.

    Attributes:
        kind: Symbol kind reported by the provider (e.g. ``function``).
        range: Full text range of the symbol in the document.
        name: Optional display name.
    """

    kind: str
    range: Range
    name: str | None = None


@dataclass(frozen=True)
class Document:
    """Snapshot of an editor buffer.

    Attributes:
        uri: Stable identifier of the document.
        text: Full document text at snapshot time.
        version: Editor version counter for the snapshot.
    """

    uri: str
    text: str
    version: int = 0

    @property
    def lines(self) -> list[str]:
        # Form feeds and other Unicode separators stay inside their line.
        if not self.text:
            return []
        return _LINE_BREAK.split(self.text)


class SymbolProvider(Protocol):
    """Supply document symbols, possibly not ready right after open."""

    async def document_symbols(self, document: Document) -> list[SymbolEntry] | None:
        """Return symbol entries, or ``None`` while the provider is not ready."""


class StaticSymbolProvider:
    """Serve a fixed symbol list, used where no editor is attached."""

    def __init__(self, entries: list[SymbolEntry]) -> None:
        self._entries = list(entries)

    async def document_symbols(self, document: Document) -> list[SymbolEntry] | None:
        return list(self._entries)


def load_symbols(path: Path) -> list[SymbolEntry]:
    """Load symbol entries from a JSON file.

    The file holds a list of objects with ``kind``, ``start_line`` and
    ``end_line`` (0-based, inclusive) and an optional ``name``.

    Args:
        path: JSON file path.

    Returns:
        Parsed symbol entries.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the content is not a list of valid entries.
    """
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError("Symbols file must contain a JSON list.")
    entries: list[SymbolEntry] = []
    for item in payload:
        if not isinstance(item, dict):
            raise ValueError(f"Invalid symbol entry: {item!r}")
        try:
            start_line = int(item["start_line"])
            end_line = int(item["end_line"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid symbol entry: {item!r}") from exc
        if start_line < 0 or end_line < start_line:
            raise ValueError(f"Invalid symbol range: {item!r}")
        entries.append(
            SymbolEntry(
                kind=str(item.get("kind", FUNCTION_KIND)),
                range=Range.from_lines(start_line, end_line),
                name=item.get("name"),
            )
        )
    logger.debug(f"Loaded symbols (path={path} count={len(entries)})")
    return entries

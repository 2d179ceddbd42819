# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
import pytest

from bughunter.extractor import (
    EmptyDocumentError,
    FunctionExtractor,
    SymbolsUnavailableError,
)
from bughunter.symbols import Document, Range, StaticSymbolProvider, SymbolEntry

SOURCE = "\n".join(
    [
        "#include <stdio.h>",
        "",
        "int add(int a, int b) {",
        "    // sum",
        "",
        "    return a + b;",
        "}",
        "struct point { int x; };",
        "void copy(char *dst, char *src) {",
        "    strcpy(dst, src);",
        "}",
    ]
)


class _NotReadyProvider:
    def __init__(self, ready_after: int, entries: list[SymbolEntry]) -> None:
        self.calls = 0
        self._ready_after = ready_after
        self._entries = entries

    async def document_symbols(self, document: Document) -> list[SymbolEntry] | None:
        self.calls += 1
        if self.calls <= self._ready_after:
            return None
        return self._entries


def _entries() -> list[SymbolEntry]:
    return [
        SymbolEntry(kind="function", range=Range.from_lines(2, 6), name="add"),
        SymbolEntry(kind="struct", range=Range.from_lines(7, 7), name="point"),
        SymbolEntry(kind="function", range=Range.from_lines(8, 10), name="copy"),
    ]


@pytest.mark.asyncio
async def test_ext_001_extracts_only_functions_with_shift_maps_and_ranges() -> None:
    extractor = FunctionExtractor(StaticSymbolProvider(_entries()))

    records = await extractor.extract(Document(uri="file:///a.c", text=SOURCE))

    assert len(records) == 2
    first, second = records
    assert first.text == "int add(int a, int b) {\nreturn a + b;\n}"
    assert first.shift_map == (1, 2)
    assert first.range == Range.from_lines(2, 6)
    assert second.text == "void copy(char *dst, char *src) {\nstrcpy(dst, src);\n}"
    assert second.shift_map == ()
    assert second.range.start.line == 8


@pytest.mark.asyncio
async def test_ext_002_empty_document_fails() -> None:
    extractor = FunctionExtractor(StaticSymbolProvider(_entries()))

    with pytest.raises(EmptyDocumentError):
        await extractor.extract(Document(uri="file:///empty.c", text=""))


@pytest.mark.asyncio
async def test_ext_003_polls_until_provider_is_ready() -> None:
    provider = _NotReadyProvider(ready_after=2, entries=_entries())
    extractor = FunctionExtractor(provider, poll_timeout=1.0, poll_interval=0.01)

    records = await extractor.extract(Document(uri="file:///a.c", text=SOURCE))

    assert provider.calls == 3
    assert len(records) == 2


@pytest.mark.asyncio
async def test_ext_004_provider_never_ready_raises_symbols_unavailable() -> None:
    provider = _NotReadyProvider(ready_after=10_000, entries=[])
    extractor = FunctionExtractor(provider, poll_timeout=0.05, poll_interval=0.01)

    with pytest.raises(SymbolsUnavailableError):
        await extractor.extract(Document(uri="file:///a.c", text=SOURCE))
    assert provider.calls >= 2


@pytest.mark.asyncio
async def test_ext_005_range_past_document_end_is_clamped() -> None:
    provider = StaticSymbolProvider(
        [SymbolEntry(kind="function", range=Range.from_lines(8, 40))]
    )

    records = await FunctionExtractor(provider).extract(
        Document(uri="file:///a.c", text=SOURCE)
    )

    assert records[0].range == Range.from_lines(8, 10)


def test_ext_006_rejects_non_positive_poll_interval() -> None:
    with pytest.raises(ValueError):
        FunctionExtractor(StaticSymbolProvider([]), poll_interval=0)


@pytest.mark.asyncio
async def test_ext_007_form_feed_does_not_shift_line_numbers() -> None:
    provider = StaticSymbolProvider(
        [SymbolEntry(kind="function", range=Range.from_lines(1, 3), name="f")]
    )
    document = Document(uri="file:///ff.c", text="int a;\f\nvoid f() {\n  strcpy(a, b);\n}")

    records = await FunctionExtractor(provider).extract(document)

    assert document.lines[0] == "int a;\f"
    assert records[0].text == "void f() {\nstrcpy(a, b);\n}"
    assert records[0].range == Range.from_lines(1, 3)


def test_ext_008_document_lines_split_on_line_breaks_only() -> None:
    assert Document(uri="u", text="").lines == []
    lines = Document(uri="u", text="a\r\nb\rc\u2028d\n").lines
    assert lines == ["a", "b", "c\u2028d", ""]

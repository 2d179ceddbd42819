# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
from pathlib import Path

import pytest

from bughunter.taxonomy import (
    TaxonomyMalformedError,
    TaxonomyUnavailableError,
    WeaknessLookup,
)


@pytest.mark.asyncio
async def test_tax_001_resolves_weaknesses_and_categories_in_input_order(
    taxonomy_path: Path,
) -> None:
    lookup = WeaknessLookup(taxonomy_path)

    records = await lookup.lookup([("Category", 189), ("Base", 79), ("Base", 787)])

    names = [record.name for record in records]
    descriptions = [record.description for record in records]
    assert names == [
        "Numeric Errors",
        "Improper Neutralization of Input During Web Page Generation ('Cross-site Scripting')",
        "Out-of-bounds Write",
    ]
    assert descriptions[0].startswith("Weaknesses in this category")
    assert descriptions[1] == (
        "The product does not neutralize or incorrectly neutralizes "
        "user-controllable input before it is placed in output."
    )
    assert all(record.found for record in records)


@pytest.mark.asyncio
async def test_tax_002_missing_id_yields_placeholder_without_failing_batch(
    taxonomy_path: Path,
) -> None:
    records = await WeaknessLookup(taxonomy_path).lookup([("Base", 99999), ("Base", 79)])

    assert records[0].found is False
    assert records[0].name == "CWE-99999"
    assert "CWE-99999" in records[0].description
    assert records[1].found is True


@pytest.mark.asyncio
async def test_tax_003_kind_selects_the_table_searched(taxonomy_path: Path) -> None:
    records = await WeaknessLookup(taxonomy_path).lookup([("Category", 79)])

    assert records[0].found is False


@pytest.mark.asyncio
async def test_tax_004_unreadable_document_raises_unavailable(tmp_path: Path) -> None:
    with pytest.raises(TaxonomyUnavailableError):
        await WeaknessLookup(tmp_path / "missing.xml").lookup([("Base", 79)])


@pytest.mark.asyncio
async def test_tax_005_parse_failure_raises_malformed(tmp_path: Path) -> None:
    path = tmp_path / "broken.xml"
    path.write_text("<Weakness_Catalog><Weaknesses>", encoding="utf-8")

    with pytest.raises(TaxonomyMalformedError):
        await WeaknessLookup(path).lookup([("Base", 79)])


@pytest.mark.asyncio
async def test_tax_006_wrong_root_raises_malformed(tmp_path: Path) -> None:
    path = tmp_path / "other.xml"
    path.write_text("<Catalog/>", encoding="utf-8")

    with pytest.raises(TaxonomyMalformedError):
        await WeaknessLookup(path).lookup([("Base", 79)])


@pytest.mark.asyncio
async def test_tax_007_empty_query_does_not_read_the_document(tmp_path: Path) -> None:
    assert await WeaknessLookup(tmp_path / "missing.xml").lookup([]) == []

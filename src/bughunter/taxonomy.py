# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Weakness lookup against the CWE catalog XML document."""

import asyncio
import logging
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

logger = logging.getLogger(__name__)

WeaknessKind = Literal["Base", "Category"]

CATALOG_ROOT = "Weakness_Catalog"


class TaxonomyError(RuntimeError):
    """Represent a weakness taxonomy failure."""


class TaxonomyUnavailableError(TaxonomyError):
    """The taxonomy document cannot be read."""


class TaxonomyMalformedError(TaxonomyError):
    """The taxonomy document cannot be parsed."""


@dataclass(frozen=True)
class WeaknessRecord:
    """Represent one resolved weakness.

    Attributes:
        kind: Entry kind that was searched.
        cwe_id: Numeric CWE identifier.
        name: Display name from the catalog.
        description: Weakness description or category summary.
        found: ``False`` when a placeholder was produced for a missing id.
    """

    kind: WeaknessKind
    cwe_id: int
    name: str
    description: str
    found: bool = True


@dataclass(frozen=True)
class _CatalogIndex:
    weaknesses: dict[int, tuple[str, str]]
    categories: dict[int, tuple[str, str]]


class WeaknessLookup:
    """Resolve (kind, id) pairs to names and descriptions."""

    def __init__(self, xml_path: Path) -> None:
        self._xml_path = xml_path

    async def lookup(
        self, queries: list[tuple[WeaknessKind, int]]
    ) -> list[WeaknessRecord]:
        """Resolve weakness entries in one pass over the catalog.

        Args:
            queries: ``(kind, numeric id)`` pairs in the caller's order.

        Returns:
            One record per query, aligned to input order. Ids missing from
            the catalog resolve to placeholder records.

        Raises:
            TaxonomyUnavailableError: If the document cannot be read.
            TaxonomyMalformedError: If the document cannot be parsed.
        """
        if not queries:
            return []
        index = await asyncio.to_thread(self._load_index)
        records = [self._resolve(index, kind, cwe_id) for kind, cwe_id in queries]
        logger.info(
            f"Weakness lookup completed (path={self._xml_path} queries={len(queries)} "
            f"missing={sum(1 for record in records if not record.found)})"
        )
        return records

    def _resolve(
        self, index: _CatalogIndex, kind: WeaknessKind, cwe_id: int
    ) -> WeaknessRecord:
        table = index.categories if kind == "Category" else index.weaknesses
        entry = table.get(cwe_id)
        if entry is None:
            logger.warning(
                f"Weakness id not found in catalog (kind={kind} cwe_id={cwe_id} "
                f"path={self._xml_path})"
            )
            return WeaknessRecord(
                kind=kind,
                cwe_id=cwe_id,
                name=f"CWE-{cwe_id}",
                description=f"No description available for CWE-{cwe_id}.",
                found=False,
            )
        name, description = entry
        return WeaknessRecord(
            kind=kind, cwe_id=cwe_id, name=name, description=description
        )

    def _load_index(self) -> _CatalogIndex:
        try:
            with self._xml_path.open("rb") as handle:
                tree = ElementTree.parse(handle)
        except OSError as exc:
            logger.warning(
                f"Taxonomy document unreadable (path={self._xml_path} error={exc})"
            )
            raise TaxonomyUnavailableError(str(exc)) from exc
        except ElementTree.ParseError as exc:
            logger.warning(
                f"Taxonomy document malformed (path={self._xml_path} error={exc})"
            )
            raise TaxonomyMalformedError(str(exc)) from exc

        root = tree.getroot()
        if _local_name(root.tag) != CATALOG_ROOT:
            raise TaxonomyMalformedError(
                f"Unexpected root element {_local_name(root.tag)!r}, expected {CATALOG_ROOT!r}"
            )
        return _CatalogIndex(
            weaknesses=_index_entries(root, "Weaknesses", "Weakness", "Description"),
            categories=_index_entries(root, "Categories", "Category", "Summary"),
        )


def _index_entries(
    root: ElementTree.Element, group_tag: str, entry_tag: str, text_tag: str
) -> dict[int, tuple[str, str]]:
    group = _first_child(root, group_tag)
    if group is None:
        return {}
    entries: dict[int, tuple[str, str]] = {}
    for entry in group:
        if _local_name(entry.tag) != entry_tag:
            continue
        raw_id = entry.get("ID")
        if raw_id is None or not raw_id.strip().isdigit():
            continue
        text_element = _first_child(entry, text_tag)
        text = _collapse(text_element) if text_element is not None else ""
        entries.setdefault(int(raw_id), (entry.get("Name", ""), text))
    return entries


def _first_child(
    element: ElementTree.Element, tag: str
) -> ElementTree.Element | None:
    for child in element:
        if _local_name(child.tag) == tag:
            return child
    return None


def _collapse(element: ElementTree.Element) -> str:
    return " ".join("".join(element.itertext()).split())


def _local_name(tag: str) -> str:
    # The catalog declares a default namespace; match on local names only.
    return tag.rsplit("}", 1)[-1]

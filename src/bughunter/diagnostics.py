# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Diagnostic construction from merged prediction batches."""

import logging
from dataclasses import dataclass

from bughunter.config import Config, DiagnosticSeverity
from bughunter.extractor import FunctionRecord
from bughunter.inference import (
    CweBatch,
    CwePrediction,
    LineBatch,
    SevBatch,
    SevPrediction,
)
from bughunter.symbols import Document, Position, Range
from bughunter.taxonomy import WeaknessLookup, WeaknessRecord

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE: str = "bughunter"
VERBOSE_SEPARATOR: str = " | "
CWE_REFERENCE_URL: str = "https://cwe.mitre.org/data/definitions/{cwe_id}.html"


@dataclass(frozen=True)
class Diagnostic:
    """Represent one positioned finding.

    Attributes:
        range: Span in original document coordinates.
        message: Human-readable finding text.
        severity: Configured diagnostic severity.
        source: Producer tag.
        code: CWE label, e.g. ``CWE-79``.
        href: "More details" reference URL.
    """

    range: Range
    message: str
    severity: DiagnosticSeverity
    source: str = DIAGNOSTIC_SOURCE
    code: str | None = None
    href: str | None = None

    @property
    def line(self) -> int:
        return self.range.start.line


class DiagnosticCollection:
    """Per-document diagnostics, replaced wholesale on each publish."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Diagnostic, ...]] = {}

    def replace(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self._entries.pop(uri, None)
        self._entries[uri] = tuple(diagnostics)
        logger.info(
            f"Diagnostics published (uri={uri} count={len(diagnostics)})"
        )

    def get(self, uri: str) -> tuple[Diagnostic, ...]:
        return self._entries.get(uri, ())

    def clear(self, uri: str) -> None:
        self._entries.pop(uri, None)

    def __contains__(self, uri: object) -> bool:
        return uri in self._entries


def reinsert_placeholders(scores: list[float], shift_map: list[int]) -> list[float]:
    """Insert zero scores at the dropped-line indexes, in ascending order.

    Args:
        scores: Per-line scores over the normalized text.
        shift_map: Ascending indexes of lines removed during normalization.

    Returns:
        Scores realigned to the pre-normalization line numbering.
    """
    restored = list(scores)
    for index in shift_map:
        restored.insert(index, 0.0)
    return restored


def rank_lines(scores: list[float], start_line: int) -> list[tuple[int, float]]:
    """Pair scores with absolute line numbers and order by score, highest first.

    Equal scores keep their original relative order.
    """
    pairs = [(start_line + offset, score) for offset, score in enumerate(scores)]
    return sorted(pairs, key=lambda pair: pair[1], reverse=True)


def reference_url(cwe_id: int) -> str:
    return CWE_REFERENCE_URL.format(cwe_id=cwe_id)


def line_range(line_text: str, line_number: int) -> Range:
    """Span from the first non-whitespace column to the end of the line."""
    indent = len(line_text) - len(line_text.lstrip())
    return Range(
        start=Position(line=line_number, character=indent),
        end=Position(line=line_number, character=len(line_text)),
    )


class DiagnosticBuilder:
    """Merge line, CWE and severity predictions into diagnostics."""

    def __init__(self, config: Config, weakness_lookup: WeaknessLookup) -> None:
        self._config = config
        self._weakness_lookup = weakness_lookup

    async def build(
        self,
        document: Document,
        functions: list[FunctionRecord],
        line_batch: LineBatch,
        cwe_batch: CweBatch,
        sev_batch: SevBatch,
    ) -> list[Diagnostic]:
        """Build diagnostics for every vulnerable function.

        Weakness names and descriptions are resolved once for the whole batch
        before any diagnostic is built.

        Args:
            document: Document snapshot the functions came from.
            functions: Extracted functions, aligned with ``line_batch``.
            line_batch: Line-stage predictions.
            cwe_batch: CWE predictions, one per vulnerable function.
            sev_batch: Severity predictions, one per vulnerable function.

        Returns:
            Diagnostics ordered by function, then by descending line score.

        Raises:
            ValueError: If the batches are not aligned.
            TaxonomyError: If weakness resolution fails.
        """
        vulnerable = line_batch.vulnerable_indexes()
        if len(line_batch.predictions) != len(functions):
            raise ValueError(
                f"Line batch has {len(line_batch.predictions)} entries for "
                f"{len(functions)} functions"
            )
        if not (len(vulnerable) == len(cwe_batch.predictions) == len(sev_batch.predictions)):
            raise ValueError(
                f"Expected {len(vulnerable)} CWE/severity predictions, got "
                f"{len(cwe_batch.predictions)}/{len(sev_batch.predictions)}"
            )

        weaknesses = await self._weakness_lookup.lookup(
            [(prediction.kind, prediction.cwe_id) for prediction in cwe_batch.predictions]
        )
        lines = document.lines
        diagnostics: list[Diagnostic] = []
        vuln_count = 0
        for function, prediction in zip(functions, line_batch.predictions):
            if not prediction.vulnerable:
                continue
            cwe = cwe_batch.predictions[vuln_count]
            sev = sev_batch.predictions[vuln_count]
            weakness = weaknesses[vuln_count]

            scores = reinsert_placeholders(
                list(prediction.line_scores), list(function.shift_map)
            )
            span = function.range.end.line - function.range.start.line + 1
            ranked = rank_lines(scores[:span], function.range.start.line)
            selected = ranked[: self._config.max_indicator_lines]
            for line_number, _ in selected:
                if line_number >= len(lines):
                    continue
                diagnostics.extend(
                    self._line_diagnostics(
                        line_range(lines[line_number], line_number),
                        line_number,
                        cwe,
                        sev,
                        weakness,
                    )
                )
            logger.debug(
                f"Function diagnostics built (start_line={function.range.start.line} "
                f"cwe={cwe.label} lines={[line for line, _ in selected]})"
            )
            vuln_count += 1
        return diagnostics

    def _line_diagnostics(
        self,
        diagnostic_range: Range,
        line_number: int,
        cwe: CwePrediction,
        sev: SevPrediction,
        weakness: WeaknessRecord,
    ) -> list[Diagnostic]:
        severity = self._config.diagnostic_severity
        href = reference_url(cwe.cwe_id)
        if self._config.detail_level == "fluent":
            message = fluent_message(cwe, sev, weakness)
        else:
            message = self.verbose_message(line_number, cwe, sev, weakness)
        built = [
            Diagnostic(
                range=diagnostic_range,
                message=message,
                severity=severity,
                code=cwe.label,
                href=href,
            )
        ]
        if self._config.show_description:
            built.append(
                Diagnostic(
                    range=diagnostic_range,
                    message=weakness.description,
                    severity=severity,
                    code=cwe.label,
                    href=href,
                )
            )
        return built

    def verbose_message(
        self,
        line_number: int,
        cwe: CwePrediction,
        sev: SevPrediction,
        weakness: WeaknessRecord,
    ) -> str:
        """Concatenate the enabled fields, trimming any trailing separator."""
        config = self._config
        message = ""
        if config.show_line_number:
            message += f"Line {line_number + 1}{VERBOSE_SEPARATOR}"
        if config.show_cwe_id:
            message += f"{cwe.label}"
            if config.show_confidence_score:
                message += f" ({cwe.id_probability:.0%})"
            message += VERBOSE_SEPARATOR
        if config.show_cwe_summary:
            message += f"{weakness.name}{VERBOSE_SEPARATOR}"
        if config.show_cwe_type:
            message += f"Type: {cwe.abstract_type}"
            if config.show_confidence_score:
                message += f" ({cwe.type_probability:.0%})"
            message += VERBOSE_SEPARATOR
        if config.show_severity_level:
            message += f"Severity: {sev.severity_class}{VERBOSE_SEPARATOR}"
        if config.show_severity_score:
            message += f"Score: {sev.score:.1f}{VERBOSE_SEPARATOR}"
        message = message.removesuffix(VERBOSE_SEPARATOR)
        return message or cwe.label


def fluent_message(
    cwe: CwePrediction, sev: SevPrediction, weakness: WeaknessRecord
) -> str:
    return (
        f"{sev.severity_class} severity vulnerability (score {sev.score:.1f}) "
        f"matching {cwe.label}: {weakness.name} [{cwe.abstract_type}]"
    )

# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Inference port contract and typed prediction batches."""

import json
import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from bughunter.taxonomy import WeaknessKind

logger = logging.getLogger(__name__)

Stage = Literal["line", "cwe", "sev"]


class InferenceError(RuntimeError):
    """Represent an inference failure (transport, status, timeout or payload)."""


@dataclass(frozen=True)
class LinePrediction:
    """Line-stage result for one function.

    Attributes:
        vulnerable: Whether the function was flagged vulnerable.
        line_scores: One score per normalized line.
        probability: Function-level vulnerability probability, if reported.
    """

    vulnerable: bool
    line_scores: tuple[float, ...]
    probability: float | None = None


@dataclass(frozen=True)
class CwePrediction:
    """CWE-stage result for one vulnerable function."""

    kind: WeaknessKind
    cwe_id: int
    abstract_type: str
    id_probability: float
    type_probability: float

    @property
    def label(self) -> str:
        return f"CWE-{self.cwe_id}"


@dataclass(frozen=True)
class SevPrediction:
    """Severity-stage result for one vulnerable function."""

    score: float
    severity_class: str


@dataclass(frozen=True)
class LineBatch:
    predictions: tuple[LinePrediction, ...] = ()

    def vulnerable_indexes(self) -> list[int]:
        return [
            index
            for index, prediction in enumerate(self.predictions)
            if prediction.vulnerable
        ]


@dataclass(frozen=True)
class CweBatch:
    predictions: tuple[CwePrediction, ...] = ()


@dataclass(frozen=True)
class SevBatch:
    predictions: tuple[SevPrediction, ...] = ()


class InferenceEngine(Protocol):
    """Three-stage inference contract.

    Every batch returned is positionally aligned with the input list. An
    empty input list is valid and yields an empty batch.
    """

    async def line(self, functions: list[str]) -> LineBatch:
        """Detect vulnerable functions and score their lines.

        Raises:
            InferenceError: If the call or its payload fails.
        """

    async def cwe(self, functions: list[str]) -> CweBatch:
        """Classify the weakness of each vulnerable function.

        Raises:
            InferenceError: If the call or its payload fails.
        """

    async def sev(self, functions: list[str]) -> SevBatch:
        """Score the severity of each vulnerable function.

        Raises:
            InferenceError: If the call or its payload fails.
        """


def decode_payload(raw: str | bytes) -> dict[str, object]:
    """Decode a JSON response, unwrapping one level of double encoding.

    Args:
        raw: Response body.

    Returns:
        Decoded JSON object.

    Raises:
        InferenceError: If the body is not a JSON object.
    """
    try:
        decoded = json.loads(raw)
        if isinstance(decoded, str):
            decoded = json.loads(decoded)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InferenceError(f"Response is not valid JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise InferenceError(
            f"Response must be a JSON object, got {type(decoded).__name__}"
        )
    return decoded


def parse_line_batch(payload: dict[str, object], expected: int) -> LineBatch:
    """Validate a line-stage payload.

    Raises:
        InferenceError: If keys are missing, mistyped or misaligned.
    """
    flags = _column(payload, "batch_vul_pred", expected)
    scores = _column(payload, "batch_line_scores", expected)
    probabilities = (
        _column(payload, "batch_vul_pred_prob", expected)
        if "batch_vul_pred_prob" in payload
        else [None] * expected
    )
    predictions = []
    for flag, line_scores, probability in zip(flags, scores, probabilities):
        if flag not in (0, 1) or isinstance(flag, float):
            raise InferenceError(f"Invalid vulnerability flag: {flag!r}")
        if not isinstance(line_scores, list):
            raise InferenceError(f"Line scores must be a list, got {line_scores!r}")
        predictions.append(
            LinePrediction(
                vulnerable=bool(flag),
                line_scores=tuple(_number(score, "line score") for score in line_scores),
                probability=(
                    None if probability is None else _number(probability, "probability")
                ),
            )
        )
    return LineBatch(predictions=tuple(predictions))


def parse_cwe_batch(payload: dict[str, object], expected: int) -> CweBatch:
    """Validate a CWE-stage payload.

    Raises:
        InferenceError: If keys are missing, mistyped or misaligned.
    """
    ids = _column(payload, "cwe_id", expected)
    id_probs = _column(payload, "cwe_id_prob", expected)
    types = _column(payload, "cwe_type", expected)
    type_probs = _column(payload, "cwe_type_prob", expected)
    kinds = (
        _column(payload, "cwe_kind", expected)
        if "cwe_kind" in payload
        else [None] * expected
    )
    predictions = []
    for cwe_id, id_prob, abstract_type, type_prob, kind in zip(
        ids, id_probs, types, type_probs, kinds
    ):
        abstract_type = str(abstract_type)
        predictions.append(
            CwePrediction(
                kind=_weakness_kind(kind, abstract_type),
                cwe_id=parse_cwe_id(cwe_id),
                abstract_type=abstract_type,
                id_probability=_number(id_prob, "cwe_id_prob"),
                type_probability=_number(type_prob, "cwe_type_prob"),
            )
        )
    return CweBatch(predictions=tuple(predictions))


def parse_sev_batch(payload: dict[str, object], expected: int) -> SevBatch:
    """Validate a severity-stage payload.

    Raises:
        InferenceError: If keys are missing, mistyped or misaligned.
    """
    scores = _column(payload, "batch_sev_score", expected)
    classes = _column(payload, "batch_sev_class", expected)
    return SevBatch(
        predictions=tuple(
            SevPrediction(score=_number(score, "severity score"), severity_class=str(cls))
            for score, cls in zip(scores, classes)
        )
    )


def parse_cwe_id(value: object) -> int:
    """Parse ``"CWE-79"``, ``"79"`` or ``79`` to ``79``.

    Raises:
        InferenceError: If the value is not a CWE identifier.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().upper().removeprefix("CWE-")
        if text.isdigit():
            return int(text)
    raise InferenceError(f"Invalid CWE identifier: {value!r}")


def _weakness_kind(kind: object, abstract_type: str) -> WeaknessKind:
    if kind is None:
        return "Category" if abstract_type == "Category" else "Base"
    if kind in ("Base", "Category"):
        return kind
    raise InferenceError(f"Invalid weakness kind: {kind!r}")


def _column(payload: dict[str, object], key: str, expected: int) -> list[object]:
    values = payload.get(key)
    if not isinstance(values, list):
        raise InferenceError(f"Payload key {key!r} missing or not a list")
    if len(values) != expected:
        raise InferenceError(
            f"Payload key {key!r} has {len(values)} entries, expected {expected}"
        )
    return values


def _number(value: object, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InferenceError(f"Invalid {field}: {value!r}")
    return float(value)

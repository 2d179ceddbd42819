# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Progress stage signalling for analysis and initialization."""

import logging
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class ProgressStage(str, Enum):
    """Stages reported to a presentation layer."""

    INIT_START = "init_start"
    DOWNLOAD_TAXONOMY = "download_taxonomy"
    DOWNLOAD_MODEL = "download_model"
    INIT_END = "init_end"
    ANALYSIS_START = "analysis_start"
    FETCH_SYMBOLS = "fetch_symbols"
    INFERENCE_LINE = "inference_line"
    INFERENCE_CWE = "inference_cwe"
    INFERENCE_SEV = "inference_sev"
    PREDICTION_END = "prediction_end"
    CWE_SEARCH = "cwe_search"
    CONSTRUCT_DIAGNOSTICS = "construct_diagnostics"
    ANALYSIS_END = "analysis_end"
    IGNORED = "ignored"
    NO_DOCUMENT = "no_document"
    ERROR = "error"


TERMINAL_STAGES = frozenset(
    {
        ProgressStage.INIT_END,
        ProgressStage.ANALYSIS_END,
        ProgressStage.IGNORED,
        ProgressStage.NO_DOCUMENT,
        ProgressStage.ERROR,
    }
)


class ProgressListener(Protocol):
    """Receive stage transitions."""

    def on_stage(self, stage: ProgressStage, subject: str) -> None:
        """Handle a stage transition for ``subject`` (a document uri or resource)."""


class NullProgress:
    """Discard stage transitions."""

    def on_stage(self, stage: ProgressStage, subject: str) -> None:
        return None


class LoggingProgress:
    """Log stage transitions."""

    def on_stage(self, stage: ProgressStage, subject: str) -> None:
        level = logging.WARNING if stage is ProgressStage.ERROR else logging.INFO
        logger.log(
            level,
            "analysis_progress stage=%s subject=%s terminal=%s",
            stage.value,
            subject,
            stage in TERMINAL_STAGES,
        )


class RecordingProgress(LoggingProgress):
    """Log stage transitions and keep them in order for later reporting."""

    def __init__(self) -> None:
        self.stages: list[tuple[ProgressStage, str]] = []

    def on_stage(self, stage: ProgressStage, subject: str) -> None:
        super().on_stage(stage, subject)
        self.stages.append((stage, subject))

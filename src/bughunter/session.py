# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Analysis session: the staged extract, infer and diagnose pipeline."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from bughunter.diagnostics import Diagnostic, DiagnosticBuilder, DiagnosticCollection
from bughunter.extractor import (
    EmptyDocumentError,
    ExtractionError,
    FunctionExtractor,
    FunctionRecord,
)
from bughunter.inference import (
    CweBatch,
    InferenceEngine,
    InferenceError,
    LineBatch,
    SevBatch,
)
from bughunter.progress import NullProgress, ProgressListener, ProgressStage
from bughunter.symbols import Document
from bughunter.taxonomy import TaxonomyError

logger = logging.getLogger(__name__)

SessionStatus = Literal["completed", "ignored"]


class SessionState(str, Enum):
    CREATED = "created"
    EXTRACTING = "extracting"
    LINE_INFERRING = "line_inferring"
    FILTERING = "filtering"
    CLASSIFYING_AND_SCORING = "classifying_and_scoring"
    BUILDING_DIAGNOSTICS = "building_diagnostics"
    DONE = "done"
    ABORTED = "aborted"


class CancellationToken:
    """One-way flag set by the supersession controller."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


@dataclass(frozen=True)
class SessionResult:
    """Outcome of a session that did not fail.

    Attributes:
        status: ``completed`` when diagnostics were published, ``ignored``
            when a newer session superseded this one.
        diagnostics: Published diagnostics; empty when ignored.
    """

    status: SessionStatus
    diagnostics: tuple[Diagnostic, ...] = ()


class AnalysisSession:
    """Run one analysis over one document snapshot."""

    def __init__(
        self,
        document: Document,
        extractor: FunctionExtractor,
        engine: InferenceEngine,
        builder: DiagnosticBuilder,
        collection: DiagnosticCollection,
        token: CancellationToken | None = None,
        progress: ProgressListener | None = None,
    ) -> None:
        """Initialize a session.

        Args:
            document: Document snapshot to analyze.
            extractor: Function extractor.
            engine: Inference backend selected for this session.
            builder: Diagnostic builder.
            collection: Diagnostic collection to publish into.
            token: Supersession token; read-only from the session's side.
            progress: Optional stage listener.
        """
        self.document = document
        self.created_at = datetime.now(tz=timezone.utc)
        self.state = SessionState.CREATED
        self.functions: list[FunctionRecord] = []
        self.vulnerable_functions: list[str] = []
        self.line_batch = LineBatch()
        self.cwe_batch = CweBatch()
        self.sev_batch = SevBatch()
        self._extractor = extractor
        self._engine = engine
        self._builder = builder
        self._collection = collection
        self._token = token or CancellationToken()
        self._progress = progress or NullProgress()

    @property
    def superseded(self) -> bool:
        return self._token.cancelled

    async def run(self) -> SessionResult:
        """Run the pipeline to completion, supersession or failure.

        Returns:
            The session result. Supersession is not an error.

        Raises:
            ExtractionError: If functions cannot be extracted.
            InferenceError: If any inference stage fails.
            TaxonomyError: If weakness resolution fails.
        """
        self._report(ProgressStage.ANALYSIS_START)
        try:
            return await self._run_pipeline()
        except (ExtractionError, InferenceError, TaxonomyError) as exc:
            self.state = SessionState.ABORTED
            logger.warning(
                f"Analysis aborted (uri={self.document.uri} "
                f"version={self.document.version} error={exc})"
            )
            self._report(
                ProgressStage.NO_DOCUMENT
                if isinstance(exc, EmptyDocumentError)
                else ProgressStage.ERROR
            )
            raise

    async def _run_pipeline(self) -> SessionResult:
        if self.superseded:
            return self._ignore()
        self.state = SessionState.EXTRACTING
        self._report(ProgressStage.FETCH_SYMBOLS)
        self.functions = await self._extractor.extract(self.document)

        if self.superseded:
            return self._ignore()
        self.state = SessionState.LINE_INFERRING
        if self.functions:
            self._report(ProgressStage.INFERENCE_LINE)
            self.line_batch = await self._engine.line(
                [function.text for function in self.functions]
            )
            if len(self.line_batch.predictions) != len(self.functions):
                raise InferenceError(
                    f"Line batch has {len(self.line_batch.predictions)} entries "
                    f"for {len(self.functions)} functions"
                )
        self.vulnerable_functions = [
            self.functions[index].text for index in self.line_batch.vulnerable_indexes()
        ]

        self.state = SessionState.FILTERING
        if self.vulnerable_functions:
            if self.superseded:
                return self._ignore()
            self.state = SessionState.CLASSIFYING_AND_SCORING
            await self._classify_and_score()
        self._report(ProgressStage.PREDICTION_END)

        if self.superseded:
            return self._ignore()
        self.state = SessionState.BUILDING_DIAGNOSTICS
        self._report(ProgressStage.CWE_SEARCH)
        diagnostics = await self._builder.build(
            document=self.document,
            functions=self.functions,
            line_batch=self.line_batch,
            cwe_batch=self.cwe_batch,
            sev_batch=self.sev_batch,
        )
        if self.superseded:
            return self._ignore()
        self._report(ProgressStage.CONSTRUCT_DIAGNOSTICS)
        self._collection.replace(self.document.uri, diagnostics)
        self.state = SessionState.DONE
        self._report(ProgressStage.ANALYSIS_END)
        logger.info(
            f"Analysis completed (uri={self.document.uri} functions={len(self.functions)} "
            f"vulnerable={len(self.vulnerable_functions)} diagnostics={len(diagnostics)})"
        )
        return SessionResult(status="completed", diagnostics=tuple(diagnostics))

    async def _classify_and_score(self) -> None:
        self._report(ProgressStage.INFERENCE_CWE)
        self._report(ProgressStage.INFERENCE_SEV)
        cwe_task = asyncio.ensure_future(self._engine.cwe(self.vulnerable_functions))
        sev_task = asyncio.ensure_future(self._engine.sev(self.vulnerable_functions))
        try:
            self.cwe_batch, self.sev_batch = await asyncio.gather(cwe_task, sev_task)
        except BaseException:
            for task in (cwe_task, sev_task):
                task.cancel()
            # Let the cancelled call release its process or connection first.
            await asyncio.gather(cwe_task, sev_task, return_exceptions=True)
            raise
        expected = len(self.vulnerable_functions)
        if len(self.cwe_batch.predictions) != expected or len(
            self.sev_batch.predictions
        ) != expected:
            raise InferenceError(
                f"CWE/severity batches have {len(self.cwe_batch.predictions)}/"
                f"{len(self.sev_batch.predictions)} entries for {expected} vulnerable functions"
            )

    def _ignore(self) -> SessionResult:
        self.state = SessionState.ABORTED
        logger.info(
            f"Analysis superseded (uri={self.document.uri} version={self.document.version})"
        )
        self._report(ProgressStage.IGNORED)
        return SessionResult(status="ignored")

    def _report(self, stage: ProgressStage) -> None:
        self._progress.on_stage(stage, self.document.uri)

# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Session supersession and debounced analysis triggers."""

import asyncio
import logging
from typing import Awaitable, Callable

from bughunter.diagnostics import DiagnosticBuilder, DiagnosticCollection
from bughunter.extractor import ExtractionError, FunctionExtractor
from bughunter.inference import InferenceEngine, InferenceError
from bughunter.progress import ProgressListener
from bughunter.session import AnalysisSession, CancellationToken, SessionResult
from bughunter.symbols import Document
from bughunter.taxonomy import TaxonomyError

logger = logging.getLogger(__name__)


class SupersessionController:
    """Track live sessions per document; the latest started session wins."""

    def __init__(
        self,
        extractor: FunctionExtractor,
        engine: InferenceEngine,
        builder: DiagnosticBuilder,
        collection: DiagnosticCollection,
        progress: ProgressListener | None = None,
    ) -> None:
        self._extractor = extractor
        self._engine = engine
        self._builder = builder
        self._collection = collection
        self._progress = progress
        self._live: dict[str, list[tuple[AnalysisSession, CancellationToken]]] = {}

    def start(self, document: Document) -> AnalysisSession:
        """Create a session for ``document`` and supersede all earlier ones."""
        superseded = self.supersede(document.uri)
        token = CancellationToken()
        session = AnalysisSession(
            document=document,
            extractor=self._extractor,
            engine=self._engine,
            builder=self._builder,
            collection=self._collection,
            token=token,
            progress=self._progress,
        )
        self._live.setdefault(document.uri, []).append((session, token))
        logger.debug(
            f"Session started (uri={document.uri} version={document.version} "
            f"superseded={superseded})"
        )
        return session

    def supersede(self, uri: str) -> int:
        """Mark every live session for ``uri`` ignored; return how many."""
        count = 0
        for _, token in self._live.get(uri, []):
            if not token.cancelled:
                token.cancel()
                count += 1
        return count

    def supersede_all(self) -> int:
        return sum(self.supersede(uri) for uri in list(self._live))

    def finish(self, session: AnalysisSession) -> None:
        entries = self._live.get(session.document.uri, [])
        remaining = [entry for entry in entries if entry[0] is not session]
        if remaining:
            self._live[session.document.uri] = remaining
        else:
            self._live.pop(session.document.uri, None)

    def latest(self, uri: str) -> AnalysisSession | None:
        entries = self._live.get(uri)
        return entries[-1][0] if entries else None

    def live_count(self, uri: str) -> int:
        return len(self._live.get(uri, []))

    async def trigger(self, document: Document) -> SessionResult | None:
        """Start and run a session for ``document``.

        Returns:
            The session result, or ``None`` if the session failed. Failures
            are logged here so a trigger loop keeps running.
        """
        session = self.start(document)
        try:
            return await session.run()
        except (ExtractionError, InferenceError, TaxonomyError) as exc:
            logger.warning(
                f"Triggered analysis failed (uri={document.uri} "
                f"version={document.version} error={exc})"
            )
            return None
        finally:
            self.finish(session)


class Debouncer:
    """Coalesce bursts of change events per document."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[Document], Awaitable[object]],
    ) -> None:
        """Initialize the debouncer.

        Args:
            delay: Seconds of inactivity before ``callback`` runs.
            callback: Coroutine function invoked with the last document seen.

        Raises:
            ValueError: If ``delay`` is not greater than zero.
        """
        if delay <= 0:
            raise ValueError("delay must be > 0")
        self._delay = delay
        self._callback = callback
        self._pending: dict[str, asyncio.Task[None]] = {}
        self._running: set[asyncio.Task[None]] = set()

    def schedule(self, document: Document) -> None:
        """Restart the delay for ``document.uri`` with the newest snapshot."""
        pending = self._pending.pop(document.uri, None)
        if pending is not None:
            pending.cancel()
        task = asyncio.ensure_future(self._fire_later(document))
        self._pending[document.uri] = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    def pending(self, uri: str) -> bool:
        return uri in self._pending

    async def drain(self) -> None:
        """Wait for every scheduled and running callback to finish."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def cancel(self) -> None:
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()

    async def _fire_later(self, document: Document) -> None:
        await asyncio.sleep(self._delay)
        # Once the callback starts it is no longer cancellable from here;
        # supersession takes over.
        if self._pending.get(document.uri) is asyncio.current_task():
            del self._pending[document.uri]
        await self._callback(document)

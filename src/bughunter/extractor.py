# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Function extraction from editor documents."""

import asyncio
import logging
from dataclasses import dataclass

from bughunter.normalizer import normalize_function
from bughunter.symbols import FUNCTION_KIND, Document, Range, SymbolEntry, SymbolProvider

logger = logging.getLogger(__name__)

SYMBOL_POLL_TIMEOUT_SECONDS: float = 3.0
SYMBOL_POLL_INTERVAL_SECONDS: float = 0.1


class ExtractionError(RuntimeError):
    """Represent a failure to extract functions from a document."""


class EmptyDocumentError(ExtractionError):
    """The document has no lines."""


class SymbolsUnavailableError(ExtractionError):
    """The symbol provider produced no result within the retry window."""


@dataclass(frozen=True)
class FunctionRecord:
    """Represent one normalized function.

    Attributes:
        text: Normalized function text (no comments, no blank lines).
        shift_map: Ascending indexes of lines dropped during normalization.
        range: Range of the function in the untouched document.
    """

    text: str
    shift_map: tuple[int, ...]
    range: Range


class FunctionExtractor:
    """Extract normalized function records using a symbol provider."""

    def __init__(
        self,
        symbol_provider: SymbolProvider,
        poll_timeout: float = SYMBOL_POLL_TIMEOUT_SECONDS,
        poll_interval: float = SYMBOL_POLL_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the extractor.

        Args:
            symbol_provider: Editor symbol provider.
            poll_timeout: Seconds to keep polling a provider that is not ready.
            poll_interval: Seconds between polls.

        Raises:
            ValueError: If ``poll_timeout`` is negative or ``poll_interval``
                is not greater than zero.
        """
        if poll_timeout < 0:
            raise ValueError("poll_timeout must be >= 0")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self._symbol_provider = symbol_provider
        self._poll_timeout = poll_timeout
        self._poll_interval = poll_interval

    async def extract(self, document: Document) -> list[FunctionRecord]:
        """Extract function records from a document.

        Args:
            document: Document snapshot.

        Returns:
            Records in symbol-provider order.

        Raises:
            EmptyDocumentError: If the document has no lines.
            SymbolsUnavailableError: If symbols cannot be fetched in time.
        """
        lines = document.lines
        if not lines:
            logger.warning(f"Document has no lines (uri={document.uri})")
            raise EmptyDocumentError(f"Document has no lines: {document.uri}")

        symbols = await self._fetch_symbols(document)
        records: list[FunctionRecord] = []
        for symbol in symbols:
            if symbol.kind != FUNCTION_KIND:
                continue
            start_line = symbol.range.start.line
            end_line = min(symbol.range.end.line, len(lines) - 1)
            if start_line > end_line:
                logger.warning(
                    f"Skipping symbol outside document (uri={document.uri} "
                    f"start_line={start_line} line_count={len(lines)})"
                )
                continue
            raw = "\n".join(
                line.lstrip() for line in lines[start_line : end_line + 1]
            )
            text, shift_map = normalize_function(raw)
            records.append(
                FunctionRecord(
                    text=text,
                    shift_map=tuple(shift_map),
                    range=Range.from_lines(start_line, end_line),
                )
            )
        logger.info(
            f"Function extraction completed (uri={document.uri} "
            f"symbols={len(symbols)} functions={len(records)})"
        )
        return records

    async def _fetch_symbols(self, document: Document) -> list[SymbolEntry]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._poll_timeout
        last_error: Exception | None = None
        while True:
            try:
                symbols = await self._symbol_provider.document_symbols(document)
            except (OSError, RuntimeError, ValueError) as exc:
                last_error = exc
                symbols = None
            if symbols is not None:
                return list(symbols)
            if loop.time() >= deadline:
                break
            await asyncio.sleep(self._poll_interval)

        logger.warning(
            f"Symbol provider not ready (uri={document.uri} "
            f"timeout={self._poll_timeout} error={last_error})"
        )
        raise SymbolsUnavailableError(
            f"No symbols for {document.uri} within {self._poll_timeout}s"
        ) from last_error

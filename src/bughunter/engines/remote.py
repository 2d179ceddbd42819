# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Inference engine backed by the on-premise or cloud HTTP service."""

import asyncio
import json
import logging
import time

import httpx

from bughunter.inference import (
    CweBatch,
    InferenceError,
    LineBatch,
    SevBatch,
    Stage,
    decode_payload,
    parse_cwe_batch,
    parse_line_batch,
    parse_sev_batch,
)

logger = logging.getLogger(__name__)

STAGE_ENDPOINTS: dict[str, str] = {
    "line": "predict",
    "cwe": "cwe",
    "sev": "sev",
}


class RemoteEngine:
    """POST function batches to ``{base_url}/api/v1/{cpu|gpu}/{endpoint}``."""

    def __init__(
        self,
        base_url: str,
        gpu: bool = False,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize engine configuration.

        Args:
            base_url: Inference service base URL.
            gpu: Use the GPU endpoints.
            timeout: Seconds allowed per request.
            transport: Optional transport override for the HTTP client.
        """
        self._base_url = base_url.rstrip("/")
        self._gpu = gpu
        self._timeout = timeout
        self._transport = transport

    def endpoint_url(self, stage: Stage) -> str:
        device = "gpu" if self._gpu else "cpu"
        return f"{self._base_url}/api/v1/{device}/{STAGE_ENDPOINTS[stage]}"

    async def line(self, functions: list[str]) -> LineBatch:
        if not functions:
            return LineBatch()
        return parse_line_batch(await self._post("line", functions), len(functions))

    async def cwe(self, functions: list[str]) -> CweBatch:
        if not functions:
            return CweBatch()
        return parse_cwe_batch(await self._post("cwe", functions), len(functions))

    async def sev(self, functions: list[str]) -> SevBatch:
        if not functions:
            return SevBatch()
        return parse_sev_batch(await self._post("sev", functions), len(functions))

    async def _post(self, stage: Stage, functions: list[str]) -> dict[str, object]:
        url = self.endpoint_url(stage)
        logger.info(
            f"Sending inference request (stage={stage} url={url} functions={len(functions)})"
        )
        started_at = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._send(url, functions), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                f"Inference request timed out (stage={stage} url={url} "
                f"timeout={self._timeout})"
            )
            raise InferenceError(
                f"{stage} inference timed out after {self._timeout}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                f"Inference request rejected (stage={stage} url={url} "
                f"status={exc.response.status_code})"
            )
            raise InferenceError(
                f"{stage} inference returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                f"Inference request failed (stage={stage} url={url} error={exc!r})"
            )
            raise InferenceError(f"{stage} inference request failed: {exc!r}") from exc

        logger.info(
            f"Received inference response (stage={stage} "
            f"elapsed_s={time.monotonic() - started_at:.2f})"
        )
        return decode_payload(response.content)

    async def _send(self, url: str, functions: list[str]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(
                url,
                content=json.dumps(functions),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            return response

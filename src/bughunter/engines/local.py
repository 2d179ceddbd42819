# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Inference engine backed by a local model subprocess."""

import asyncio
import json
import logging
import time
from pathlib import Path

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


class LocalEngine:
    """Run ``<python> <script> <mode> <True|False>`` once per inference call.

    The script reads one JSON array of function strings from stdin and writes
    one JSON object line to stdout.
    """

    def __init__(
        self,
        script_path: Path,
        python_executable: str = "python3",
        gpu: bool = False,
        timeout: float = 60.0,
    ) -> None:
        """Initialize engine configuration.

        Args:
            script_path: Inference script path.
            python_executable: Interpreter used to run the script.
            gpu: Pass the GPU flag to the script.
            timeout: Seconds allowed per call before the process is killed.
        """
        self._script_path = script_path
        self._python_executable = python_executable
        self._gpu = gpu
        self._timeout = timeout

    async def line(self, functions: list[str]) -> LineBatch:
        if not functions:
            return LineBatch()
        return parse_line_batch(await self._run("line", functions), len(functions))

    async def cwe(self, functions: list[str]) -> CweBatch:
        if not functions:
            return CweBatch()
        return parse_cwe_batch(await self._run("cwe", functions), len(functions))

    async def sev(self, functions: list[str]) -> SevBatch:
        if not functions:
            return SevBatch()
        return parse_sev_batch(await self._run("sev", functions), len(functions))

    async def _run(self, stage: Stage, functions: list[str]) -> dict[str, object]:
        logger.info(
            f"Starting local inference (stage={stage} functions={len(functions)} "
            f"gpu={self._gpu})"
        )
        started_at = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                self._python_executable,
                str(self._script_path),
                stage,
                "True" if self._gpu else "False",
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.warning(
                f"Local inference could not start (stage={stage} "
                f"script={self._script_path} error={exc})"
            )
            raise InferenceError(str(exc)) from exc

        request = (json.dumps(functions) + "\n").encode("utf-8")
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(request), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                f"Local inference timed out (stage={stage} timeout={self._timeout})"
            )
            raise InferenceError(
                f"Local {stage} inference timed out after {self._timeout}s"
            ) from exc
        finally:
            # Timeouts and task cancellation both leave the child running.
            if process.returncode is None:
                process.kill()
                await process.wait()
                logger.info(f"Killed local inference process (stage={stage} pid={process.pid})")

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            logger.warning(
                f"Local inference failed (stage={stage} returncode={process.returncode} "
                f"stderr={detail})"
            )
            raise InferenceError(
                f"Local {stage} inference exited with {process.returncode}: {detail}"
            )

        try:
            output = stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.warning(f"Local inference output is not UTF-8 (stage={stage} error={exc})")
            raise InferenceError(f"Local {stage} inference output is not UTF-8") from exc
        response_line = next((line for line in output.splitlines() if line.strip()), "")
        if not response_line:
            raise InferenceError(f"Local {stage} inference produced no output")
        logger.info(
            f"Received local inference response (stage={stage} "
            f"elapsed_ms={int((time.monotonic() - started_at) * 1000)})"
        )
        return decode_payload(response_line)

# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""One-time download of model files and the CWE catalog."""

import asyncio
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

import httpx

from bughunter.config import MODEL_FILE_NAMES, TAXONOMY_FILE_NAME, Config
from bughunter.progress import NullProgress, ProgressListener, ProgressStage

logger = logging.getLogger(__name__)

MODEL_BASE_URL: str = (
    "https://object-store.rc.nectar.org.au/v1/"
    "AUTH_bec3bd546fd54995896239e9ff3d4c4f/AIBugHunterModels/models"
)
CWE_LIST_URL: str = "https://cwe.mitre.org/data/xml/cwec_latest.xml.zip"
DOWNLOAD_TIMEOUT_SECONDS: float = 300.0

Fetcher = Callable[[str, Path], Awaitable[None]]


class BootstrapError(RuntimeError):
    """Represent a resource that could not be fetched after all retries."""


@dataclass(frozen=True)
class Resource:
    """A file the analysis depends on.

    Attributes:
        name: Short resource name for logs.
        url: Download URL.
        path: Final location on disk.
        archive: ``True`` when ``url`` serves a zip holding one XML member.
    """

    name: str
    url: str
    path: Path
    archive: bool = False


def default_resources(config: Config) -> list[Resource]:
    resources = [
        Resource(
            name="taxonomy",
            url=CWE_LIST_URL,
            path=config.resource_dir / TAXONOMY_FILE_NAME,
            archive=True,
        )
    ]
    if config.inference_mode == "local":
        resources.extend(
            Resource(
                name=f"{stage}_model",
                url=f"{MODEL_BASE_URL}/{file_name}",
                path=config.model_path(stage),
            )
            for stage, file_name in MODEL_FILE_NAMES.items()
        )
    return resources


async def download_file(url: str, destination: Path) -> None:
    """Stream ``url`` to ``destination`` via a temporary sibling file.

    Raises:
        httpx.HTTPError: If the download fails.
        OSError: If the file cannot be written.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")
    async with httpx.AsyncClient(
        timeout=DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True
    ) as client:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            with partial.open("wb") as handle:
                async for chunk in response.aiter_bytes():
                    handle.write(chunk)
    partial.replace(destination)


def extract_xml_member(archive_path: Path, destination: Path) -> None:
    """Extract the first ``.xml`` member of a zip archive to ``destination``.

    Raises:
        zipfile.BadZipFile: If the archive is corrupt.
        ValueError: If the archive holds no XML member.
    """
    with zipfile.ZipFile(archive_path) as archive:
        member = next(
            (name for name in archive.namelist() if name.lower().endswith(".xml")),
            None,
        )
        if member is None:
            raise ValueError(f"No XML member in archive {archive_path}")
        destination.write_bytes(archive.read(member))


class ResourceBootstrapper:
    """Make resources available once, with bounded retries and backoff."""

    def __init__(
        self,
        resources: list[Resource],
        fetcher: Fetcher = download_file,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        progress: ProgressListener | None = None,
    ) -> None:
        """Initialize the bootstrapper.

        Args:
            resources: Files to make available.
            fetcher: Coroutine function downloading a URL to a path.
            max_attempts: Attempts per resource before giving up.
            base_delay: First backoff delay in seconds; doubles per attempt.
            max_delay: Upper bound for a single backoff delay.
            progress: Optional stage listener.

        Raises:
            ValueError: If ``max_attempts`` is not greater than zero or a delay
                is negative.
        """
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("delays must be >= 0")
        self._resources = list(resources)
        self._fetcher = fetcher
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._progress = progress or NullProgress()
        self._lock = asyncio.Lock()
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def ensure_ready(self) -> None:
        """Fetch missing resources; concurrent callers share a single pass.

        Raises:
            BootstrapError: If a resource cannot be fetched.
        """
        if self._ready:
            return
        async with self._lock:
            if self._ready:
                return
            missing = [resource for resource in self._resources if not resource.path.exists()]
            self._progress.on_stage(ProgressStage.INIT_START, "resources")
            try:
                for resource in missing:
                    await self._fetch_with_retry(resource)
            except BootstrapError:
                self._progress.on_stage(ProgressStage.ERROR, "resources")
                raise
            self._ready = True
            self._progress.on_stage(ProgressStage.INIT_END, "resources")
            logger.info(
                f"Resources ready (total={len(self._resources)} fetched={len(missing)})"
            )

    async def _fetch_with_retry(self, resource: Resource) -> None:
        stage = (
            ProgressStage.DOWNLOAD_TAXONOMY
            if resource.archive
            else ProgressStage.DOWNLOAD_MODEL
        )
        self._progress.on_stage(stage, resource.name)
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._fetch(resource)
                return
            except (httpx.HTTPError, OSError, ValueError, zipfile.BadZipFile) as exc:
                last_error = exc
                logger.warning(
                    f"Resource fetch failed (name={resource.name} attempt={attempt} "
                    f"max_attempts={self._max_attempts} error={exc!r})"
                )
            if attempt < self._max_attempts:
                await asyncio.sleep(self.backoff_delay(attempt))
        raise BootstrapError(
            f"Could not fetch {resource.name} after {self._max_attempts} attempts"
        ) from last_error

    def backoff_delay(self, attempt: int) -> float:
        return min(self._base_delay * 2 ** (attempt - 1), self._max_delay)

    async def _fetch(self, resource: Resource) -> None:
        if not resource.archive:
            await self._fetcher(resource.url, resource.path)
            return
        archive_path = resource.path.with_name(resource.path.name + ".zip")
        await self._fetcher(resource.url, archive_path)
        try:
            await asyncio.to_thread(extract_xml_member, archive_path, resource.path)
        finally:
            archive_path.unlink(missing_ok=True)

"""Resolution of a chart reference to chart metadata and local content.

A chart reference is either a path to a chart directory on local storage or any
reference understood by `helm fetch` (e.g. `stable/redis`, a chart archive url
or an `oci://` reference). Remote charts are fetched into a cache directory
and the resolved chart is copied into the chart working path, where it is
picked up by the render step.
"""

from abc import ABC, abstractmethod
import asyncio
import hashlib
import logging
from pathlib import Path
import shutil

import aiofiles
from aiofiles.ospath import exists, isdir
from slugify import slugify
import yaml

from . import command
from .exceptions import (
    CommandException,
    HelmException,
    InputException,
    ResolveException,
)
from .manifest import CHART_FILE, README_FILE, ChartMetadata

__all__ = [
    "ChartResolver",
    "HelmChartResolver",
    "content_sha",
]

_LOGGER = logging.getLogger(__name__)

HELM_BIN = "helm"


class ChartResolver(ABC):
    """Resolves a chart reference to the metadata of its current content."""

    @abstractmethod
    async def resolve_chart_metadata(self, chart_ref: str) -> ChartMetadata:
        """Return metadata for the chart reference."""


def content_sha(chart_dir: Path) -> str:
    """Return a fingerprint over the relative paths and contents of all files."""
    digest = hashlib.sha256()
    for path in sorted(p for p in chart_dir.rglob("*") if p.is_file()):
        digest.update(path.relative_to(chart_dir).as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")
    return digest.hexdigest()


def _replace_tree(src: Path, dest: Path) -> None:
    if dest.exists():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dest)


def _find_chart_dir(fetch_dir: Path) -> Path:
    """Return the directory `helm fetch --untar` unpacked the chart into."""
    charts = [path.parent for path in fetch_dir.glob(f"*/{CHART_FILE}")]
    if len(charts) != 1:
        raise InputException(
            f"Expected a single chart in {fetch_dir}, found {len(charts)}"
        )
    return charts[0]


class HelmChartResolver(ChartResolver):
    """Resolves local charts directly and remote charts with `helm fetch`."""

    def __init__(
        self, chart_path: Path, cache_dir: Path, helm_bin: str = HELM_BIN
    ) -> None:
        """Initialize HelmChartResolver."""
        self._chart_path = chart_path
        self._cache_dir = cache_dir
        self._helm_bin = helm_bin

    def _cache_path(self, chart_ref: str) -> Path:
        key = hashlib.sha256(chart_ref.encode("utf-8")).hexdigest()[:16]
        slug = slugify(chart_ref, max_length=50, lowercase=True, separator="-")
        return self._cache_dir / (slug or "chart") / key

    async def _fetch(self, chart_ref: str) -> Path:
        fetch_dir = self._cache_path(chart_ref)
        _LOGGER.info("Fetching chart %s", chart_ref)
        await asyncio.to_thread(shutil.rmtree, fetch_dir, True)
        await asyncio.to_thread(fetch_dir.mkdir, parents=True, exist_ok=True)
        await command.run(
            command.Command(
                [
                    self._helm_bin,
                    "fetch",
                    chart_ref,
                    "--untar",
                    "--untardir",
                    str(fetch_dir),
                ],
                exc=HelmException,
            )
        )
        return _find_chart_dir(fetch_dir)

    async def resolve_chart_metadata(self, chart_ref: str) -> ChartMetadata:
        """Fetch the chart into the working path and return its metadata."""
        try:
            if await isdir(chart_ref):
                chart_dir = Path(chart_ref)
            else:
                chart_dir = await self._fetch(chart_ref)

            working_path = self._chart_path.resolve()
            if working_path != chart_dir.resolve() and working_path.is_relative_to(
                chart_dir.resolve()
            ):
                raise InputException(
                    f"Chart directory {chart_ref} contains the chart working "
                    f"path {self._chart_path}, run from outside the chart"
                )

            chart_file = chart_dir / CHART_FILE
            if not await exists(chart_file):
                raise InputException(f"Chart {chart_ref} has no {CHART_FILE}")
            async with aiofiles.open(chart_file) as fd:
                doc = yaml.safe_load(await fd.read())
            readme: str | None = None
            if await exists(chart_dir / README_FILE):
                async with aiofiles.open(chart_dir / README_FILE) as fd:
                    readme = await fd.read()

            sha = await asyncio.to_thread(content_sha, chart_dir)
            metadata = ChartMetadata.parse_doc(chart_ref, doc, sha, readme=readme)
            if chart_dir.resolve() != self._chart_path.resolve():
                await asyncio.to_thread(_replace_tree, chart_dir, self._chart_path)
        except (CommandException, InputException, OSError, yaml.YAMLError) as err:
            raise ResolveException(
                f"resolve helm chart metadata for {chart_ref}: {err}"
            ) from err

        _LOGGER.debug(
            "Resolved chart %s (%s) with content sha %s",
            metadata.name,
            metadata.version,
            metadata.content_sha,
        )
        return metadata

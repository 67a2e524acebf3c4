"""Execution of the lifecycle steps of a release.

Steps run strictly in the order of the release, there is no branching between
steps and a failing step stops the run.
"""

from abc import ABC, abstractmethod
import asyncio
import logging
from pathlib import Path
import shutil

import aiofiles
from aiofiles.os import makedirs
from aiofiles.ospath import exists

from . import kustomize
from .config import ShipConfig
from .context import trace_context
from .exceptions import InputException
from .helm import Templater
from .manifest import (
    VALUES_FILE,
    HelmIntroStep,
    HelmValuesStep,
    KustomizeStep,
    MessageStep,
    Release,
    RenderStep,
    Step,
)

__all__ = [
    "UI",
    "ConsoleUI",
    "StepExecutor",
]

_LOGGER = logging.getLogger(__name__)


class UI(ABC):
    """Interaction with the operator."""

    @abstractmethod
    async def ask(self, question: str) -> str:
        """Ask a free text question and return the answer."""

    @abstractmethod
    def info(self, message: str) -> None:
        """Display a message."""


class ConsoleUI(UI):
    """Interacts with the operator on the terminal."""

    async def ask(self, question: str) -> str:
        """Prompt on stdout and read a line from stdin."""
        try:
            return await asyncio.to_thread(input, question)
        except EOFError:
            return ""

    def info(self, message: str) -> None:
        """Print the message."""
        print(message)


class StepExecutor:
    """Executes the lifecycle of a release."""

    def __init__(self, config: ShipConfig, templater: Templater, ui: UI) -> None:
        """Initialize StepExecutor."""
        self._config = config
        self._templater = templater
        self._ui = ui

    async def execute(self, release: Release) -> None:
        """Execute every step of the release in order."""
        total = len(release.lifecycle)
        for index, step in enumerate(release.lifecycle, start=1):
            _LOGGER.debug("Executing step %d/%d: %s", index, total, step.step_type)
            with trace_context(step.step_type):
                await self._execute_step(release, step)

    async def _execute_step(self, release: Release, step: Step) -> None:
        if isinstance(step, HelmIntroStep):
            await self._helm_intro(release)
        elif isinstance(step, HelmValuesStep):
            await self._helm_values()
        elif isinstance(step, RenderStep):
            await self._render(release)
        elif isinstance(step, KustomizeStep):
            await kustomize.overlay(
                Path(step.base_path),
                Path(step.dest),
                self._config.output_file,
                kustomize_bin=self._config.kustomize_bin,
            )
        elif isinstance(step, MessageStep):
            self._ui.info(step.contents)
        else:
            raise InputException(f"Unsupported lifecycle step: {step}")

    async def _helm_intro(self, release: Release) -> None:
        if release.metadata is None:
            raise InputException("Release has no chart metadata to introduce")
        chart = release.metadata.chart
        title = chart.name if not chart.version else f"{chart.name} {chart.version}"
        lines = [f"Deploying chart {title} from {chart.url}"]
        if chart.description:
            lines.append(chart.description)
        self._ui.info("\n".join(lines))

    async def _helm_values(self) -> None:
        """Seed the values file from the chart defaults unless already present."""
        values_file = self._config.values_file
        if await exists(values_file):
            _LOGGER.debug("Using existing values file %s", values_file)
            return
        await makedirs(values_file.parent, exist_ok=True)
        defaults = self._config.chart_path / VALUES_FILE
        content = ""
        if await exists(defaults):
            async with aiofiles.open(defaults) as fd:
                content = await fd.read()
        async with aiofiles.open(values_file, mode="w") as fd:
            await fd.write(content)
        _LOGGER.info("Wrote chart values to %s", values_file)

    async def _render(self, release: Release) -> None:
        if release.metadata is None:
            raise InputException("Release has no chart metadata to render")
        for asset in release.assets:
            # The destination only holds files from this render
            await asyncio.to_thread(shutil.rmtree, asset.dest, True)
            await self._templater.template(
                Path(asset.chart_root),
                asset,
                release.metadata,
                release.config_groups,
                self._config.template_context,
            )

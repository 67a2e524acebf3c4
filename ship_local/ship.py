"""The release lifecycle: init, update and watch.

- `init` resolves the configured chart, records it in the state and executes
  the release. When state already exists the operator is asked whether to
  discard it; declining raises `UseUpdateException`.
- `update` resolves the chart recorded in the state, picking up any upstream
  changes, and executes the release built from the new content.
- `watch` polls the chart recorded in the state until its content fingerprint
  no longer matches the recorded one.

The state is only ever mutated here, one entry point at a time.
"""

import asyncio
import logging

from .config import ShipConfig
from .context import trace_context
from .exceptions import (
    InputException,
    MissingStateException,
    ResolveException,
    ShipException,
    StateException,
    UseUpdateException,
)
from .helm import ForkHelmTool, Templater
from .lifecycle import UI, ConsoleUI, StepExecutor
from .manifest import ChartMetadata
from .release import build_raw_release, build_release
from .resolver import ChartResolver, HelmChartResolver
from .state import (
    FileStateStore,
    State,
    StateEmpty,
    StateLoaded,
    StateLoadError,
    StateStore,
)

__all__ = [
    "Ship",
    "new_ship",
]

_LOGGER = logging.getLogger(__name__)

_CONFIRM = "y"


class Ship:
    """Drives the release lifecycle against persisted state."""

    def __init__(
        self,
        config: ShipConfig,
        state: StateStore,
        resolver: ChartResolver,
        executor: StepExecutor,
        ui: UI,
    ) -> None:
        """Initialize Ship."""
        self._config = config
        self._state = state
        self._resolver = resolver
        self._executor = executor
        self._ui = ui

    def _missing(self, what: str) -> MissingStateException:
        return MissingStateException(
            f'No {what} found at {self._state.location}, please run "ship-local init"'
        )

    async def _require_state(self) -> State:
        """Return the persisted state or raise when there is none to work from."""
        result = await self._state.try_load()
        if isinstance(result, StateEmpty):
            _LOGGER.debug("State is missing")
            raise self._missing("state file")
        if isinstance(result, StateLoadError):
            raise StateException(
                f"Unable to load state file {self._state.location}: {result.error}"
            ) from result.error
        if isinstance(result, StateLoaded):
            return result.state
        raise StateException(f"Unexpected state load result: {result}")

    async def _state_exists(self) -> bool:
        result = await self._state.try_load()
        if isinstance(result, StateLoadError):
            _LOGGER.warning(
                "Ignoring unreadable state file %s: %s",
                self._state.location,
                result.error,
            )
            return False
        return isinstance(result, StateLoaded)

    async def _resolve(self, chart_ref: str) -> ChartMetadata:
        _LOGGER.debug("Fetching latest chart %s", chart_ref)
        try:
            return await self._resolver.resolve_chart_metadata(chart_ref)
        except ResolveException:
            raise
        except ShipException as err:
            raise ResolveException(
                f"resolve helm chart metadata for {chart_ref}: {err}"
            ) from err

    async def init(self) -> None:
        """Start a new release from the configured chart."""
        with trace_context("init"):
            if self._config.raw is not None:
                _LOGGER.info("Using raw resources from %s", self._config.raw)
                await self._executor.execute(
                    build_raw_release(self._config.raw, self._config)
                )
                return

            if await self._state_exists():
                _LOGGER.debug("State exists at %s", self._state.location)
                answer = await self._ui.ask(
                    f"State file found at {self._state.location}, "
                    "do you want to start from scratch? (y/N) "
                )
                if answer.strip(" \r\n").lower() != _CONFIRM:
                    raise UseUpdateException()
                await self._state.remove_state_file()

            if not (chart_ref := self._config.chart):
                raise InputException("No chart specified to initialize from")
            metadata = await self._resolve(chart_ref)
            await self._state.serialize_chart_url(chart_ref)
            release = build_release(metadata, self._config)
            await self._state.serialize_content_sha(metadata.content_sha)
            await self._executor.execute(release)

    async def update(self) -> None:
        """Re-render the release from the current content of the recorded chart."""
        with trace_context("update"):
            state = await self._require_state()
            if not (chart_ref := state.chart_url):
                raise self._missing("helm chart URL")

            metadata = await self._resolve(chart_ref)
            release = build_release(metadata, self._config)
            await self._executor.execute(release)
            await self._state.serialize_content_sha(metadata.content_sha)

    async def watch(
        self, interval: float | None = None, stop: asyncio.Event | None = None
    ) -> bool:
        """Poll the recorded chart until its content changes.

        Returns True once a new version is available, or False if `stop` was set
        before that happened. Errors from resolving the chart end the watch.
        """
        if interval is None:
            interval = self._config.watch_interval
        with trace_context("watch"):
            while stop is None or not stop.is_set():
                state = await self._require_state()
                if not (chart_ref := state.chart_url):
                    raise self._missing("current chart url")
                if not (last_sha := state.content_sha):
                    raise self._missing("current SHA")

                metadata = await self._resolve(chart_ref)
                if metadata.content_sha != last_sha:
                    _LOGGER.info(
                        "New version of %s available: %s",
                        chart_ref,
                        metadata.content_sha,
                    )
                    return True

                _LOGGER.debug("No change to %s, waiting %ss", chart_ref, interval)
                if await _wait(interval, stop):
                    break
        _LOGGER.debug("Watch stopped")
        return False


async def _wait(interval: float, stop: asyncio.Event | None) -> bool:
    """Sleep for the interval, returning True if stopped early."""
    if stop is None:
        await asyncio.sleep(interval)
        return False
    try:
        await asyncio.wait_for(stop.wait(), interval)
    except asyncio.TimeoutError:
        return False
    return True


def new_ship(config: ShipConfig, ui: UI | None = None) -> Ship:
    """Create a Ship that forks helm and kustomize and keeps state on disk."""
    if ui is None:
        ui = ConsoleUI()
    return Ship(
        config,
        FileStateStore(config.state_file),
        HelmChartResolver(config.chart_path, config.cache_dir, config.helm_bin),
        StepExecutor(config, Templater(ForkHelmTool(config.helm_bin)), ui),
        ui,
    )

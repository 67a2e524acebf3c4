"""Persisted state used to detect upstream chart changes between runs.

The state records the chart reference in use and the content fingerprint that
was last observed for it. Loading state never raises, the result is one of:

- `StateEmpty` when no state file exists yet
- `StateLoaded` with the parsed `State`
- `StateLoadError` when the file exists but could not be read or parsed

Callers are expected to handle each of the three cases explicitly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import json
import logging
from pathlib import Path

import aiofiles
from aiofiles.os import makedirs, remove
from aiofiles.ospath import exists
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .exceptions import StateException

__all__ = [
    "State",
    "StateEmpty",
    "StateLoaded",
    "StateLoadError",
    "LoadResult",
    "StateStore",
    "FileStateStore",
]

_LOGGER = logging.getLogger(__name__)


@dataclass
class State(DataClassDictMixin):
    """The persisted state of a release."""

    chart_url: str | None = field(
        metadata=field_options(alias="chartURL"), default=None
    )
    """The chart reference currently in use."""

    content_sha: str | None = field(
        metadata=field_options(alias="contentSHA"), default=None
    )
    """The content fingerprint last observed for `chart_url`."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass(frozen=True)
class StateEmpty:
    """No state has been persisted yet."""


@dataclass(frozen=True)
class StateLoaded:
    """State was loaded successfully."""

    state: State


@dataclass(frozen=True)
class StateLoadError:
    """State exists but could not be loaded."""

    error: Exception


LoadResult = StateEmpty | StateLoaded | StateLoadError


class StateStore(ABC):
    """Durable backing for the release state."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Human readable location of the state, used in error messages."""

    @abstractmethod
    async def try_load(self) -> LoadResult:
        """Load the current state."""

    @abstractmethod
    async def serialize_chart_url(self, url: str) -> None:
        """Persist the chart reference."""

    @abstractmethod
    async def serialize_content_sha(self, sha: str) -> None:
        """Persist the content fingerprint."""

    @abstractmethod
    async def remove_state_file(self) -> None:
        """Discard all persisted state."""


_STATE_KEY = "v1"


class FileStateStore(StateStore):
    """Stores state as a json document on the local filesystem."""

    def __init__(self, path: Path) -> None:
        """Initialize FileStateStore."""
        self._path = path

    @property
    def location(self) -> str:
        """Path of the state file."""
        return str(self._path)

    async def try_load(self) -> LoadResult:
        """Load the state file, if present."""
        if not await exists(self._path):
            _LOGGER.debug("No state file found at %s", self._path)
            return StateEmpty()
        try:
            async with aiofiles.open(str(self._path)) as state_file:
                content = await state_file.read()
            doc = json.loads(content)
            if not isinstance(doc, dict) or not isinstance(
                doc.get(_STATE_KEY) or {}, dict
            ):
                raise StateException(f"Invalid state file {self._path}: {doc}")
            state = State.from_dict(doc.get(_STATE_KEY) or {})
        except (OSError, ValueError, StateException) as err:
            _LOGGER.debug("Unable to load state file %s: %s", self._path, err)
            return StateLoadError(err)
        return StateLoaded(state)

    async def _current(self) -> State:
        """Return the state to update, starting fresh if it is missing or invalid."""
        result = await self.try_load()
        if isinstance(result, StateLoaded):
            return result.state
        if isinstance(result, StateLoadError):
            _LOGGER.warning(
                "Overwriting unreadable state file %s: %s", self._path, result.error
            )
        return State()

    async def _save(self, state: State) -> None:
        content = json.dumps({_STATE_KEY: state.to_dict()}, indent=2)
        try:
            await makedirs(self._path.parent, exist_ok=True)
            async with aiofiles.open(str(self._path), mode="w") as state_file:
                await state_file.write(content)
        except OSError as err:
            raise StateException(
                f"Unable to write state file {self._path}: {err}"
            ) from err

    async def serialize_chart_url(self, url: str) -> None:
        """Persist the chart reference."""
        state = await self._current()
        if state.chart_url != url:
            # A fingerprint is only meaningful for the chart it was taken from
            state.content_sha = None
        state.chart_url = url
        _LOGGER.debug("Saving chart url %s to %s", url, self._path)
        await self._save(state)

    async def serialize_content_sha(self, sha: str) -> None:
        """Persist the content fingerprint."""
        state = await self._current()
        state.content_sha = sha
        _LOGGER.debug("Saving content sha %s to %s", sha, self._path)
        await self._save(state)

    async def remove_state_file(self) -> None:
        """Remove the state file if it exists."""
        if not await exists(self._path):
            return
        _LOGGER.info("Removing state file %s", self._path)
        try:
            await remove(self._path)
        except OSError as err:
            raise StateException(
                f"Unable to remove state file {self._path}: {err}"
            ) from err

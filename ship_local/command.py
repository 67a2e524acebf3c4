"""Library for issuing commands using asyncio and returning the result."""

import asyncio
from abc import ABC, abstractmethod
import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
import os

from .exceptions import CommandException

_LOGGER = logging.getLogger(__name__)


# No public API
__all__: list[str] = []


class Task(ABC):
    """An instance of a async task to execute."""

    @abstractmethod
    async def run(self, stdin: bytes | None = None) -> bytes:
        """Execute the task and return the result."""


def format_path(path: Path) -> str:
    """Format path for debugging."""
    if path.is_absolute():
        cwd = Path.cwd()
        if path.is_relative_to(cwd):
            rel_path = str(path.relative_to(cwd))
            return f"{rel_path} (abs)"
    return str(path)


def _decode(value: bytes | None) -> str:
    return value.decode("utf-8", errors="replace") if value else ""


@dataclass
class Command(Task):
    """An instance of a command to run."""

    cmd: list[str]
    """Array of command line arguments."""

    cwd: Path | None = None
    """Current working directory."""

    exc: type[CommandException] = CommandException
    """Exception to throw in case of an error."""

    env: dict[str, str] | None = None
    """Environment variables for the subprocess."""

    timeout: float | None = None
    """Seconds to wait for the command to exit, or None to wait forever."""

    @property
    def string(self) -> str:
        """Render the command as a single string."""
        return " ".join([shlex.quote(arg) for arg in self.cmd])

    def __str__(self) -> str:
        """Render as a debug string."""
        cwd: str = ""
        if self.cwd:
            cwd = f"({format_path(self.cwd)}) "
        return f"{cwd}{self.string}"

    async def run(self, stdin: bytes | None = None) -> bytes:
        """Run the command, returning stdout.

        Both stdout and stderr are read to completion before the exit status is
        collected so a chatty child can never block on a full pipe.
        """
        _LOGGER.debug("Running command: %s", self)
        env = {
            **os.environ,
            **(self.env if self.env else {}),
        }
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                env=env,
            )
        except OSError as err:
            raise self.exc(f"Command '{self}' failed to start: {err}") from err
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(stdin), self.timeout
            )
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise self.exc(f"Command '{self}' timed out") from exc
        _LOGGER.debug("Command stdout: %s", _decode(stdout))
        _LOGGER.debug("Command stderr: %s", _decode(stderr))
        if proc.returncode:
            message = (
                f"Command '{self}' failed with return code {proc.returncode}: "
                f'stdout: "{_decode(stdout)}"; stderr: "{_decode(stderr)}";'
            )
            _LOGGER.debug(message)
            raise self.exc(message, stdout=stdout, stderr=stderr)
        return stdout


async def run(cmd: Task) -> str:
    """Run the specified command and return stdout."""
    out = await cmd.run()
    return out.decode("utf-8") if out else ""

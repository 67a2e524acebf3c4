"""Test helpers for ship-local tools."""

from pathlib import Path
import sys

from ship_local.command import Command

SHIP_LOCAL_CMD = [sys.executable, "-m", "ship_local"]


async def run_command(
    args: list[str], cwd: Path | None = None, stdin: bytes = b""
) -> str:
    out = await Command(SHIP_LOCAL_CMD + args, cwd=cwd).run(stdin)
    return out.decode("utf-8")

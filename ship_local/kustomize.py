"""Library for applying a kustomize overlay on top of rendered resources.

The overlay step takes a directory of rendered resources (the base), makes sure
both the base and the overlay directory contain a `kustomization.yaml`, then
builds the overlay and writes the result to a single file:

```python
from ship_local import kustomize

await kustomize.overlay(Path("base"), Path("overlays/ship"), Path("rendered.yaml"))
```

Existing `kustomization.yaml` files are left untouched so that operator
customizations of the overlay survive later updates.
"""

import logging
import os
from pathlib import Path
from typing import Any

import aiofiles
from aiofiles.os import makedirs
from aiofiles.ospath import exists, isdir
import yaml

from .command import Command, Task, run
from .exceptions import KustomizeException

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "build",
    "overlay",
    "Kustomize",
]

KUSTOMIZE_BIN = "kustomize"
KUSTOMIZATION_FILE = "kustomization.yaml"
KUSTOMIZATION_HEADER = {
    "apiVersion": "kustomize.config.k8s.io/v1beta1",
    "kind": "Kustomization",
}
_YAML_SUFFIXES = (".yaml", ".yml")


class Kustomize:
    """Library for issuing a kustomize command."""

    def __init__(self, cmd: Task) -> None:
        """Initialize Kustomize."""
        self._cmd = cmd

    async def run(self) -> str:
        """Run the kustomize command and return the output as a string."""
        return await run(self._cmd)


def build(path: Path, kustomize_bin: str = KUSTOMIZE_BIN) -> Kustomize:
    """Build cluster resources from the kustomization in the specified path."""
    return Kustomize(
        Command([kustomize_bin, "build", str(path)], exc=KustomizeException)
    )


def _base_resources(base: Path) -> list[str]:
    """Return yaml files under the base relative to it, excluding kustomizations."""
    resources = []
    for root, _, files in os.walk(base):
        for file in files:
            if file == KUSTOMIZATION_FILE or not file.endswith(_YAML_SUFFIXES):
                continue
            resources.append((Path(root) / file).relative_to(base).as_posix())
    return sorted(resources)


async def _write_kustomization(path: Path, contents: dict[str, Any]) -> None:
    await makedirs(path, exist_ok=True)
    kustomization = path / KUSTOMIZATION_FILE
    _LOGGER.debug("Writing %s", kustomization)
    async with aiofiles.open(kustomization, mode="w") as fd:
        await fd.write(yaml.dump({**KUSTOMIZATION_HEADER, **contents}, sort_keys=False))


async def overlay(
    base: Path, dest: Path, output_file: Path, kustomize_bin: str = KUSTOMIZE_BIN
) -> None:
    """Build the overlay in `dest` on top of `base` and write it to `output_file`."""
    if not await isdir(base):
        raise KustomizeException(f"Kustomize base path is not a directory: {base}")

    if not await exists(base / KUSTOMIZATION_FILE):
        resources = _base_resources(base)
        if not resources:
            raise KustomizeException(f"No resources found in kustomize base {base}")
        await _write_kustomization(base, {"resources": resources})

    if not await exists(dest / KUSTOMIZATION_FILE):
        relative_base = os.path.relpath(base.resolve(), dest.resolve())
        await _write_kustomization(dest, {"resources": [relative_base]})

    content = await build(dest, kustomize_bin).run()
    await makedirs(output_file.parent, exist_ok=True)
    async with aiofiles.open(output_file, mode="w") as fd:
        await fd.write(content)
    _LOGGER.info("Wrote overlaid resources to %s", output_file)

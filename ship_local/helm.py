"""Library for running `helm template` to render a fetched chart to disk.

The chart must already be present on local storage. Rendering is done through a
`HelmTool`, which by default forks the helm binary:

```python
from ship_local.helm import ForkHelmTool, Templater

templater = Templater(ForkHelmTool())
await templater.template(
    Path(".ship/tmp/chart"),
    asset,
    release.metadata,
    release.config_groups,
    template_context={},
)
```

Before templating the helm client is initialized and the chart dependencies
are updated. The rendered files are written to `asset.dest`.
"""

from abc import ABC, abstractmethod
import logging
from pathlib import Path
import re
from typing import Any

from aiofiles.os import makedirs

from . import command
from .context import trace_context
from .exceptions import HelmException, TemplateValueException
from .manifest import ConfigGroup, HelmAsset, ReleaseMetadata
from .values import TemplateValueBuilder, new_config_context

__all__ = [
    "HelmTool",
    "ForkHelmTool",
    "Templater",
    "release_name",
    "template_args",
    "value_args",
]

_LOGGER = logging.getLogger(__name__)


HELM_BIN = "helm"

_RELEASE_NAME_RE = re.compile(r"[^a-zA-Z0-9\-]")


def release_name(metadata: ReleaseMetadata) -> str:
    """Return the helm release name for the release channel.

    Every disallowed character is replaced individually, runs are not collapsed.
    """
    return _RELEASE_NAME_RE.sub("-", metadata.channel_name.lower())


def template_args(
    chart_root: Path, output_dir: Path, name: str, extra_args: list[str]
) -> list[str]:
    """Helm template CLI arguments, excluding the binary."""
    return [
        "template",
        str(chart_root),
        "--output-dir",
        str(output_dir),
        "--name",
        name,
        *extra_args,
    ]


def _format_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def value_args(values: dict[str, Any], builder: TemplateValueBuilder) -> list[str]:
    """Return `--set` arguments for the values, sorted by key.

    String values are evaluated as expressions, anything else is passed as is.
    """
    args: list[str] = []
    for key in sorted(values):
        value = values[key]
        if isinstance(value, str):
            try:
                rendered = builder.render(value)
            except TemplateValueException as err:
                raise TemplateValueException(
                    f"render value for {key}: {err}"
                ) from err
        else:
            rendered = _format_literal(value)
        args.extend(["--set", f"{key}={rendered}"])
    return args


class HelmTool(ABC):
    """The operations needed from helm to render a chart."""

    @abstractmethod
    async def init_client(self) -> None:
        """Initialize the local helm client."""

    @abstractmethod
    async def dependency_update(self, chart_root: Path) -> None:
        """Fetch the dependencies of the chart into the chart directory."""

    @abstractmethod
    async def template(
        self, chart_root: Path, output_dir: Path, name: str, extra_args: list[str]
    ) -> None:
        """Render the chart into the output directory."""


class ForkHelmTool(HelmTool):
    """Implements HelmTool by running the helm binary."""

    def __init__(self, helm_bin: str = HELM_BIN) -> None:
        """Initialize ForkHelmTool."""
        self._helm_bin = helm_bin

    async def _run(self, args: list[str]) -> None:
        await command.run(command.Command([self._helm_bin, *args], exc=HelmException))

    async def init_client(self) -> None:
        """Run `helm init --client-only`."""
        await self._run(["init", "--client-only"])

    async def dependency_update(self, chart_root: Path) -> None:
        """Run `helm dependency update`."""
        await self._run(["dependency", "update", str(chart_root)])

    async def template(
        self, chart_root: Path, output_dir: Path, name: str, extra_args: list[str]
    ) -> None:
        """Run `helm template`."""
        await self._run(template_args(chart_root, output_dir, name, extra_args))


def _wrap(err: HelmException, message: str) -> HelmException:
    return HelmException(f"{message}: {err}", stdout=err.stdout, stderr=err.stderr)


class Templater:
    """Renders a chart pulled to local storage into an asset destination."""

    def __init__(self, helm: HelmTool) -> None:
        """Initialize Templater."""
        self._helm = helm

    async def template(
        self,
        chart_root: Path,
        asset: HelmAsset,
        metadata: ReleaseMetadata,
        config_groups: list[ConfigGroup],
        template_context: dict[str, Any],
    ) -> None:
        """Render the chart into `asset.dest`."""
        dest = Path(asset.dest)
        _LOGGER.debug("Creating helm output directory %s", dest)
        try:
            await makedirs(dest, exist_ok=True)
        except OSError as err:
            raise HelmException(f"write directory to {dest}: {err}") from err

        name = release_name(metadata)
        _LOGGER.debug("Resolved release name %s", name)

        builder = TemplateValueBuilder(
            new_config_context(config_groups, template_context)
        )
        try:
            values = value_args(asset.values, builder)
        except TemplateValueException as err:
            raise HelmException(f"build helm values: {err}") from err
        extra_args = [*asset.helm_opts, *values]

        with trace_context("helm init"):
            try:
                await self._helm.init_client()
            except HelmException as err:
                raise _wrap(err, "init helm client") from err

        with trace_context("helm dependency update"):
            try:
                await self._helm.dependency_update(chart_root)
            except HelmException as err:
                raise _wrap(err, "update helm dependencies") from err

        with trace_context("helm template"):
            try:
                await self._helm.template(chart_root, dest, name, extra_args)
            except HelmException as err:
                raise _wrap(err, "execute helm") from err
        _LOGGER.info("Rendered chart %s to %s", chart_root, dest)

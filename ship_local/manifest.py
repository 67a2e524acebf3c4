"""Representation of a release to be deployed.

A `Release` is the fully assembled plan for a single run of `init` or `update`:
the helm assets to render and the ordered lifecycle steps that follow. It is
built fresh every time from the resolved `ChartMetadata` and is never written
to disk, though it may be dumped as yaml for debugging.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, ClassVar

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
import yaml

from .exceptions import InputException

__all__ = [
    "ChartMetadata",
    "ReleaseMetadata",
    "HelmAsset",
    "ConfigItem",
    "ConfigGroup",
    "Step",
    "HelmIntroStep",
    "HelmValuesStep",
    "RenderStep",
    "KustomizeStep",
    "MessageStep",
    "Release",
]

_LOGGER = logging.getLogger(__name__)


CHART_FILE = "Chart.yaml"
VALUES_FILE = "values.yaml"
README_FILE = "README.md"


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    def compact_dict(self) -> dict[str, Any]:
        """Return a compact dictionary representation of the object."""
        return self.to_dict()

    def yaml(self) -> str:
        """Return a YAML string representation of compact_dict."""
        return yaml.dump(self.compact_dict(), sort_keys=False)

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass
class ChartMetadata(BaseManifest):
    """Metadata about a chart, as returned by a chart resolver."""

    url: str
    """The chart reference this metadata was resolved from."""

    name: str
    """The name of the chart from Chart.yaml."""

    content_sha: str = field(metadata=field_options(alias="contentSHA"))
    """Fingerprint over the resolved chart content."""

    version: str | None = None
    """The version of the chart from Chart.yaml."""

    description: str | None = None
    """The description of the chart from Chart.yaml."""

    readme: str | None = None
    """Contents of the chart README, if the chart has one."""

    @classmethod
    def parse_doc(
        cls, url: str, doc: dict[str, Any], content_sha: str, readme: str | None = None
    ) -> "ChartMetadata":
        """Parse a ChartMetadata from the contents of a Chart.yaml file."""
        if not isinstance(doc, dict):
            raise InputException(f"Invalid {CHART_FILE} for chart {url}: {doc}")
        if not (name := doc.get("name")):
            raise InputException(f"Invalid {CHART_FILE} missing name for chart {url}")
        version = doc.get("version")
        return cls(
            url=url,
            name=str(name),
            content_sha=content_sha,
            version=str(version) if version is not None else None,
            description=doc.get("description"),
            readme=readme,
        )


@dataclass
class ReleaseMetadata(BaseManifest):
    """Metadata for a release built from a chart."""

    chart: ChartMetadata
    """The chart metadata the release was built from."""

    channel_name: str = field(metadata=field_options(alias="channelName"))
    """Human readable name of the release channel, used to name the helm release."""

    @classmethod
    def from_chart(cls, chart: ChartMetadata) -> "ReleaseMetadata":
        """Create release metadata where the channel is named after the chart."""
        return cls(chart=chart, channel_name=chart.name)


@dataclass
class HelmAsset(BaseManifest):
    """A helm chart to render into a destination directory."""

    dest: str
    """Output directory for the rendered chart."""

    chart_root: str = field(metadata=field_options(alias="chartRoot"))
    """Local path of the already fetched chart."""

    helm_opts: list[str] = field(
        metadata=field_options(alias="helmOpts"), default_factory=list
    )
    """Extra arguments passed to `helm template`."""

    values: dict[str, Any] = field(default_factory=dict)
    """Map of value name to a literal or a template expression."""

    description: str | None = None
    """Human readable description used in logs."""


@dataclass
class ConfigItem(BaseManifest):
    """A single configurable option."""

    name: str
    """The name of the option referenced by `ConfigOption`."""

    value: str | None = None
    """The value set for the option."""

    default: str | None = None
    """The value used when no value is set."""


@dataclass
class ConfigGroup(BaseManifest):
    """A named group of configurable options."""

    name: str
    """The name of the group."""

    items: list[ConfigItem] = field(default_factory=list)
    """Options in the group."""


@dataclass
class Step(BaseManifest):
    """A unit of the lifecycle, executed in order after resolution."""

    step_type: ClassVar[str]
    """Short name of the step used in logs and in yaml output."""

    def compact_dict(self) -> dict[str, Any]:
        """Return the step keyed by its type."""
        return {self.step_type: self.to_dict()}


@dataclass
class HelmIntroStep(Step):
    """Introduce the chart being deployed."""

    step_type: ClassVar[str] = "helmIntro"


@dataclass
class HelmValuesStep(Step):
    """Prepare the values file passed to helm."""

    step_type: ClassVar[str] = "helmValues"


@dataclass
class RenderStep(Step):
    """Render all assets of the release."""

    step_type: ClassVar[str] = "render"


@dataclass
class KustomizeStep(Step):
    """Apply an overlay on top of rendered output."""

    step_type: ClassVar[str] = "kustomize"

    base_path: str = field(metadata=field_options(alias="basePath"))
    """Directory containing the resources to overlay."""

    dest: str
    """Directory of the overlay."""


@dataclass
class MessageStep(Step):
    """Display a message to the operator."""

    step_type: ClassVar[str] = "message"

    contents: str
    """Text to display."""


@dataclass
class Release(BaseManifest):
    """A deployment plan of assets and lifecycle steps."""

    metadata: ReleaseMetadata | None = None
    """Metadata of the chart, or None for a raw release."""

    assets: list[HelmAsset] = field(default_factory=list)
    """Helm assets rendered by the render step."""

    config_groups: list[ConfigGroup] = field(default_factory=list)
    """Configuration used to evaluate helm asset values."""

    lifecycle: list[Step] = field(default_factory=list)
    """Steps executed in order."""

    def compact_dict(self) -> dict[str, Any]:
        """Return a dictionary with steps keyed by their type."""
        data: dict[str, Any] = {}
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        data["assets"] = [{"helm": asset.to_dict()} for asset in self.assets]
        if self.config_groups:
            data["config"] = [group.to_dict() for group in self.config_groups]
        data["lifecycle"] = [step.compact_dict() for step in self.lifecycle]
        return data

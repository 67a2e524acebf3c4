"""Configuration objects for ship-local."""

from dataclasses import dataclass, field
from pathlib import Path
import tempfile
from typing import Any

SHIP_DIR = Path(".ship")
DEFAULT_WATCH_INTERVAL = 300.0


def _default_cache_dir() -> Path:
    return Path(tempfile.gettempdir()) / "ship-local-cache"


@dataclass
class ShipConfig:
    """Configuration for a release lifecycle run.

    All relative paths are interpreted relative to the current working directory.
    """

    chart: str | None = None
    """Chart reference to resolve during init."""

    raw: Path | None = None
    """Directory of pre-rendered resources, bypasses chart resolution entirely."""

    state_file: Path = SHIP_DIR / "state.json"
    """Location of the persisted state."""

    chart_path: Path = SHIP_DIR / "tmp" / "chart"
    """Working copy of the fetched chart."""

    values_path: Path = SHIP_DIR / "tmp" / "chart-values"
    """Directory holding the generated values.yaml passed to helm."""

    rendered_path: Path = Path("base")
    """Output directory of `helm template`."""

    overlay_path: Path = Path("overlays") / "ship"
    """Directory of the kustomize overlay applied to rendered output."""

    output_file: Path = Path("rendered.yaml")
    """File receiving the output of `kustomize build`."""

    cache_dir: Path = field(default_factory=_default_cache_dir)
    """Directory used to cache charts fetched from remote repositories."""

    helm_bin: str = "helm"
    """Helm binary."""

    kustomize_bin: str = "kustomize"
    """Kustomize binary."""

    watch_interval: float = DEFAULT_WATCH_INTERVAL
    """Seconds between polls while watching for upstream changes."""

    template_context: dict[str, Any] = field(default_factory=dict)
    """Free form values made available to value expressions."""

    @property
    def values_file(self) -> Path:
        """The values file passed to `helm template`."""
        return self.values_path / "values.yaml"

"""Assembles the release to execute for a resolved chart.

Both builders are pure functions of their inputs.
"""

import logging
from pathlib import Path

from .config import ShipConfig
from .manifest import (
    ChartMetadata,
    HelmAsset,
    HelmIntroStep,
    HelmValuesStep,
    KustomizeStep,
    MessageStep,
    Release,
    ReleaseMetadata,
    RenderStep,
)

__all__ = [
    "build_release",
    "build_raw_release",
]

_LOGGER = logging.getLogger(__name__)


def deploy_message(output_file: Path) -> str:
    """Instructions shown once the overlaid resources are written."""
    return f"""
Assets are ready to deploy. You can run

    kubectl apply -f {output_file}

to deploy the overlaid assets to your cluster.
"""


def build_release(metadata: ChartMetadata, config: ShipConfig) -> Release:
    """Return a release that renders the chart and overlays the output."""
    return Release(
        metadata=ReleaseMetadata.from_chart(metadata),
        assets=[
            HelmAsset(
                dest=str(config.rendered_path),
                chart_root=str(config.chart_path),
                helm_opts=["--values", str(config.values_file)],
                description=metadata.name,
            ),
        ],
        lifecycle=[
            HelmIntroStep(),
            HelmValuesStep(),
            RenderStep(),
            KustomizeStep(
                base_path=str(config.rendered_path),
                dest=str(config.overlay_path),
            ),
            MessageStep(contents=deploy_message(config.output_file)),
        ],
    )


def build_raw_release(raw_path: Path, config: ShipConfig) -> Release:
    """Return a release that overlays already rendered resources."""
    return Release(
        lifecycle=[
            KustomizeStep(base_path=str(raw_path), dest=str(config.overlay_path)),
            MessageStep(contents=deploy_message(config.output_file)),
        ],
    )

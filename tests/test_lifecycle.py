"""Tests for executing lifecycle steps."""

from pathlib import Path
from typing import Any

import pytest

from ship_local.config import ShipConfig
from ship_local.exceptions import HelmException, InputException
from ship_local.helm import HelmTool, Templater
from ship_local.lifecycle import UI, StepExecutor
from ship_local.manifest import (
    ChartMetadata,
    ConfigGroup,
    HelmAsset,
    ReleaseMetadata,
    Release,
    RenderStep,
)
from ship_local.release import build_raw_release, build_release

CHART = ChartMetadata(
    url="stable/demo",
    name="demo",
    content_sha="abc123",
    version="1.0.0",
    description="A demo chart",
)


class FakeUI(UI):
    """Records messages shown to the operator."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    async def ask(self, question: str) -> str:
        raise AssertionError("Unexpected question")

    def info(self, message: str) -> None:
        self.messages.append(message)


class FakeTemplater(Templater):
    """Writes a rendered file instead of running helm."""

    def __init__(self) -> None:
        self.calls: list[tuple[Path, str]] = []

    async def template(
        self,
        chart_root: Path,
        asset: HelmAsset,
        metadata: ReleaseMetadata,
        config_groups: list[ConfigGroup],
        template_context: dict[str, Any],
    ) -> None:
        self.calls.append((chart_root, asset.dest))
        rendered = Path(asset.dest) / metadata.chart.name / "templates"
        rendered.mkdir(parents=True)
        (rendered / "deployment.yaml").write_text("kind: Deployment\n")


class FailingHelmTool(HelmTool):
    async def init_client(self) -> None:
        raise HelmException("helm is not installed")

    async def dependency_update(self, chart_root: Path) -> None:
        raise AssertionError("Unexpected call")

    async def template(
        self, chart_root: Path, output_dir: Path, name: str, extra_args: list[str]
    ) -> None:
        raise AssertionError("Unexpected call")


@pytest.fixture(name="workdir")
def workdir_fixture(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test from a fresh working directory with a fake kustomize."""
    monkeypatch.chdir(tmp_path)
    kustomize_bin = tmp_path / "bin" / "kustomize"
    kustomize_bin.parent.mkdir()
    kustomize_bin.write_text('#!/bin/sh\necho "# built $2"\ncat "$2/kustomization.yaml"\n')
    kustomize_bin.chmod(0o755)
    return tmp_path


@pytest.fixture(name="config")
def config_fixture(workdir: Path) -> ShipConfig:
    config = ShipConfig(kustomize_bin=str(workdir / "bin" / "kustomize"))
    config.chart_path.mkdir(parents=True)
    (config.chart_path / "values.yaml").write_text("replicas: 1\n")
    return config


async def test_execute_release(config: ShipConfig) -> None:
    """Test executing every step of a chart release."""
    ui = FakeUI()
    templater = FakeTemplater()
    stale = config.rendered_path / "stale.yaml"
    stale.parent.mkdir()
    stale.write_text("kind: Stale\n")

    await StepExecutor(config, templater, ui).execute(build_release(CHART, config))

    assert templater.calls == [(config.chart_path, "base")]
    assert config.values_file.read_text() == "replicas: 1\n"
    assert not stale.exists()
    assert (config.rendered_path / "kustomization.yaml").exists()
    assert (config.overlay_path / "kustomization.yaml").exists()
    assert config.output_file.read_text().startswith("# built overlays/ship")
    assert len(ui.messages) == 2
    assert ui.messages[0] == "Deploying chart demo 1.0.0 from stable/demo\nA demo chart"
    assert "kubectl apply -f rendered.yaml" in ui.messages[1]


async def test_existing_values_file(config: ShipConfig) -> None:
    """Test values customized by the operator are kept."""
    config.values_file.parent.mkdir(parents=True)
    config.values_file.write_text("replicas: 5\n")

    await StepExecutor(config, FakeTemplater(), FakeUI()).execute(
        build_release(CHART, config)
    )
    assert config.values_file.read_text() == "replicas: 5\n"


async def test_execute_raw_release(workdir: Path, config: ShipConfig) -> None:
    """Test executing a release of pre-rendered resources."""
    raw = workdir / "raw"
    raw.mkdir()
    (raw / "service.yaml").write_text("kind: Service\n")
    ui = FakeUI()
    templater = FakeTemplater()

    await StepExecutor(config, templater, ui).execute(build_raw_release(raw, config))

    assert templater.calls == []
    assert not config.values_file.exists()
    assert config.output_file.exists()
    assert len(ui.messages) == 1


async def test_render_failure_stops_release(config: ShipConfig) -> None:
    """Test steps after a failed step are not executed."""
    ui = FakeUI()
    executor = StepExecutor(config, Templater(FailingHelmTool()), ui)
    with pytest.raises(HelmException, match="helm is not installed"):
        await executor.execute(build_release(CHART, config))
    assert not config.output_file.exists()
    # Only the intro was shown
    assert len(ui.messages) == 1


async def test_render_without_metadata(config: ShipConfig) -> None:
    """Test a render step requires chart metadata."""
    executor = StepExecutor(config, FakeTemplater(), FakeUI())
    with pytest.raises(InputException, match="no chart metadata"):
        await executor.execute(Release(lifecycle=[RenderStep()]))

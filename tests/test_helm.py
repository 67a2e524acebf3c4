"""Tests for helm library."""

from pathlib import Path

import pytest

from ship_local.exceptions import HelmException
from ship_local.helm import (
    ForkHelmTool,
    HelmTool,
    Templater,
    release_name,
    template_args,
    value_args,
)
from ship_local.manifest import ChartMetadata, HelmAsset, ReleaseMetadata
from ship_local.values import TemplateValueBuilder

CHART = ChartMetadata(url="stable/demo", name="demo", content_sha="abc123")


def release_metadata(channel_name: str) -> ReleaseMetadata:
    return ReleaseMetadata(chart=CHART, channel_name=channel_name)


def fake_bin(path: Path, body: str) -> str:
    """Write an executable shell script and return its path."""
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(0o755)
    return str(path)


class FakeHelmTool(HelmTool):
    """Records calls instead of running helm."""

    def __init__(self, fail: str | None = None) -> None:
        self.calls: list[tuple[str, ...]] = []
        self._fail = fail

    def _record(self, *call: str) -> None:
        self.calls.append(call)
        if call[0] == self._fail:
            raise HelmException("failed", stdout=b"some output", stderr=b"some error")

    async def init_client(self) -> None:
        self._record("init")

    async def dependency_update(self, chart_root: Path) -> None:
        self._record("dependency", str(chart_root))

    async def template(
        self, chart_root: Path, output_dir: Path, name: str, extra_args: list[str]
    ) -> None:
        self._record("template", str(chart_root), str(output_dir), name, *extra_args)


@pytest.mark.parametrize(
    ("channel_name", "expected"),
    [
        ("My Chart! v1", "my-chart--v1"),
        ("redis", "redis"),
        ("Nginx_Ingress", "nginx-ingress"),
        ("a.b/c", "a-b-c"),
        ("already-valid-123", "already-valid-123"),
    ],
)
def test_release_name(channel_name: str, expected: str) -> None:
    """Test every disallowed character is replaced without collapsing runs."""
    assert release_name(release_metadata(channel_name)) == expected


def test_template_args() -> None:
    """Test the helm template command line."""
    assert template_args(
        Path("chart"), Path("base"), "demo", ["--values", "values.yaml"]
    ) == [
        "template",
        "chart",
        "--output-dir",
        "base",
        "--name",
        "demo",
        "--values",
        "values.yaml",
    ]


def test_value_args() -> None:
    """Test literals are passed through and strings are rendered, sorted by key."""
    builder = TemplateValueBuilder({"app_name": "demo"})
    values = {
        "replicas": 3,
        "name": '{{repl ConfigOption "app_name"}}',
        "enabled": True,
        "ratio": 0.5,
    }
    assert value_args(values, builder) == [
        "--set",
        "enabled=true",
        "--set",
        "name=demo",
        "--set",
        "ratio=0.5",
        "--set",
        "replicas=3",
    ]


async def test_template(tmp_path: Path) -> None:
    """Test the preconditions run before templating, in order."""
    helm = FakeHelmTool()
    dest = tmp_path / "out" / "base"
    asset = HelmAsset(
        dest=str(dest),
        chart_root="chart",
        helm_opts=["--values", "values.yaml"],
        values={"replicas": 3, "name": '{{repl ConfigOption "app_name"}}'},
    )
    await Templater(helm).template(
        Path("chart"),
        asset,
        release_metadata("My Chart! v1"),
        [],
        {"app_name": "demo"},
    )
    assert dest.is_dir()
    assert helm.calls == [
        ("init",),
        ("dependency", "chart"),
        (
            "template",
            "chart",
            str(dest),
            "my-chart--v1",
            "--values",
            "values.yaml",
            "--set",
            "name=demo",
            "--set",
            "replicas=3",
        ),
    ]


@pytest.mark.parametrize(
    ("fail", "match", "calls"),
    [
        ("init", "init helm client", ["init"]),
        ("dependency", "update helm dependencies", ["init", "dependency"]),
        ("template", "execute helm", ["init", "dependency", "template"]),
    ],
)
async def test_template_failure(
    tmp_path: Path, fail: str, match: str, calls: list[str]
) -> None:
    """Test a failed invocation stops templating and keeps the captured output."""
    helm = FakeHelmTool(fail=fail)
    asset = HelmAsset(dest=str(tmp_path / "base"), chart_root="chart")
    with pytest.raises(HelmException, match=match) as exc_info:
        await Templater(helm).template(
            Path("chart"), asset, release_metadata("demo"), [], {}
        )
    assert [call[0] for call in helm.calls] == calls
    assert exc_info.value.stdout == b"some output"
    assert exc_info.value.stderr == b"some error"


async def test_template_invalid_value(tmp_path: Path) -> None:
    """Test a value that fails to render stops before running helm."""
    helm = FakeHelmTool()
    asset = HelmAsset(
        dest=str(tmp_path / "base"),
        chart_root="chart",
        values={"name": '{{repl NotAFunction "x"}}'},
    )
    with pytest.raises(HelmException, match="render value for name"):
        await Templater(helm).template(
            Path("chart"), asset, release_metadata("demo"), [], {}
        )
    assert helm.calls == []


async def test_template_dest_not_writable(tmp_path: Path) -> None:
    """Test failing to create the output directory."""
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    asset = HelmAsset(dest=str(blocker / "base"), chart_root="chart")
    helm = FakeHelmTool()
    with pytest.raises(HelmException, match="write directory to"):
        await Templater(helm).template(
            Path("chart"), asset, release_metadata("demo"), [], {}
        )
    assert helm.calls == []


async def test_fork_helm_tool(tmp_path: Path) -> None:
    """Test the helm binary is invoked with each command line."""
    log = tmp_path / "helm.log"
    helm_bin = fake_bin(tmp_path / "helm", f'echo "$@" >> {log}')
    dest = tmp_path / "base"
    asset = HelmAsset(dest=str(dest), chart_root="chart", values={"replicas": 2})
    await Templater(ForkHelmTool(helm_bin)).template(
        Path("chart"), asset, release_metadata("demo"), [], {}
    )
    assert log.read_text().splitlines() == [
        "init --client-only",
        "dependency update chart",
        f"template chart --output-dir {dest} --name demo --set replicas=2",
    ]


async def test_fork_helm_tool_dependency_failure(tmp_path: Path) -> None:
    """Test a failed dependency update prevents the template from running."""
    log = tmp_path / "helm.log"
    helm_bin = fake_bin(
        tmp_path / "helm",
        f"""echo "$@" >> {log}
if [ "$1" = "dependency" ]; then
  echo "fetching dependencies"
  echo "chart not found" >&2
  exit 1
fi""",
    )
    asset = HelmAsset(dest=str(tmp_path / "base"), chart_root="chart")
    with pytest.raises(HelmException, match="update helm dependencies") as exc_info:
        await Templater(ForkHelmTool(helm_bin)).template(
            Path("chart"), asset, release_metadata("demo"), [], {}
        )
    assert "chart not found" in str(exc_info.value)
    assert "fetching dependencies" in str(exc_info.value)
    assert log.read_text().splitlines() == [
        "init --client-only",
        "dependency update chart",
    ]

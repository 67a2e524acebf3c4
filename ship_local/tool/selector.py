"""Library for flags shared by all ship-local commands."""

from argparse import (
    ArgumentParser,
    Action,
    ArgumentError,
    ArgumentTypeError,
    Namespace,
)
import logging
import pathlib
from typing import Any

from ship_local.config import DEFAULT_WATCH_INTERVAL, ShipConfig

_LOGGER = logging.getLogger(__name__)


class ContextAppendAction(Action):
    """Append a key=value pair to the argument dict."""

    def __call__(
        self,
        parser: ArgumentParser,
        namespace: Namespace,
        values: Any,
        option_string: str | None = None,
    ) -> None:
        result = getattr(namespace, self.dest) or {}
        key, sep, value = values.partition("=")
        if not key or not sep:
            raise ArgumentError(self, f"Expected key=value format from '{values}'")
        result[key] = value
        setattr(namespace, self.dest, result)


def add_common_flags(args: ArgumentParser) -> None:
    """Add flags for the location of state, charts and binaries."""
    defaults = ShipConfig()
    args.add_argument(
        "--state-file",
        type=pathlib.Path,
        default=defaults.state_file,
        help="File used to persist the chart url and content fingerprint",
    )
    args.add_argument(
        "--chart-path",
        type=pathlib.Path,
        default=defaults.chart_path,
        help="Working directory the chart is fetched into",
    )
    args.add_argument(
        "--values-path",
        type=pathlib.Path,
        default=defaults.values_path,
        help="Directory containing the values.yaml passed to helm",
    )
    args.add_argument(
        "--rendered-path",
        type=pathlib.Path,
        default=defaults.rendered_path,
        help="Output directory for the rendered chart",
    )
    args.add_argument(
        "--overlay-path",
        type=pathlib.Path,
        default=defaults.overlay_path,
        help="Directory of the kustomize overlay",
    )
    args.add_argument(
        "--output-file",
        type=pathlib.Path,
        default=defaults.output_file,
        help="Output file for the overlaid resources",
    )
    args.add_argument(
        "--cache-dir",
        type=pathlib.Path,
        default=defaults.cache_dir,
        help="Directory used to cache fetched charts",
    )
    args.add_argument(
        "--helm-bin",
        type=str,
        default=defaults.helm_bin,
        help="Helm binary to run",
    )
    args.add_argument(
        "--kustomize-bin",
        type=str,
        default=defaults.kustomize_bin,
        help="Kustomize binary to run",
    )
    args.add_argument(
        "--set-context",
        dest="template_context",
        metavar="KEY=VALUE",
        action=ContextAppendAction,
        default=None,
        help="Set a value available to value expressions, may be repeated",
    )


def _interval(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError as err:
        raise ArgumentTypeError(f"invalid interval '{value}'") from err
    if seconds < 0:
        raise ArgumentTypeError(f"interval must not be negative: {value}")
    return seconds


def add_watch_flags(args: ArgumentParser) -> None:
    """Add flags for polling the upstream chart."""
    args.add_argument(
        "--interval",
        type=_interval,
        default=DEFAULT_WATCH_INTERVAL,
        help="Seconds between checks for a new chart version",
    )


def build_config(**kwargs: Any) -> ShipConfig:
    """Build a ShipConfig from parsed command line arguments."""
    return ShipConfig(
        chart=kwargs.get("chart"),
        raw=kwargs.get("raw"),
        state_file=kwargs["state_file"],
        chart_path=kwargs["chart_path"],
        values_path=kwargs["values_path"],
        rendered_path=kwargs["rendered_path"],
        overlay_path=kwargs["overlay_path"],
        output_file=kwargs["output_file"],
        cache_dir=kwargs["cache_dir"],
        helm_bin=kwargs["helm_bin"],
        kustomize_bin=kwargs["kustomize_bin"],
        watch_interval=kwargs.get("interval", DEFAULT_WATCH_INTERVAL),
        template_context=kwargs.get("template_context") or {},
    )

"""Ship-local init action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import pathlib
from typing import Any, cast

from ship_local.ship import new_ship

from . import selector

_LOGGER = logging.getLogger(__name__)


class InitAction:
    """Ship-local init action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "init",
                help="Fetch a chart, render it and apply the overlay",
                description="""Resolve the chart reference, record it in the state
                    file then render the chart with helm and build the kustomize
                    overlay on top of the rendered output.""",
            ),
        )
        args.add_argument(
            "chart",
            nargs="?",
            default=None,
            help="Chart reference, either a local chart directory or a helm chart reference",
        )
        args.add_argument(
            "--raw",
            type=pathlib.Path,
            default=None,
            help="Directory of already rendered resources to overlay, skips the chart entirely",
        )
        selector.add_common_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = selector.build_config(**kwargs)
        await new_ship(config).init()

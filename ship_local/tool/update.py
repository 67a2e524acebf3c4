"""Ship-local update action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from ship_local.ship import new_ship

from . import selector

_LOGGER = logging.getLogger(__name__)


class UpdateAction:
    """Ship-local update action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "update",
                help="Render the latest version of the chart recorded by init",
                description="""Resolve the chart recorded in the state file again,
                    picking up upstream changes, and render it without prompting.""",
            ),
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
        await new_ship(config).update()

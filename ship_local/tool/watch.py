"""Ship-local watch action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import asyncio
import logging
import signal
from typing import cast

from ship_local.exceptions import WatchStoppedException
from ship_local.ship import new_ship

from . import selector

_LOGGER = logging.getLogger(__name__)

NEW_VERSION_MESSAGE = 'A new version of the chart is available, run "ship-local update"'


class WatchAction:
    """Ship-local watch action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "watch",
                help="Wait until the chart recorded by init has changed upstream",
                description="""Poll the chart recorded in the state file and exit
                    once its content no longer matches the recorded fingerprint.""",
            ),
        )
        selector.add_common_flags(args)
        selector.add_watch_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = selector.build_config(**kwargs)
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                _LOGGER.debug("Signal handlers are not supported on this platform")
                break
        if not await new_ship(config).watch(stop=stop):
            raise WatchStoppedException("Watch stopped before a new version was found")
        print(NEW_VERSION_MESSAGE)

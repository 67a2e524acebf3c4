"""Command line tool for fetching, rendering and overlaying helm charts."""

import argparse
import asyncio
import logging
import sys
import traceback

from ship_local.exceptions import (
    ShipException,
    UseUpdateException,
    WatchStoppedException,
)
from . import init, update, watch

_LOGGER = logging.getLogger(__name__)

# Exit code when init found existing state and the operator chose to keep it
EXIT_USE_UPDATE = 3

# Exit code when a watch was interrupted before the chart changed
EXIT_WATCH_STOPPED = 4


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for deploying a helm chart with a kustomize overlay.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    init.InitAction.register(subparsers)
    update.UpdateAction.register(subparsers)
    watch.WatchAction.register(subparsers)
    return parser


def main() -> None:
    """Ship-local command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args()

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except UseUpdateException as err:
        print("ship-local warning: ", err, file=sys.stderr)
        sys.exit(EXIT_USE_UPDATE)
    except WatchStoppedException as err:
        print("ship-local: ", err, file=sys.stderr)
        sys.exit(EXIT_WATCH_STOPPED)
    except ShipException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("ship-local error: ", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

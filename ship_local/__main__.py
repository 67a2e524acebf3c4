"""Run the ship-local command line tool with `python -m ship_local`."""

from ship_local.tool.ship_local import main

if __name__ == "__main__":
    main()

"""The ship-local command line tool."""

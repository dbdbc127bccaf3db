"""
Console entry point for `map-cache` and `python -m map_cache`.
"""

import logging
import sys

from rich.console import Console

from map_cache.cli.app import app
from map_cache.cli.formatters import format_error_with_suggestions
from map_cache.exceptions import MapCacheError

log = logging.getLogger("map_cache")


def main() -> None:
    """Runs the Typer app; errors a command did not handle exit with status 1."""
    try:
        app()
    except Exception as e:
        context = None if isinstance(e, MapCacheError) else {"type": "Unexpected"}
        log.debug("Unhandled error:", exc_info=True)
        Console(stderr=True).print(format_error_with_suggestions(e, context))
        sys.exit(1)


if __name__ == "__main__":
    main()

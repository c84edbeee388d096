"""Console logging for agentpacks, rendered through rich."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "agentpacks"


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Attach a single RichHandler to the agentpacks logger.

    Verbose mode logs at DEBUG (override conflicts, skipped features);
    otherwise only warnings are shown. Calling again replaces the handler.
    """
    logger = logging.getLogger(LOGGER_NAME)

    for h in logger.handlers[:]:
        if isinstance(h, RichHandler):
            logger.removeHandler(h)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logger

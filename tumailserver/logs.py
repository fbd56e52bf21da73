# tumailserver
# MIT licensed

import logging
import sys

LOG_FORMAT = '%(asctime)s - [%(levelname)s] - %(name)s - %(message)s'

COLOR_PREFIX = '\033[49;34;1m'
COLOR_SUFFIX = '\033[0m'


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )


def highlight(value) -> str:
    """Wrap a value in ANSI colour when logging to a Linux terminal."""
    text = str(value)
    if sys.platform.startswith('linux') and sys.stderr.isatty():
        return f"{COLOR_PREFIX}{text}{COLOR_SUFFIX}"
    return text

"""The logger of the generator, writing to stderr."""

import logging

LOGGER = logging.getLogger("aza_build")

_handler = logging.StreamHandler()
_handler.setFormatter(logging.Formatter(fmt="%(levelname)s: %(message)s"))

LOGGER.addHandler(_handler)


def set_verbosity(verbose: int) -> None:
    """Set the log level from the number of ``-v`` flags: errors only without
    any, informational messages with one and debug output with two or more.

    """
    if verbose > 0:
        LOGGER.setLevel((3 - min(verbose, 2)) * 10)
    else:
        LOGGER.setLevel(logging.ERROR)

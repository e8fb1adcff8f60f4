"""Logging configuration for the Freemind client."""

import sys

from loguru import logger

# Verbose runs show where a message came from; sync passes log from several modules.
_FORMAT = "{level.icon} {message}"
_VERBOSE_FORMAT = "{time:HH:mm:ss.SSS} {level.icon} {name}:{line} {message}"


def configure_logging(*, verbose: bool = False) -> None:
    """Send log messages to stderr, at DEBUG with source locations if ``verbose``."""
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=_VERBOSE_FORMAT)
    else:
        logger.add(sys.stderr, level="INFO", format=_FORMAT)

"""Logging setup for feedutils.

All modules log through children of the "feedutils" logger; the command line
entry points call setup_logging once with the resolved configuration.
"""

import logging
import sys

from feedutils.config import Config


LOG_FORMAT = "%(name)s: %(levelname)s: %(message)s"

logger = logging.getLogger("feedutils")


def setup_logging(config: Config) -> logging.Logger:
    """Attach a single stderr handler to the feedutils logger.

    Calling this more than once replaces the previous handler rather than
    stacking duplicates.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(config.log_level)

    return logger

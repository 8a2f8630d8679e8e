"""Logging setup shared by the flockbots drivers."""
import logging
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Attach handlers to the ``flockbots`` logger and return it.

    ``level`` is a ``logging`` constant or one of :data:`LEVEL_NAMES`, as passed
    by ``--log-level``. Records go to stderr so CSV or JSON written to stdout
    stays clean. Calling again replaces the handlers from the previous call.
    """
    if isinstance(level, str):
        name = level.upper()
        if name not in LEVEL_NAMES:
            raise ValueError(f"Unknown log level: {level}")
        level = getattr(logging, name)

    logger = logging.getLogger("flockbots")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger

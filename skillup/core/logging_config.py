"""
Logging setup for the SkillUp backend.

Modules log through `logging.getLogger(__name__)`; everything under the
`skillup` namespace inherits the handler configured here.
"""

import logging
import sys

from skillup.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def setup_logging() -> logging.Logger:
    """Configure the `skillup` logger once. Safe to call repeatedly."""
    logger = logging.getLogger("skillup")
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return logger

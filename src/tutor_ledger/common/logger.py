'''
Application logger, imported everywhere as `log`.
'''
import logging
import sys

from .config import settings

def setup_logger(name: str = 'TL-backend', level: str | None = None) -> logging.Logger:
    """
    Configures the named application logger: stdout, one line per record,
    level from LOG_LEVEL unless given.
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or settings.LOG_LEVEL).upper())
    # Uvicorn configures the root logger too; avoid printing records twice
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(module)-22s - %(levelname)-8s - %(message)s'
        ))
        logger.addHandler(handler)

    return logger

log = setup_logger()

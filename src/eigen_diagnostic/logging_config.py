import logging
import os
from logging.handlers import RotatingFileHandler

from . import config

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FILE_NAME = "eigen.log"


def setup_logging(level: str | None = None):
    """Attach the rotating diagnostic log and a quiet console handler to the 'eigen' logger.

    Every module logs under ``eigen.<module>``, so handlers live only on the parent.
    """
    logger = logging.getLogger("eigen")
    if logger.handlers:
        return logger

    logger.setLevel(level or os.getenv("EIGEN_LOG_LEVEL", "DEBUG"))
    formatter = logging.Formatter(LOG_FORMAT)

    config.WORKSPACE_DIR.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        config.WORKSPACE_DIR / LOG_FILE_NAME,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # Terminal only sees problems; turn transcripts go to the file
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger

"""
Logging configuration.

Console output plus a size-rotated file under ``logs/``.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from ..config import LOG_DIR

LOG_FORMAT = "[%(asctime)s] [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def configure_logging(level: Optional[str] = None, log_dir=LOG_DIR) -> logging.Logger:
    """
    Configure the ``codelens`` logger hierarchy.

    Args:
        level: Log level name; defaults to $LOG_LEVEL or INFO.
        log_dir: Folder for ``app.log``. Pass None to skip the file handler.

    Returns:
        The package root logger.
    """
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    root = logging.getLogger("codelens")
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Idempotent: drop handlers from an earlier call
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir is not None:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "app.log"),
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
    return root

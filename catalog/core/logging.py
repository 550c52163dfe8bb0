import logging
import sys
from logging.handlers import RotatingFileHandler
import os

from catalog.core.config import settings


def _log_dir():
    if settings.LOG_DIR:
        return settings.LOG_DIR
    return os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs"
    )


def get_logger(name):
    """
    Get a configured logger instance with both file and console handlers.

    Handlers are attached only the first time a given name is requested, so
    modules can call this at import time without duplicating output.

    Args:
        name (str): The name of the logger, typically __name__ of the calling module

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    # Create formatters
    file_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    console_formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    # Create and configure file handler
    log_dir = _log_dir()
    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=os.path.join(log_dir, "catalog.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"File logging disabled, cannot write to {log_dir}: {e}")

    # Create and configure console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    return logger

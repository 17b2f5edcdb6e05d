import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from . import __version__

LOGGER_NAME = 'x32-reflector'


def setup_logger(log_file=None, level=None):
    """Setup console logging and, if a log file is given, a rotating file log"""
    if log_file is None:
        log_file = os.getenv("LOG_FILE")
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    # Remove existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter('%(asctime)s [%(levelname)s] %(message)s',
                                                   datefmt='%Y-%m-%d %H:%M:%S'))
    logger.addHandler(console_handler)

    if log_file:
        # Max 5 MB per file, keep 3 backups
        file_handler = RotatingFileHandler(
            log_file,
            mode='a',
            maxBytes=5*1024*1024,
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    logger.info("=" * 60)
    logger.info(f"x32-reflector {__version__} starting")
    if log_file:
        logger.info(f"Log file: {log_file}")
    logger.info(f"Python version: {sys.version.split()[0]}")
    logger.info("=" * 60)

    return logger

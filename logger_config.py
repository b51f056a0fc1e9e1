"""Logging setup shared by the family API, the relay and the dispatcher.

Each module logs to its own rotating file under ``logs/`` (or
``FAMILY_CONNECT_LOG_DIR``) and to the console. Two loggers never share
a file, since separate RotatingFileHandlers on one file break rollover.
"""

import logging
from logging.handlers import RotatingFileHandler
import os
from typing import Dict

LOG_DIR = os.environ.get('FAMILY_CONNECT_LOG_DIR', os.path.join(os.path.dirname(__file__), 'logs'))
os.makedirs(LOG_DIR, exist_ok=True)

MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

LOG_FORMAT = '[%(asctime)s] %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# log file name -> logger name that owns it
_file_owners: Dict[str, str] = {}


def setup_logger(name: str, log_file: str) -> logging.Logger:
    """Logger for one module, writing to LOG_DIR/log_file and the console.

    Raises:
        ValueError: log_file already belongs to another logger
    """
    owner = _file_owners.setdefault(log_file, name)
    if owner != name:
        raise ValueError(f"{log_file} is already used by logger {owner}")

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, log_file),
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding='utf-8'
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def configure_root_logger():
    """Reduce third-party library noise."""
    for noisy in ('uvicorn', 'uvicorn.access', 'fastapi', 'sqlalchemy', 'httpx', 'python_http_client'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# Auto-configure on import
configure_root_logger()

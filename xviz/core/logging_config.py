import os
import logging
from logging.handlers import RotatingFileHandler

from xviz.core.config import settings

LOG_DIR = settings.XVIZ_LOG_DIR or os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config", "logs"
)
LOG_FILE = os.path.join(LOG_DIR, "xviz_server.log")

os.makedirs(LOG_DIR, exist_ok=True)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVEL = getattr(logging, settings.XVIZ_LOG_LEVEL.upper(), logging.INFO)

# Root config shared by the server and the parser/codec modules
logging.basicConfig(
    level=LOG_LEVEL,
    format=LOG_FORMAT,
    datefmt=DATE_FORMAT,
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            LOG_FILE,
            maxBytes=(10 * 1024 * 1024),   # 10MB per file
            backupCount=7,                 # Last 7 rotated logs kept
            encoding="utf-8"
        )
    ]
)

# Pillow logs every PNG chunk at DEBUG while image headers are sniffed
logging.getLogger("PIL").setLevel(max(LOG_LEVEL, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger with the given module name."""
    return logging.getLogger(name)

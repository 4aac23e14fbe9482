import logging
import logging.handlers
import os
from collections import deque
from typing import List, Optional

from printbot.env import Settings

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_FILE_NAME = "bot.log"


def log_file_path(settings: Settings) -> str:
    return os.path.join(settings.log_dir, LOG_FILE_NAME)


def setup_logging(settings: Settings) -> Optional[str]:
    """Console logging always; a daily-rotated file when logging is enabled."""
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    if not settings.enable_logging:
        return None

    os.makedirs(settings.log_dir, exist_ok=True)
    path = log_file_path(settings)
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler, logging.handlers.TimedRotatingFileHandler) and handler.baseFilename == os.path.abspath(path):
            return path

    file_handler = logging.handlers.TimedRotatingFileHandler(
        path, when="midnight", backupCount=settings.log_retention_days, encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)
    return path


def recent_log_lines(path: str, limit: int = 20) -> List[str]:
    if not path or not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\n") for line in deque((l for l in f if l.strip()), maxlen=limit)]

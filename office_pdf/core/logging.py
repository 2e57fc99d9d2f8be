import logging
from logging import Logger
from typing import Optional

from .config import Settings, get_settings


def configure_logging(settings: Optional[Settings] = None) -> Logger:
    """تهيئة مسجل موحد لخدمة التحويل."""
    settings = settings or get_settings()

    logger = logging.getLogger(settings.app_name)
    logger.setLevel(settings.log_level.upper())
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = logging.Formatter("[%(levelname)s] %(asctime)s | %(name)s | %(message)s")
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False

    return logger

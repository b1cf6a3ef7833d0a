# cafe_import/utils/logger.py
"""
Logger del proyecto.

Los módulos escriben en "cafe_import" o en sus hijos
(logging.getLogger(__name__) dentro del paquete): nivel y formato se
configuran en un solo lugar.
"""
import logging

from cafe_import.core.config import settings

LOGGER_NAME = "cafe_import"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logger(level: str) -> logging.Logger:
    project_logger = logging.getLogger(LOGGER_NAME)
    project_logger.setLevel(level.upper())
    if not project_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        project_logger.addHandler(handler)
    return project_logger


logger = configure_logger(settings.log_level)

import logging
import sys
from pythonjsonlogger import jsonlogger

from delivery_api.core.config import settings


def setup_logging() -> None:
    logger = logging.getLogger()
    logger.setLevel(settings.log_level)

    # uvicorn reloads call this again
    for existing in list(logger.handlers):
        if getattr(existing, "_delivery_json", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler._delivery_json = True
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        static_fields={"service": settings.service_name},
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)

import logging
from logging.handlers import RotatingFileHandler

from .config import settings

_configured = False


def configure_logging() -> None:
    global _configured

    logger = logging.getLogger()
    logger.setLevel(settings.log_level.upper())

    # Lifespan can run more than once per process (tests, reloads)
    if _configured:
        return

    fmt = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s - %(message)s"
    )

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    # Rotating file (the Pi runs unattended for weeks)
    if settings.log_file:
        fh = RotatingFileHandler(
            settings.log_file, maxBytes=2_000_000, backupCount=5
        )
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    # paho logs every PINGREQ at DEBUG; httpx every request at INFO
    logging.getLogger("paho").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _configured = True

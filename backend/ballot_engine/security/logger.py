import logging
from logging.handlers import RotatingFileHandler

from ballot_engine.core.settings import get_settings

# Create logger
ballot_logger = logging.getLogger("ballot")


def configure_logger(logger: logging.Logger = ballot_logger) -> logging.Logger:
    settings = get_settings()
    logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    # Prevent duplicate handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if settings.log_file:
        # Rotating file handler, sizes come from settings
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    else:
        logger.addHandler(logging.NullHandler())
    return logger


if not ballot_logger.handlers:
    configure_logger()

"""
Logging configuration
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from personalizer.core.config import PersonalizationSettings, settings as default_settings


class InterceptHandler(logging.Handler):
    """
    Intercept standard logging and redirect to loguru
    """

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(settings: Optional[PersonalizationSettings] = None):
    """
    Route the package's stdlib loggers through loguru
    """
    settings = settings or default_settings

    logger.remove()

    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
    )

    # Add file logger for production
    if settings.environment == "production":
        log_path = Path("logs")
        log_path.mkdir(exist_ok=True)

        logger.add(
            log_path / "personalizer_{time:YYYY-MM-DD}.log",
            rotation="100 MB",
            retention="30 days",
            enqueue=True,
            serialize=False,
            level=settings.log_level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )

    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(settings.log_level)

    # Everything under the package propagates to the intercepted root
    package_logger = logging.getLogger("personalizer")
    package_logger.handlers = []
    package_logger.propagate = True

    logger.info(f"Logging configured - Level: {settings.log_level}, Environment: {settings.environment}")

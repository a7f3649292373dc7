import os
import sys
from loguru import logger
from app.core.config import settings

LOG_DIR = "logs"

def setup_logging(level: str = None):
    # Remove default handler
    logger.remove()

    # Add stdout handler with color and detailed info
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level or settings.LOG_LEVEL,
        colorize=True
    )

    # Add file handler for production logging
    os.makedirs(LOG_DIR, exist_ok=True)
    logger.add(
        os.path.join(LOG_DIR, "app.log"),
        rotation="10 MB",
        retention="10 days",
        level="DEBUG",
        compression="zip",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra} | {name}:{function}:{line} - {message}"
    )

    logger.info("Logging initialized successfully.")

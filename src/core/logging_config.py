"""Logging configuration for the upload service."""

from pathlib import Path
import sys

from loguru import logger


def configure_logging(level: str = "INFO", log_dir: Path | None = Path("logs")) -> None:
    """Configure loguru logger with console output and optional rotated files."""
    # Remove default handler (console only)
    logger.remove()

    # Add console handler with colorization
    logger.add(
        sink=sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    if log_dir is None:
        logger.info("Logging configured: console output only")
        return

    log_dir.mkdir(parents=True, exist_ok=True)

    # Add file handler with rotation
    logger.add(
        sink=log_dir / "uploader_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level=level,
        rotation="00:00",  # Rotate at midnight
        retention="30 days",
        compression="zip",
        enqueue=True,  # Thread-safe logging
    )

    # Add error-only file handler
    logger.add(
        sink=log_dir / "uploader_errors_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="ERROR",
        rotation="00:00",
        retention="90 days",  # Keep error logs longer
        compression="zip",
        enqueue=True,
    )

    logger.info(f"Logging configured: console + file output in {log_dir}")

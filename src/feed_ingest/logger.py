"""Logging setup for the ingestion pipeline."""

import logging
from pathlib import Path
from typing import Union

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"


def setup_logging(
    logger_name: str = "feed_ingest",
    log_file: Union[str, Path] = "logs/feed_ingest.log",
    verbose: bool = False,
    level: int = logging.INFO,
) -> logging.Logger:
    """Attach a file handler, plus a console handler when verbose.

    Modules log through children of ``feed_ingest``; configuring it once
    covers the pipeline. Repeated calls return the configured logger.
    """
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG if verbose else level)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(file_handler)

    if verbose:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    return logger


def parse_level(name: str) -> int:
    """Map a level name such as "debug" to its logging constant."""
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level

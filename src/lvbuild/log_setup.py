"""Logging configuration for lvbuild.

The CLI writes a rotating log of every external command, exit code and
elapsed time next to the build artifacts. Console output of log records is
only enabled in verbose mode; regular progress is printed by the pipeline.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FILE_NAME = "lvbuild.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_log_dir(build_dir: Path) -> Path:
    """Return the log directory, honoring LVBUILD_LOG_DIR."""
    override = os.environ.get("LVBUILD_LOG_DIR")
    if override:
        return Path(override)
    return build_dir


def setup_logging(build_dir: Path, verbose: bool = False) -> Optional[Path]:
    """Setup logging for a release run.

    Args:
        build_dir: Build directory; the log file is written here unless
            LVBUILD_LOG_DIR is set
        verbose: Mirror log records to stdout at DEBUG level

    Returns:
        Path to the log file, or None if it could not be created
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if verbose:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)

    log_dir = get_log_dir(build_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Warning: cannot create log directory {log_dir}: {e}")
        return None

    log_file = log_dir / LOG_FILE_NAME
    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)
    return log_file

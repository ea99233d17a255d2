"""Logging setup for carbonledger.

All modules log under the ``carbonledger`` namespace. Call
``setup_carbonledger_logging`` once from the hosting application; library
code never configures handlers on its own.
"""

import logging
import os
from datetime import date
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "carbonledger"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_log_dir(log_dir: Optional[Union[str, Path]]) -> Optional[Path]:
    if log_dir:
        return Path(log_dir)
    env_dir = os.environ.get("CARBONLEDGER_LOG_DIR")
    if env_dir:
        return Path(env_dir)
    return None


def setup_carbonledger_logging(
    level: Optional[Union[int, str]] = None,
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Configure the ``carbonledger`` logger.

    Adds a stream handler and, when a log directory is known, a file handler
    writing ``local-YYYY-MM-DD.log``. Repeated calls replace nothing and add
    nothing; they only update the level.

    Args:
        level: Logging level name or number. Defaults to settings.log_level.
        log_dir: Directory for the log file. Falls back to
            ``CARBONLEDGER_LOG_DIR``; no file logging when neither is set.

    Returns:
        The configured ``carbonledger`` logger.
    """
    if level is None:
        from carbonledger.config import get_settings

        level = get_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)

    has_stream = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if not has_stream:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    directory = _resolve_log_dir(log_dir)
    has_file = any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    if directory is not None and not has_file:
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"local-{date.today().isoformat()}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

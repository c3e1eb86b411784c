"""
Dual-sink logging for the motion VFX pipeline.

Every record goes to stdout and to a log file, so an unattended installation
keeps a record of quality adjustments and collaborator failures after the
console is gone.
"""

import sys
import logging
from pathlib import Path
from typing import List, Optional


PACKAGE_LOGGER = "motion_vfx"

# Tried in order when no explicit log file is given
LOG_FILE_PATHS = [
    "/var/log/motion_vfx.log",
    "/tmp/motion_vfx.log",
]

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _find_writable_log_file() -> Optional[str]:
    for candidate in LOG_FILE_PATHS:
        path = Path(candidate)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
        except OSError:
            continue
        return candidate
    return None


def _build_handlers(level: int, formatter: logging.Formatter,
                    log_file: Optional[str], file_logging: bool) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    handlers: List[logging.Handler] = [console]

    if file_logging:
        target = log_file or _find_writable_log_file()
        if target:
            try:
                handlers.append(logging.FileHandler(target, mode='a'))
            except OSError as e:
                print(f"Warning: file logging disabled, cannot open {target}: {e}", file=sys.stderr)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(verbose: bool = False,
                  log_file: Optional[str] = None,
                  log_format: Optional[str] = None,
                  file_logging: bool = True) -> logging.Logger:
    """
    Configure the root logger with a console and a file sink.

    Calling it again replaces the handlers of the previous call.

    Args:
        verbose: DEBUG instead of INFO
        log_file: Explicit log file; the default locations are tried when None
        log_format: Format string for both sinks
        file_logging: False logs to stdout only

    Returns:
        The package logger
    """
    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    logging.basicConfig(
        level=level,
        handlers=_build_handlers(level, formatter, log_file, file_logging),
        force=True,
    )

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger, typically ``get_logger(__name__)``."""
    return logging.getLogger(name)

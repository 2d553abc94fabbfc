"""
Logging setup for DocIntel.

Handlers are attached to the "docintel" package logger only; modules get
their logger via get_logger(__name__). Level, file output and log directory
come from LOG_LEVEL, LOG_TO_FILE and LOG_DIR.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "docintel"

DEFAULT_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_FILE_LOGGING = os.getenv("LOG_TO_FILE", "false").lower() == "true"
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))

CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "pypdf": logging.ERROR,
    "multipart": logging.WARNING,
}


def _file_handler(log_file: Optional[str]) -> logging.Handler:
    log_path = Path(log_file) if log_file else LOG_DIR / "docintel.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    log_level: str = DEFAULT_LOG_LEVEL,
    log_file: Optional[str] = None,
    enable_file_logging: bool = DEFAULT_FILE_LOGGING
) -> logging.Logger:
    """
    Configure the package logger. Safe to call more than once.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Log file path (defaults to LOG_DIR/docintel.log)
        enable_file_logging: Also write DEBUG and above to the log file

    Returns:
        The configured "docintel" logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    package_logger.addHandler(console)

    if enable_file_logging:
        package_logger.addHandler(_file_handler(log_file))

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, normally called as get_logger(__name__)."""
    return logging.getLogger(name)


setup_logging()

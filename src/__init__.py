import logging
import sys
from pathlib import Path

from pythonjsonlogger import json as jsonlogger

ROOT = Path(__file__).parent.absolute()
LOG_FORMAT: str = "%(asctime)s - %(name)s - [%(levelname)s] - %(message)s"
JSON_LOG_FORMAT: str = "%(asctime)s %(name)s %(levelname)s %(message)s"
DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"


def _build_formatter(structured: bool) -> logging.Formatter:
    """Return the JSON formatter when `structured` is set, the plain text one otherwise."""
    if structured:
        return jsonlogger.JsonFormatter(
            fmt=JSON_LOG_FORMAT,
            datefmt=DATE_FORMAT,
            # Include extra fields passed via logger.info(..., extra={...})
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger_name",
            },
        )
    return logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)


def create_logger(
    name: str = "tgunzip",
    log_level: int = logging.INFO,
    log_file: str | None = None,
    structured: bool = False,
) -> logging.Logger:
    """
    Create a configured logger with plain or structured JSON output.

    Parameters:
    -----------
    name : str, optional
        Name of the logger, by default 'tgunzip'
    log_level : int, optional
        Logging level, by default logging.INFO
    log_file : str, optional
        Path to log file. If None, logs to console only, by default None
    structured : bool, optional
        If True, outputs JSON-formatted logs. If False, uses plain text format, by default False

    Returns:
    --------
    logging.Logger
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Clear any existing handlers
    logger.handlers.clear()
    formatter = _build_formatter(structured)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def add_file_handler(
    logger: logging.Logger, log_file: str | Path, structured: bool = False
) -> logging.FileHandler:
    """Dynamically adds a file handler using the standard app format.

    Parameters
    ----------
    logger : logging.Logger
        The logger instance to which the file handler will be added.
    log_file : str | Path
        The path to the log file.
    structured : bool, optional
        If True, outputs JSON-formatted logs. If False, uses plain text format, by default False

    Returns
    -------
    logging.FileHandler
        The added file handler instance.
    """
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(_build_formatter(structured))
    logger.addHandler(file_handler)
    return file_handler


__all__ = ["ROOT", "add_file_handler", "create_logger"]

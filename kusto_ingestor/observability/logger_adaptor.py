"""Loguru-backed logger adaptor shared by every module of the ingestor."""

import logging
import sys
from typing import Any, Optional

from loguru import logger as _loguru_logger

from kusto_ingestor.constants import LOG_FORMAT, LOG_LEVEL

_loggers: dict = {}

_loguru_logger.configure(extra={"logger_name": "kusto_ingestor"})


class InterceptHandler(logging.Handler):
    """Route records from stdlib logging (Azure SDK, Kusto SDK) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        _loguru_logger.opt(depth=depth, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


class IngestorLogger:
    """Minimal named logger that forwards to loguru."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._log = _loguru_logger.bind(logger_name=name)

    @property
    def name(self) -> str:
        return self._name

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log.info(msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log.error(msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log.warning(msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log.debug(msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log.exception(msg, *args, **kwargs)


def get_logger(name: Optional[str] = None) -> IngestorLogger:
    if name is None:
        name = "kusto_ingestor"
    if name not in _loggers:
        _loggers[name] = IngestorLogger(name)
    return _loggers[name]


def configure_logging(level: str = LOG_LEVEL, sdk_level: int = logging.WARNING) -> None:
    """Install the stderr sink and bridge stdlib logging into loguru.

    Args:
        level: Minimum level for the stderr sink.
        sdk_level: Minimum level forwarded from stdlib loggers. The Azure SDKs
            log every HTTP request at INFO, so they default to WARNING.
    """
    _loguru_logger.remove()
    _loguru_logger.add(sys.stderr, format=LOG_FORMAT, level=level, colorize=True)
    logging.basicConfig(level=sdk_level, handlers=[InterceptHandler()], force=True)

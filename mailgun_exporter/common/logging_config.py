"""
Structured logging configuration using JSON format.
Provides consistent logging across all components with scrape ID support.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional

from mailgun_exporter.common.correlation import ScrapeIdFilter

LOGGER_PREFIXES = ("mailgun_exporter", "exporter")

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with scrape correlation"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with scrape and component fields"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Injected by ScrapeIdFilter
        scrape_id = getattr(record, 'scrape_id', None)
        if scrape_id:
            log_data['scrape_id'] = scrape_id

        component = getattr(record, 'component', None)
        if component:
            log_data['component'] = component

        # Passed via extra={"domain": ...}
        if hasattr(record, 'domain'):
            log_data['domain'] = record.domain

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def _build_formatter(fmt: str) -> logging.Formatter:
    if fmt.lower() == "text":
        return logging.Formatter(TEXT_FORMAT)
    return JSONFormatter()


def setup_logging(name: str, level: str = "INFO", fmt: str = "json") -> logging.Logger:
    """
    Configure structured logging for a component.

    Args:
        name: Logger name (usually __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: Output format, "json" or "text"

    Returns:
        Configured logger instance with scrape ID filter
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter(fmt))

    logger.addHandler(handler)

    if not any(isinstance(f, ScrapeIdFilter) for f in logger.filters):
        logger.addFilter(ScrapeIdFilter())

    logger.propagate = False

    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get or create a logger with optional level override.

    Args:
        name: Logger name
        level: Optional log level override

    Returns:
        Logger instance with scrape ID filter
    """
    if level:
        return setup_logging(name, level)

    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logging(name, "INFO")

    if not any(isinstance(f, ScrapeIdFilter) for f in logger.filters):
        logger.addFilter(ScrapeIdFilter())

    return logger


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """
    Apply level and format to every exporter logger created so far.

    Module loggers are created at import time with defaults; this is called
    once the settings are loaded.
    """
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(LOGGER_PREFIXES):
            setup_logging(name, level, fmt)

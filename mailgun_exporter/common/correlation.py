"""
Scrape IDs for log correlation.
Every scrape of the metrics endpoint runs under its own scrape ID so that
all log lines emitted while collecting can be grouped together.
"""
import uuid
import logging
from typing import Optional
from contextvars import ContextVar, Token

_scrape_id_var: ContextVar[Optional[str]] = ContextVar('scrape_id', default=None)
_component_var: ContextVar[Optional[str]] = ContextVar('component', default=None)


def get_scrape_id() -> Optional[str]:
    """Scrape ID of the current context, or None outside a scrape."""
    return _scrape_id_var.get()


def set_component(component: str) -> None:
    """Name the process role reported on every log line (e.g. "exporter")."""
    _component_var.set(component)


class ScrapeIdFilter(logging.Filter):
    """
    Logging filter that stamps scrape_id and component onto log records.
    Worker threads only see the ID when run inside a copied context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.scrape_id = _scrape_id_var.get() or ""
        record.component = _component_var.get() or ""
        return True


class ScrapeContext:
    """
    Run a block under a scrape ID; the enclosing ID is back in place on exit.

    Usage:
        with ScrapeContext() as ctx:
            logger.info("collecting")   # carries ctx.scrape_id
    """

    def __init__(self, scrape_id: Optional[str] = None):
        self.scrape_id = scrape_id or uuid.uuid4().hex
        self._token: Optional[Token] = None

    def __enter__(self) -> 'ScrapeContext':
        self._token = _scrape_id_var.set(self.scrape_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _scrape_id_var.reset(self._token)
        self._token = None

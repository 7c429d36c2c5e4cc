"""
HTTP client for the Mailgun statistics API.
One call per domain per scrape, bounded by a total deadline, never retried.
"""
import contextvars
import threading
import time
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import List, Optional, Tuple

import requests

from mailgun_exporter import __version__
from mailgun_exporter.common.logging_config import get_logger
from mailgun_exporter.common.exceptions import MailgunAPIError
from mailgun_exporter.mailgun.models import DomainStat, StatsResponse

logger = get_logger(__name__)

DEFAULT_API_BASE = "https://api.mailgun.net/v3"

STAT_EVENTS = (
    "accepted",
    "clicked",
    "complained",
    "delivered",
    "failed",
    "opened",
    "stored",
    "unsubscribed",
)

RESOLUTION_HOUR = "hour"

CHUNK_SIZE = 4096


class MailgunClient:
    """
    Mailgun statistics client.

    Usage:
        client = MailgunClient(api_key="key-...", timeout=30)
        stats = client.get_stats("mg.example.com", start=started_at)
    """

    def __init__(
        self,
        api_key: str,
        api_base: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            api_key: Mailgun private API key
            api_base: API base URL, e.g. https://api.eu.mailgun.net/v3
            timeout: Total time allowed for one stats call, in seconds
            session: Optional pre-built requests session
        """
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = ("api", api_key)
        self.session.headers.update({"User-Agent": f"mailgun-exporter/{__version__}"})

        logger.info(f"Mailgun client initialized (api_base={self.api_base}, timeout={timeout}s)")

    def stats_url(self, domain: str) -> str:
        return f"{self.api_base}/{domain}/stats/total"

    def get_stats(
        self,
        domain: str,
        start: datetime,
        end: Optional[datetime] = None
    ) -> List[DomainStat]:
        """
        Fetch hourly statistics buckets for a domain.

        The whole call, connect through last body byte, is bounded by
        ``timeout``. requests only bounds each socket operation, so the
        transfer runs on a worker thread that is abandoned once the deadline
        passes; it stops at the next chunk boundary.

        Args:
            domain: Sending domain
            start: Window start (fixed at process startup)
            end: Window end, defaults to now on the server side

        Returns:
            Buckets in the order returned by the API

        Raises:
            MailgunAPIError: On transport errors, timeouts, non-2xx responses
                or payloads that cannot be decoded
        """
        params = [("event", event) for event in STAT_EVENTS]
        params.append(("resolution", RESOLUTION_HOUR))
        params.append(("start", _format_time(start)))
        if end is not None:
            params.append(("end", _format_time(end)))

        deadline = time.monotonic() + self.timeout
        outcome = {}

        def transfer():
            try:
                outcome["response"] = self._download(domain, params, deadline)
            except Exception as exc:
                outcome["error"] = exc

        worker = threading.Thread(
            target=contextvars.copy_context().run,
            args=(transfer,),
            name=f"mailgun-{domain}",
            daemon=True
        )
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            raise MailgunAPIError(
                f"timed out after {self.timeout}s fetching stats for {domain}",
                domain=domain
            )
        if "error" in outcome:
            raise outcome["error"]

        status_code, body = outcome["response"]
        try:
            response = StatsResponse.model_validate_json(body)
        except ValueError as exc:
            # pydantic's ValidationError covers both bad JSON and a bad shape
            raise MailgunAPIError(
                f"unexpected stats payload for {domain}: {exc}",
                domain=domain,
                status_code=status_code
            ) from exc

        logger.debug(
            f"Fetched {len(response.stats)} bucket(s) for {domain}",
            extra={"domain": domain}
        )
        return response.stats

    def _download(self, domain: str, params, deadline: float) -> Tuple[int, bytes]:
        """Issue the request and read the body, giving up at ``deadline``."""
        try:
            with self.session.get(
                self.stats_url(domain), params=params, timeout=self.timeout, stream=True
            ) as resp:
                resp.raise_for_status()
                chunks = []
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if time.monotonic() > deadline:
                        raise requests.Timeout("deadline exceeded while reading body")
                    chunks.append(chunk)
                return resp.status_code, b"".join(chunks)
        except requests.Timeout as exc:
            raise MailgunAPIError(
                f"timed out after {self.timeout}s fetching stats for {domain}",
                domain=domain
            ) from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise MailgunAPIError(
                f"HTTP {status} fetching stats for {domain}",
                domain=domain,
                status_code=status
            ) from exc
        except requests.RequestException as exc:
            raise MailgunAPIError(
                f"request failed fetching stats for {domain}: {exc}",
                domain=domain
            ) from exc


def _format_time(value: datetime) -> str:
    """RFC 2822 timestamp in GMT, as accepted by the stats API."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def create_mailgun_client_from_config(config) -> MailgunClient:
    """
    Create MailgunClient from configuration.

    Args:
        config: Settings object

    Returns:
        Configured MailgunClient
    """
    return MailgunClient(
        api_key=config.mailgun.mg_api_key,
        api_base=config.mailgun.api_base,
        timeout=config.mailgun.api_timeout_seconds
    )

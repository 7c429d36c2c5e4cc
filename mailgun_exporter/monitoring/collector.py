"""
Prometheus collector translating Mailgun domain statistics into metrics.

The collector is pull-driven: every scrape of the metrics endpoint calls
``collect()``, which queries the stats API once per configured domain and
emits fresh metric families. Nothing is cached between scrapes.

Usage:
    collector = MailgunCollector(client, ["mg.example.com"], scrape_start)
    registry = build_registry(collector)
    generate_latest(registry)
"""
import contextvars
import platform
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from prometheus_client import (
    CollectorRegistry,
    GCCollector,
    Info,
    PlatformCollector,
    ProcessCollector,
)
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

from mailgun_exporter import __version__
from mailgun_exporter.common.correlation import ScrapeContext
from mailgun_exporter.common.exceptions import MailgunAPIError
from mailgun_exporter.common.logging_config import get_logger
from mailgun_exporter.mailgun.models import DomainAggregate, ScrapeResult

logger = get_logger(__name__)

NAMESPACE = "mailgun"


class DomainMetric:
    """
    One domain counter: its name, help text, label names and the aggregate
    field feeding each label value.
    """

    def __init__(
        self,
        name: str,
        documentation: str,
        sources: Sequence[Tuple[str, Optional[str]]]
    ):
        self.name = f"{NAMESPACE}_domain_{name}"
        self.documentation = documentation
        self.sources = tuple(sources)
        self.typed = any(label is not None for _, label in self.sources)

    @property
    def labels(self) -> List[str]:
        return ["name", "type"] if self.typed else ["name"]

    def family(self) -> CounterMetricFamily:
        return CounterMetricFamily(self.name, self.documentation, labels=self.labels)

    def add_samples(self, family: CounterMetricFamily, aggregate: DomainAggregate) -> None:
        for field, label in self.sources:
            values = [aggregate.domain, label] if self.typed else [aggregate.domain]
            family.add_metric(values, float(getattr(aggregate, field)))


DOMAIN_METRICS = (
    DomainMetric(
        "accepted",
        "Mailgun accepted the request for incoming/outgoing to send/forward the email "
        "and the message has been placed in queue.",
        [("accepted_incoming", "incoming"), ("accepted_outgoing", "outgoing")],
    ),
    DomainMetric(
        "clicked",
        "The email recipient clicked on a link in the email.",
        [("clicked", None)],
    ),
    DomainMetric(
        "complained",
        "The email recipient clicked on the spam complaint button within their email client.",
        [("complained", None)],
    ),
    DomainMetric(
        "delivered",
        "Mailgun sent the email via HTTP or SMTP and it was accepted by the recipient email server.",
        [("delivered_http", "http"), ("delivered_smtp", "smtp")],
    ),
    DomainMetric(
        "failed_permanent",
        "All permanently failed emails. Includes bounce, delayed bounce, suppress bounce, "
        "suppress complaint, suppress unsubscribe.",
        [
            ("failed_permanent_bounce", "bounce"),
            ("failed_permanent_delayed_bounce", "delayed_bounce"),
            ("failed_permanent_suppress_bounce", "suppress_bounce"),
            ("failed_permanent_suppress_complaint", "suppress_complaint"),
            ("failed_permanent_suppress_unsubscribe", "suppress_unsubscribe"),
        ],
    ),
    DomainMetric(
        "failed_temporary",
        "All temporarily failed emails due to ESP block, that will be retried.",
        [("failed_temporary_esp_block", "esp_block")],
    ),
    DomainMetric(
        "opened",
        "The email recipient opened the email and enabled image viewing.",
        [("opened", None)],
    ),
    DomainMetric(
        "stored",
        "Mailgun stored the incoming message for later retrieval.",
        [("stored", None)],
    ),
    DomainMetric(
        "unsubscribed",
        "The email recipient clicked on the unsubscribe link.",
        [("unsubscribed", None)],
    ),
)

UP_NAME = f"{NAMESPACE}_up"
UP_HELP = "'1' if the last scrape of Mailgun's API was successful, '0' otherwise."

STATE_NAME = f"{NAMESPACE}_domain_state"
STATE_HELP = "Is the domain active (1) or disabled (0)"


class MailgunCollector:
    """
    Custom collector querying the Mailgun stats API on every scrape.

    Args:
        client: ``MailgunClient`` (anything with ``get_stats(domain, start)``)
        domains: domains to scrape, in output order
        scrape_start: fixed window start, taken once at process startup
        concurrency: number of domains fetched in parallel (1 = sequential)
    """

    def __init__(
        self,
        client,
        domains: Sequence[str],
        scrape_start: datetime,
        concurrency: int = 1
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.client = client
        self.domains = tuple(domains)
        self.scrape_start = scrape_start
        self.concurrency = concurrency

        logger.info(
            f"MailgunCollector initialized: domains={list(self.domains)}, "
            f"window_start={scrape_start.isoformat()}, concurrency={concurrency}"
        )

    # -- Collector protocol -------------------------------------------------

    def describe(self) -> List[Metric]:
        """Families without samples, so registration never hits the API."""
        families: List[Metric] = [GaugeMetricFamily(UP_NAME, UP_HELP)]
        families.extend(metric.family() for metric in DOMAIN_METRICS)
        families.append(GaugeMetricFamily(STATE_NAME, STATE_HELP, labels=["name"]))
        return families

    def collect(self) -> List[Metric]:
        with ScrapeContext():
            started = time.time()
            results = self.scrape()
            families = self.build_families(results)

            up_count = sum(1 for r in results if r.up)
            logger.info(
                f"Scrape finished: {up_count}/{len(results)} domain(s) up "
                f"in {time.time() - started:.3f}s"
            )
        return families

    # -- Scraping -----------------------------------------------------------

    def scrape(self) -> List[ScrapeResult]:
        """Fetch and aggregate every domain, one result per domain in configured order."""
        if self.concurrency == 1 or len(self.domains) <= 1:
            return [self.scrape_domain(domain) for domain in self.domains]

        workers = min(self.concurrency, len(self.domains))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scrape") as executor:
            # Each task runs in a copy of the current context to keep the scrape ID
            futures = [
                executor.submit(contextvars.copy_context().run, self.scrape_domain, domain)
                for domain in self.domains
            ]
            return [future.result() for future in futures]

    def scrape_domain(self, domain: str) -> ScrapeResult:
        try:
            stats = self.client.get_stats(domain, start=self.scrape_start)
        except MailgunAPIError as e:
            logger.error(f"Failed to scrape domain {domain}: {e}", extra={"domain": domain})
            return ScrapeResult.failure(domain, str(e))

        aggregate = DomainAggregate.from_stats(domain, stats)
        logger.debug(
            f"Domain {domain} up: {aggregate.buckets} bucket(s) aggregated",
            extra={"domain": domain}
        )
        return ScrapeResult.success(aggregate)

    # -- Translation --------------------------------------------------------

    @staticmethod
    def build_families(results: Iterable[ScrapeResult]) -> List[Metric]:
        """Translate scrape results into metric families."""
        results = list(results)
        state = GaugeMetricFamily(STATE_NAME, STATE_HELP, labels=["name"])
        counters = [(metric, metric.family()) for metric in DOMAIN_METRICS]

        for result in results:
            state.add_metric([result.domain], 1.0 if result.up else 0.0)
            if not result.up:
                continue
            for metric, family in counters:
                metric.add_samples(family, result.aggregate)

        up = GaugeMetricFamily(
            UP_NAME,
            UP_HELP,
            value=1.0 if all(r.up for r in results) else 0.0,
        )
        return [up] + [family for _, family in counters] + [state]


def build_registry(collector: MailgunCollector) -> CollectorRegistry:
    """
    Create the registry served on the metrics endpoint: the Mailgun collector,
    the exporter build info and the process/platform/GC runtime metrics.
    """
    registry = CollectorRegistry()
    registry.register(collector)
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    GCCollector(registry=registry)

    build_info = Info(
        "mailgun_exporter_build",
        "Mailgun exporter build / version info",
        registry=registry,
    )
    build_info.info({
        "version": __version__,
        "python_version": platform.python_version(),
    })
    return registry

"""
Mailgun statistics records and per-domain aggregates.

``DomainStat`` mirrors one element of the ``stats`` array returned by
``GET /v3/{domain}/stats/total``; categories or fields missing from the
payload count as zero.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Counts(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class AcceptedCounts(_Counts):
    incoming: int = 0
    outgoing: int = 0


class DeliveredCounts(_Counts):
    http: int = 0
    smtp: int = 0


class PermanentFailureCounts(_Counts):
    bounce: int = 0
    delayed_bounce: int = Field(default=0, alias="delayed-bounce")
    suppress_bounce: int = Field(default=0, alias="suppress-bounce")
    suppress_complaint: int = Field(default=0, alias="suppress-complaint")
    suppress_unsubscribe: int = Field(default=0, alias="suppress-unsubscribe")


class TemporaryFailureCounts(_Counts):
    esp_block: int = Field(default=0, alias="espblock")


class FailedCounts(_Counts):
    permanent: PermanentFailureCounts = Field(default_factory=PermanentFailureCounts)
    temporary: TemporaryFailureCounts = Field(default_factory=TemporaryFailureCounts)


class TotalCount(_Counts):
    total: int = 0


class DomainStat(_Counts):
    """One hourly statistics bucket for a domain."""
    time: Optional[str] = None
    accepted: AcceptedCounts = Field(default_factory=AcceptedCounts)
    clicked: TotalCount = Field(default_factory=TotalCount)
    complained: TotalCount = Field(default_factory=TotalCount)
    delivered: DeliveredCounts = Field(default_factory=DeliveredCounts)
    failed: FailedCounts = Field(default_factory=FailedCounts)
    opened: TotalCount = Field(default_factory=TotalCount)
    stored: TotalCount = Field(default_factory=TotalCount)
    unsubscribed: TotalCount = Field(default_factory=TotalCount)


class StatsResponse(_Counts):
    """Envelope of the stats/total response."""
    stats: List[DomainStat] = Field(default_factory=list)
    resolution: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None


class DomainAggregate:
    """
    Running sums of every DomainStat field for one domain within one scrape.
    """

    FIELDS = (
        "accepted_incoming",
        "accepted_outgoing",
        "clicked",
        "complained",
        "delivered_http",
        "delivered_smtp",
        "failed_permanent_bounce",
        "failed_permanent_delayed_bounce",
        "failed_permanent_suppress_bounce",
        "failed_permanent_suppress_complaint",
        "failed_permanent_suppress_unsubscribe",
        "failed_temporary_esp_block",
        "opened",
        "stored",
        "unsubscribed",
    )

    def __init__(self, domain: str):
        self.domain = domain
        self.buckets = 0
        for name in self.FIELDS:
            setattr(self, name, 0.0)

    def add(self, stat: DomainStat) -> None:
        """Accumulate one bucket."""
        permanent = stat.failed.permanent

        self.accepted_incoming += stat.accepted.incoming
        self.accepted_outgoing += stat.accepted.outgoing
        self.clicked += stat.clicked.total
        self.complained += stat.complained.total
        self.delivered_http += stat.delivered.http
        self.delivered_smtp += stat.delivered.smtp
        self.failed_permanent_bounce += permanent.bounce
        self.failed_permanent_delayed_bounce += permanent.delayed_bounce
        self.failed_permanent_suppress_bounce += permanent.suppress_bounce
        self.failed_permanent_suppress_complaint += permanent.suppress_complaint
        self.failed_permanent_suppress_unsubscribe += permanent.suppress_unsubscribe
        self.failed_temporary_esp_block += stat.failed.temporary.esp_block
        self.opened += stat.opened.total
        self.stored += stat.stored.total
        self.unsubscribed += stat.unsubscribed.total
        self.buckets += 1

    @classmethod
    def from_stats(cls, domain: str, stats: List[DomainStat]) -> "DomainAggregate":
        aggregate = cls(domain)
        for stat in stats:
            aggregate.add(stat)
        return aggregate


class ScrapeResult:
    """Outcome of scraping one domain: an aggregate when up, an error when down."""

    def __init__(
        self,
        domain: str,
        aggregate: Optional[DomainAggregate] = None,
        error: Optional[str] = None
    ):
        if (aggregate is None) == (error is None):
            raise ValueError("ScrapeResult needs exactly one of aggregate or error")
        self.domain = domain
        self.aggregate = aggregate
        self.error = error

    @classmethod
    def success(cls, aggregate: DomainAggregate) -> "ScrapeResult":
        return cls(aggregate.domain, aggregate=aggregate)

    @classmethod
    def failure(cls, domain: str, error: str) -> "ScrapeResult":
        return cls(domain, error=error)

    @property
    def up(self) -> bool:
        return self.aggregate is not None

    def __repr__(self) -> str:
        status = "up" if self.up else f"down: {self.error}"
        return f"ScrapeResult({self.domain!r}, {status})"

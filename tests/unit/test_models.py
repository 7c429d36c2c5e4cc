"""
Unit tests for Mailgun stats models and per-domain aggregation.
"""
import pytest
from pydantic import ValidationError

from mailgun_exporter.mailgun.models import (
    DomainStat,
    DomainAggregate,
    ScrapeResult,
    StatsResponse,
)


def make_stat(n: int) -> DomainStat:
    """Bucket whose every field is derived from n so sums are easy to predict"""
    return DomainStat.model_validate({
        "time": f"Mon, 0{n} Jan 2024 00:00:00 UTC",
        "accepted": {"incoming": n, "outgoing": 10 * n, "total": 11 * n},
        "clicked": {"total": n + 1},
        "complained": {"total": n + 2},
        "delivered": {"http": n + 3, "smtp": n + 4, "total": 2 * n + 7},
        "failed": {
            "permanent": {
                "bounce": n + 5,
                "delayed-bounce": n + 6,
                "suppress-bounce": n + 7,
                "suppress-complaint": n + 8,
                "suppress-unsubscribe": n + 9,
                "total": 5 * n + 35,
            },
            "temporary": {"espblock": n + 10},
        },
        "opened": {"total": n + 11},
        "stored": {"total": n + 12},
        "unsubscribed": {"total": n + 13},
    })


class TestDomainStat:
    """Parsing of a single stats bucket"""

    def test_parses_wire_names(self):
        stat = make_stat(1)
        assert stat.accepted.incoming == 1
        assert stat.accepted.outgoing == 10
        assert stat.failed.permanent.delayed_bounce == 7
        assert stat.failed.permanent.suppress_bounce == 8
        assert stat.failed.permanent.suppress_complaint == 9
        assert stat.failed.permanent.suppress_unsubscribe == 10
        assert stat.failed.temporary.esp_block == 11
        assert stat.unsubscribed.total == 14

    def test_missing_categories_default_to_zero(self):
        stat = DomainStat.model_validate({"time": "Mon, 01 Jan 2024 00:00:00 UTC"})
        assert stat.accepted.incoming == 0
        assert stat.delivered.smtp == 0
        assert stat.failed.permanent.bounce == 0
        assert stat.failed.temporary.esp_block == 0
        assert stat.opened.total == 0

    def test_partial_category(self):
        stat = DomainStat.model_validate({"failed": {"permanent": {"bounce": 3}}})
        assert stat.failed.permanent.bounce == 3
        assert stat.failed.permanent.delayed_bounce == 0
        assert stat.failed.temporary.esp_block == 0

    def test_unknown_fields_ignored(self):
        stat = DomainStat.model_validate({"accepted": {"incoming": 1, "brand_new": 9}})
        assert stat.accepted.incoming == 1

    def test_immutable(self):
        stat = make_stat(1)
        with pytest.raises(ValidationError):
            stat.accepted = None

    def test_rejects_non_numeric_counts(self):
        with pytest.raises(ValidationError):
            DomainStat.model_validate({"clicked": {"total": "many"}})


class TestStatsResponse:
    def test_envelope(self):
        response = StatsResponse.model_validate({
            "description": "daily",
            "start": "Mon, 01 Jan 2024 00:00:00 UTC",
            "end": "Mon, 01 Jan 2024 02:00:00 UTC",
            "resolution": "hour",
            "stats": [{"clicked": {"total": 1}}, {"clicked": {"total": 2}}],
        })
        assert response.resolution == "hour"
        assert [s.clicked.total for s in response.stats] == [1, 2]

    def test_missing_stats_is_empty(self):
        assert StatsResponse.model_validate({}).stats == []


class TestDomainAggregate:
    """Summation across buckets"""

    def test_no_buckets_all_zero(self):
        aggregate = DomainAggregate.from_stats("mg.example.com", [])
        assert aggregate.buckets == 0
        for field in DomainAggregate.FIELDS:
            assert getattr(aggregate, field) == 0.0

    def test_single_bucket(self):
        aggregate = DomainAggregate.from_stats("mg.example.com", [make_stat(2)])
        assert aggregate.buckets == 1
        assert aggregate.accepted_incoming == 2.0
        assert aggregate.accepted_outgoing == 20.0
        assert aggregate.clicked == 3.0
        assert aggregate.complained == 4.0
        assert aggregate.delivered_http == 5.0
        assert aggregate.delivered_smtp == 6.0
        assert aggregate.failed_permanent_bounce == 7.0
        assert aggregate.failed_permanent_delayed_bounce == 8.0
        assert aggregate.failed_permanent_suppress_bounce == 9.0
        assert aggregate.failed_permanent_suppress_complaint == 10.0
        assert aggregate.failed_permanent_suppress_unsubscribe == 11.0
        assert aggregate.failed_temporary_esp_block == 12.0
        assert aggregate.opened == 13.0
        assert aggregate.stored == 14.0
        assert aggregate.unsubscribed == 15.0

    def test_three_buckets(self):
        aggregate = DomainAggregate.from_stats(
            "mg.example.com", [make_stat(1), make_stat(2), make_stat(3)]
        )
        # each field is n + offset, so the sum is 6 + 3 * offset
        assert aggregate.buckets == 3
        assert aggregate.accepted_incoming == 6.0
        assert aggregate.accepted_outgoing == 60.0
        assert aggregate.clicked == 9.0
        assert aggregate.complained == 12.0
        assert aggregate.delivered_http == 15.0
        assert aggregate.delivered_smtp == 18.0
        assert aggregate.failed_permanent_bounce == 21.0
        assert aggregate.failed_permanent_delayed_bounce == 24.0
        assert aggregate.failed_permanent_suppress_bounce == 27.0
        assert aggregate.failed_permanent_suppress_complaint == 30.0
        assert aggregate.failed_permanent_suppress_unsubscribe == 33.0
        assert aggregate.failed_temporary_esp_block == 36.0
        assert aggregate.opened == 39.0
        assert aggregate.stored == 42.0
        assert aggregate.unsubscribed == 45.0

    def test_values_are_floats(self):
        aggregate = DomainAggregate.from_stats("mg.example.com", [make_stat(1)])
        assert isinstance(aggregate.clicked, float)


class TestScrapeResult:
    def test_success_is_up(self):
        result = ScrapeResult.success(DomainAggregate("mg.example.com"))
        assert result.up
        assert result.domain == "mg.example.com"
        assert result.error is None

    def test_failure_is_down(self):
        result = ScrapeResult.failure("mg.example.com", "HTTP 401")
        assert not result.up
        assert result.aggregate is None
        assert "down" in repr(result)

    def test_requires_exactly_one_outcome(self):
        with pytest.raises(ValueError):
            ScrapeResult("mg.example.com")
        with pytest.raises(ValueError):
            ScrapeResult("mg.example.com", aggregate=DomainAggregate("x"), error="boom")

"""
Monitoring module - Prometheus collector for Mailgun statistics.
"""
from mailgun_exporter.monitoring.collector import (
    MailgunCollector,
    DOMAIN_METRICS,
    build_registry,
)

__all__ = [
    "MailgunCollector",
    "DOMAIN_METRICS",
    "build_registry",
]

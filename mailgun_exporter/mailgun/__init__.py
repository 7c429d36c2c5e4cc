"""Mailgun API package"""
from mailgun_exporter.mailgun.client import MailgunClient, create_mailgun_client_from_config
from mailgun_exporter.mailgun.models import DomainStat, DomainAggregate, ScrapeResult

__all__ = [
    "MailgunClient",
    "create_mailgun_client_from_config",
    "DomainStat",
    "DomainAggregate",
    "ScrapeResult",
]

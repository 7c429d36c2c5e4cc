"""Prometheus exporter for Mailgun domain statistics."""

__version__ = "1.0.0"

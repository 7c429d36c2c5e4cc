"""
Custom exceptions for the Mailgun exporter.
Hierarchical exception structure for better error handling and debugging.
"""
from typing import Optional


class MailgunExporterError(Exception):
    """Base exception for the Mailgun exporter"""
    pass


class ConfigurationError(MailgunExporterError):
    """Error in configuration loading or validation"""
    pass


class MailgunAPIError(MailgunExporterError):
    """Error fetching or decoding statistics from the Mailgun API"""

    def __init__(
        self,
        message: str,
        domain: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.domain = domain
        self.status_code = status_code


class ServerStartError(MailgunExporterError):
    """Error binding the HTTP server to its listen address"""
    pass

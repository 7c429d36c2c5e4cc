"""HTTP endpoint package"""
from mailgun_exporter.web.server import ExporterHTTPServer, parse_listen_address

__all__ = ["ExporterHTTPServer", "parse_listen_address"]

#!/usr/bin/env python3
"""
Mailgun Exporter - Mailgun stats API to Prometheus
Queries Mailgun's statistics API for the configured domains on every scrape
and exposes the totals as Prometheus metrics.
"""
import sys
import signal
import threading
import platform
import argparse
from datetime import datetime, timezone
from typing import Callable, List, Optional

from config.settings import load_settings
from mailgun_exporter import __version__
from mailgun_exporter.common.logging_config import get_logger, configure_logging
from mailgun_exporter.common.exceptions import ConfigurationError, ServerStartError
from mailgun_exporter.common.correlation import set_component
from mailgun_exporter.mailgun.client import create_mailgun_client_from_config
from mailgun_exporter.monitoring.collector import MailgunCollector, build_registry
from mailgun_exporter.web.server import ExporterHTTPServer

DEFAULT_LISTEN_ADDRESS = ":9616"
DEFAULT_TELEMETRY_PATH = "/metrics"

logger = get_logger(__name__)

# Set component name for logging
set_component("exporter")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mailgun-exporter",
        description="Mailgun Exporter - expose Mailgun domain statistics as Prometheus metrics"
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=DEFAULT_LISTEN_ADDRESS,
        help=f"Address to listen on for web interface and telemetry (default: {DEFAULT_LISTEN_ADDRESS})"
    )
    parser.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        default=DEFAULT_TELEMETRY_PATH,
        help=f"Path under which to expose metrics (default: {DEFAULT_TELEMETRY_PATH})"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"mailgun-exporter {__version__} (python {platform.python_version()})"
    )
    return parser.parse_args(argv)


def build_server(
    settings,
    listen_address: str = DEFAULT_LISTEN_ADDRESS,
    telemetry_path: str = DEFAULT_TELEMETRY_PATH,
    scrape_start: Optional[datetime] = None
) -> ExporterHTTPServer:
    """
    Wire client, collector, registry and HTTP server together.

    Args:
        settings: Loaded Settings
        listen_address: ``[host]:port`` to bind
        telemetry_path: Metrics path
        scrape_start: Fixed stats window start, defaults to now (UTC)

    Returns:
        Unbound ExporterHTTPServer
    """
    client = create_mailgun_client_from_config(settings)
    collector = MailgunCollector(
        client,
        settings.mailgun.domains,
        scrape_start or datetime.now(timezone.utc),
        concurrency=settings.mailgun.scrape_concurrency
    )
    registry = build_registry(collector)
    return ExporterHTTPServer(registry, listen_address, telemetry_path)


def install_signal_handlers(server: ExporterHTTPServer) -> Callable:
    """
    Stop serving on SIGTERM.

    Returns:
        The previous SIGTERM handler, to restore on exit
    """
    def _handle(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        # shutdown() blocks until serve_forever returns, which is this thread
        threading.Thread(target=server.shutdown, name="shutdown", daemon=True).start()

    return signal.signal(signal.SIGTERM, _handle)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)

    logger.info(f"Starting Mailgun exporter (version={__version__})")
    logger.info(
        f"Build context (python={platform.python_version()}, "
        f"implementation={platform.python_implementation()}, platform={platform.platform()})"
    )

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(1)

    configure_logging(settings.logging.level, settings.logging.format)

    try:
        server = build_server(settings, args.listen_address, args.telemetry_path)
        server.bind()
    except (ConfigurationError, ServerStartError) as e:
        logger.critical(f"Exporter failed to start: {e}")
        sys.exit(1)

    previous_handler = install_signal_handlers(server)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)

    logger.info("Exporter terminated")
    sys.exit(0)


if __name__ == "__main__":
    main()

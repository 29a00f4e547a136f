"""Main entry point for the tailscale peer traffic exporter."""
import logging
import sys
import threading
from typing import Optional

from prometheus_client import CollectorRegistry

from tailscale_exporter.collector import PeerTrafficCollector
from tailscale_exporter.config import ExporterConfig
from tailscale_exporter.errors import TailscaleError
from tailscale_exporter.server import MetricsServer
from tailscale_exporter.status import StatusFetcher, TailscaleStatus
from tailscale_exporter.watchdog import AddressWatchdog

logger = logging.getLogger(__name__)


def setup_logging(log_level: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def build_registry(fetcher: StatusFetcher, config: ExporterConfig) -> CollectorRegistry:
    """Create a fresh registry holding the peer traffic collector."""
    # Custom registry: no default process/platform collectors
    registry = CollectorRegistry()
    registry.register(PeerTrafficCollector(fetcher, namespace=config.namespace))
    return registry


def log_status_banner(status: TailscaleStatus, address: str, config: ExporterConfig):
    tailnet = status.current_tailnet.name if status.current_tailnet else "unknown"

    logger.info("=" * 60)
    logger.info("Tailscale Exporter")
    logger.info("=" * 60)
    logger.info(f"Tailscale version: {status.version or 'unknown'}")
    logger.info(f"Backend state: {status.backend_state or 'unknown'}")
    logger.info(f"Tailnet: {tailnet}")
    logger.info(f"Self: {status.self_node.host_name} ({address})")
    logger.info(f"Peers: {len(status.peers)}")
    logger.info(f"Watchdog interval: {config.watchdog_interval_s}s")


def run_watchdog_thread(watchdog: AddressWatchdog, server: MetricsServer):
    """Run the watchdog and stop the server once it terminates."""
    try:
        error = watchdog.run()
    except Exception as e:
        logger.error(f"Watchdog thread error: {e}", exc_info=True)
        error = e
        watchdog.terminate(e)

    if error is not None:
        server.shutdown()


def main(config: Optional[ExporterConfig] = None) -> int:
    """Main function.

    Returns:
        Process exit code
    """
    config = config or ExporterConfig()
    setup_logging(config.log_level)

    fetcher = StatusFetcher(config)

    # The listen address is the host's primary tailnet address
    try:
        status = fetcher.fetch()
        address = status.self_node.primary_address()
    except TailscaleError as e:
        logger.error(f"Failed to determine listen address: {e}")
        return 1

    log_status_banner(status, address, config)

    registry = build_registry(fetcher, config)
    server = MetricsServer(registry, host=address, port=config.listen_port)

    watchdog = AddressWatchdog(
        fetcher,
        address,
        interval_s=config.watchdog_interval_s,
        max_failures=config.watchdog_max_failures,
    )
    watchdog_thread = threading.Thread(
        target=run_watchdog_thread,
        args=(watchdog, server),
        name="address-watchdog",
        daemon=True
    )
    watchdog_thread.start()

    try:
        server.run()
    except Exception as e:
        logger.error(f"Metrics server error: {e}", exc_info=True)
        watchdog.stop()
        return 1

    watchdog.stop()
    if watchdog.fatal_error is not None:
        logger.critical(f"Exiting, restart required: {watchdog.fatal_error}")
        return 1

    logger.info("Shut down")
    return 0


if __name__ == "__main__":
    sys.exit(main())

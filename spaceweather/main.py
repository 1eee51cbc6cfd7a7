"""Process Entry Point.

This module provides the entry point for the long-running monitor.
It's a thin wrapper that loads configuration, starts the Monitor and
stops it cleanly on SIGINT/SIGTERM.
"""

import logging
import os
import signal
import sys

from dotenv import load_dotenv

from spaceweather.core.config import ConfigError
from spaceweather.orchestrator import Monitor
from spaceweather.shell.config_loader import load_validated_config


EXIT_CONFIG_ERROR = 2

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from LOG_LEVEL."""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def install_signal_handlers(monitor: Monitor) -> None:
    """Route SIGINT/SIGTERM to the monitor's stop event."""

    def _handle(signum, frame):
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        monitor.stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main(argv: list[str] | None = None) -> int:
    """Run the space weather monitor until signalled.

    Args:
        argv: Optional [config_path]; falls back to CONFIG_PATH or the environment

    Returns:
        Process exit status
    """
    load_dotenv()
    configure_logging()

    args = sys.argv[1:] if argv is None else argv
    config_path = args[0] if args else None

    try:
        config = load_validated_config(config_path)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    monitor = Monitor(config)
    install_signal_handlers(monitor)

    logger.info("Space weather monitor running at %.2f, %.2f", config.latitude, config.longitude)
    monitor.run_forever()

    logger.info("Completed: %s", monitor.stats.summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())

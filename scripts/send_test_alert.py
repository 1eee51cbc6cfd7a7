#!/usr/bin/env python3
"""Send a test warning to all configured channels.

⚠️  WARNING: This script sends REAL notifications!
    - Email: Delivered to EMAIL_TO
    - SMS: Delivered to SMS_TO (Twilio charges apply)

This script builds a synthetic storm snapshot and sends it through the
same formatter and dispatcher as production warnings.

Usage:
    # Dry run (preview only, no sends)
    python scripts/send_test_alert.py --dry-run

    # Send by email only
    python scripts/send_test_alert.py --channel email

    # Simulate a short-fuse warning
    python scripts/send_test_alert.py --bz -15 --speed 700

Environment:
    CONFIG_PATH: Path to a YAML config (default: environment variables)
"""

import argparse
import logging
import os
import sys
from datetime import timedelta

from dotenv import load_dotenv

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from spaceweather.clock import utc_now
from spaceweather.core.alerts import AlertKind, AlertRecord, Trigger, warning_trigger
from spaceweather.core.config import ConfigError
from spaceweather.core.formatter import ReportContext, render_message
from spaceweather.core.sample import (
    AlertFeedSample,
    AlertNotice,
    AlertSeverity,
    KpForecastSample,
    SolarWindSample,
    SourceKind,
)
from spaceweather.core.score import EngineState, compute_state
from spaceweather.dispatcher import NotificationDispatcher, build_channels
from spaceweather.shell.config_loader import load_validated_config

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def create_test_state(config, kp: float, bz: float, speed: float) -> EngineState:
    """Create a synthetic engine snapshot.

    Args:
        config: Loaded configuration
        kp: Forecast Kp maximum
        bz: L1 Bz in nT
        speed: L1 speed in km/s

    Returns:
        EngineState computed from the synthetic samples
    """
    now = utc_now()
    samples = {
        SourceKind.REALTIME_SOLAR_WIND: SolarWindSample(
            source_kind=SourceKind.REALTIME_SOLAR_WIND,
            observed_at=now - timedelta(minutes=1),
            fetched_at=now,
            bz_nt=bz,
            speed_kms=speed,
        ),
        SourceKind.ALERT_FEED: AlertFeedSample(
            source_kind=SourceKind.ALERT_FEED,
            observed_at=now - timedelta(minutes=30),
            fetched_at=now,
            notices=(
                AlertNotice(
                    product_id="K06W",
                    severity=AlertSeverity.WARNING,
                    issued_at=now - timedelta(minutes=30),
                    valid_until=now + timedelta(hours=6),
                    g_scale=2,
                ),
            ),
        ),
        SourceKind.KP_FORECAST: KpForecastSample(
            source_kind=SourceKind.KP_FORECAST,
            observed_at=now,
            fetched_at=now,
            kp_max=kp,
        ),
    }
    return compute_state(samples, config.score_settings(), now, previous_lis=0)


def main():
    parser = argparse.ArgumentParser(
        description="Send a test space weather warning to configured channels",
        epilog="⚠️  WARNING: This sends REAL notifications! Use --dry-run first.",
    )
    parser.add_argument(
        "--kp",
        type=float,
        default=7.0,
        help="Forecast Kp maximum for test (default: 7.0)",
    )
    parser.add_argument(
        "--bz",
        type=float,
        default=-8.0,
        help="L1 Bz in nT (default: -8.0)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=550.0,
        help="L1 speed in km/s (default: 550)",
    )
    parser.add_argument(
        "--channel",
        choices=("email", "sms"),
        default=None,
        help="Send on one channel only (default: all configured)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print what would be sent without actually sending",
    )
    args = parser.parse_args()

    load_dotenv()

    try:
        config = load_validated_config()
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 2

    state = create_test_state(config, args.kp, args.bz, args.speed)
    trigger = warning_trigger(state, config.lis_threshold) or Trigger.THRESHOLD_CROSSING
    record = AlertRecord(
        kind=AlertKind.WARNING,
        score_at_decision=state.current_lis,
        triggered_by=trigger,
        created_at=state.computed_at,
    )

    logger.info("")
    logger.info("Test Snapshot Details:")
    logger.info("  LIS: %d (%s)", state.current_lis, state.level)
    logger.info("  Trigger: %s", trigger.value)
    logger.info("  Kp %.1f, Bz %.1f nT, speed %.0f km/s", args.kp, args.bz, args.speed)
    logger.info("")

    channels = build_channels(config)
    if args.channel:
        channels = [c for c in channels if c.name == args.channel]
        if not channels:
            logger.error("Channel '%s' is not configured", args.channel)
            return 1

    context = ReportContext(
        tz_name=config.local_tz,
        lis_threshold=config.lis_threshold,
        short_bz_nt=config.short_bz_nt,
        short_spd_kms=config.short_spd_kms,
        alert_max_age=config.score_settings().alert_max_age,
    )

    if args.dry_run:
        message = render_message(record, state, context)
        logger.info("DRY RUN - Would send to: %s", ", ".join(c.name for c in channels))
        logger.info("")
        logger.info("Subject: %s", message.subject)
        logger.info("")
        for line in message.body.splitlines():
            logger.info("  %s", line)
        logger.info("")
        logger.info("SMS (%d chars):", len(message.sms_text))
        for line in message.sms_text.splitlines():
            logger.info("  %s", line)
        return 0

    logger.info("Sending test warning to %d channel(s)...", len(channels))

    dispatcher = NotificationDispatcher(
        channels,
        context=context,
        max_attempts=config.dispatch_max_attempts,
        backoff_seconds=config.dispatch_backoff_seconds,
    )
    outcome = dispatcher.dispatch(record, state)

    # Summary
    logger.info("=" * 50)
    logger.info("Test Alert Summary:")
    for result in outcome.results:
        status = "✓" if result.success else "✗"
        logger.info("  %s %s (%d attempt(s))%s", status, result.channel, result.attempts,
                    f": {result.error}" if result.error else "")
    logger.info("=" * 50)

    return 0 if not outcome.failed_channels else 1


if __name__ == "__main__":
    sys.exit(main())

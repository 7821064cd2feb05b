#!/usr/bin/env python3
"""Main entry point for crontick."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfoNotFoundError

# Add src to path
sys.path.insert(0, str(Path(__file__).parent))

from config import settings
from models import ScheduleDescriptor
from scheduler import LocalClock, get_cron_description, get_next_runs, validate_cron

logger = logging.getLogger(__name__)


def configure_logging():
    """Configure root logging from settings."""
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Show upcoming runs of a cron schedule")
    parser.add_argument(
        "expression",
        help='Cron expression, e.g. "0 */2 * * *"'
    )
    parser.add_argument(
        "--count",
        type=int,
        default=5,
        help="Number of upcoming runs to show (default: 5)"
    )
    parser.add_argument(
        "--timezone",
        default=settings.scheduler_timezone,
        help=f"Timezone to evaluate in (default: {settings.scheduler_timezone})"
    )

    args = parser.parse_args(argv)
    configure_logging()

    if not validate_cron(args.expression):
        print(f"Invalid cron expression: {args.expression}", file=sys.stderr)
        return 1

    descriptor = ScheduleDescriptor.from_expression(args.expression)
    try:
        now = LocalClock(args.timezone).now()
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error(f"Unknown timezone '{args.timezone}': {e}")
        return 1

    print(get_cron_description(args.expression))
    for run in get_next_runs(descriptor, args.count, now):
        print(run.isoformat())
    return 0


if __name__ == "__main__":
    sys.exit(main())

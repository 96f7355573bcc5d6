"""Build today's revenue report and hand it to the notification sink.

Meant to be run once a day by cron or a similar scheduler, e.g.
``55 23 * * * python scripts/send_daily_report.py``.
"""

from __future__ import annotations

import sys

from ground_booking import ReservationYamlRepository
from ground_booking.logging_config import setup_logging
from ground_booking.notifications import build_notification_sink
from ground_booking.reports import send_daily_report
from ground_booking.settings import get_settings, local_clock


def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level)

    repository = ReservationYamlRepository(settings.data_dir)
    today = local_clock(settings.timezone)().date()
    sink = build_notification_sink(settings.notification_url, settings.notification_timeout)
    _, delivered = send_daily_report(repository, sink, today)
    return 0 if delivered else 1


if __name__ == "__main__":
    sys.exit(main())

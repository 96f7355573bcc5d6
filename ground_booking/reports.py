"""Read-only revenue reports over paid bookings.

Nothing here writes to the store, so a scheduler may call these at any
time.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from .models import PAYMENT_PAID, STATUS_CONFIRMED, Reservation
from .notifications import NotificationSink
from .store import RecordStore

logger = logging.getLogger(__name__)

PAYMENT_METHOD_CASH = "cash"
REMINDER_WINDOW_START = timedelta(minutes=105)
REMINDER_WINDOW_END = timedelta(minutes=135)


@dataclass(frozen=True)
class DailyReport:
    date: date
    booking_count: int
    total: int
    cash: int
    online: int
    by_ground: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "bookings": {
                "count": self.booking_count,
                "total": self.total,
                "cash": self.cash,
                "online": self.online,
                "byGround": dict(self.by_ground),
            },
            "grandTotal": self.total,
        }


def _paid(reservations: list[Reservation]) -> list[Reservation]:
    return [reservation for reservation in reservations if reservation.payment_status == PAYMENT_PAID]


def daily_report(store: RecordStore, report_date: date) -> DailyReport:
    names = {ground.id: ground.name for ground in store.list_grounds(active_only=False)}
    paid = _paid(store.reservations_between(report_date, report_date))

    total = sum(reservation.total for reservation in paid)
    cash = sum(reservation.total for reservation in paid if reservation.payment_method == PAYMENT_METHOD_CASH)

    by_ground: dict[str, int] = {}
    for reservation in paid:
        name = names.get(reservation.ground_id, "Unknown")
        by_ground[name] = by_ground.get(name, 0) + reservation.total

    return DailyReport(
        date=report_date,
        booking_count=len(paid),
        total=total,
        cash=cash,
        online=total - cash,
        by_ground=by_ground,
    )


def weekly_revenue(store: RecordStore, today: date) -> list[dict[str, Any]]:
    """Paid booking revenue for the last seven days, latest day first."""
    rows: list[dict[str, Any]] = []
    for offset in range(7):
        day = today - timedelta(days=offset)
        revenue = sum(reservation.total for reservation in _paid(store.reservations_between(day, day)))
        rows.append({"date": day.isoformat(), "bookingRevenue": revenue, "total": revenue})
    return rows


def due_reminders(store: RecordStore, now: datetime) -> list[Reservation]:
    """Confirmed, paid bookings starting between 1h45m and 2h15m from now."""
    window_start = now + REMINDER_WINDOW_START
    window_end = now + REMINDER_WINDOW_END
    candidates = store.reservations_between(now.date(), window_end.date())
    return [
        reservation
        for reservation in candidates
        if reservation.status == STATUS_CONFIRMED
        and reservation.payment_status == PAYMENT_PAID
        and window_start <= reservation.starts_at <= window_end
    ]


def revenue_summary(store: RecordStore, today: date) -> dict[str, int]:
    """Paid booking counts and revenue for the calendar month and for ``today``."""
    month_start = today.replace(day=1)
    month_end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    month = _paid(store.reservations_between(month_start, month_end))
    day = [reservation for reservation in month if reservation.date == today]
    return {
        "totalBookingsThisMonth": len(month),
        "totalRevenueThisMonth": sum(reservation.total for reservation in month),
        "bookingsToday": len(day),
        "revenueToday": sum(reservation.total for reservation in day),
    }


def send_daily_report(store: RecordStore, sink: NotificationSink, report_date: date) -> tuple[DailyReport, bool]:
    """Build the report for ``report_date`` and deliver it; return it with a delivered flag."""
    report = daily_report(store, report_date)
    logger.info(
        "Daily report for %s: %d bookings, total %d",
        report_date.isoformat(),
        report.booking_count,
        report.total,
    )
    try:
        sink.daily_report(report)
    except Exception:
        logger.exception("Daily report delivery failed for %s", report_date.isoformat())
        return report, False
    return report, True

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from .booking import HOURS_PER_DAY
from .models import Reservation

logger = logging.getLogger(__name__)

SLOT_FREE = "free"
SLOT_BOOKED = "booked"


@dataclass(frozen=True)
class OccupancySlot:
    """One hour of a ground's day.

    A booked slot points at its reservation. ``is_head`` is True only for
    the hour the reservation starts in; later hours are continuations.
    ``carried_over`` marks hours held by a booking from the previous
    evening that runs past midnight.
    """

    hour: int
    status: str = SLOT_FREE
    reservation: Reservation | None = None
    is_head: bool = False
    carried_over: bool = False

    @property
    def is_free(self) -> bool:
        return self.status == SLOT_FREE

    @property
    def is_continuation(self) -> bool:
        return self.status == SLOT_BOOKED and not self.is_head

    def to_dict(self, include_booking: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "hour": self.hour,
            "startTime": f"{self.hour:02d}:00",
            "endTime": f"{(self.hour + 1) % HOURS_PER_DAY:02d}:00",
            "status": self.status,
            "available": self.is_free,
            "isHead": self.is_head,
            "isContinuation": self.is_continuation,
            "carriedOver": self.carried_over,
        }
        if include_booking:
            if self.reservation is None:
                payload["booking"] = None
            elif self.is_head:
                payload["booking"] = self.reservation.to_dict()
            else:
                payload["booking"] = {"booking_ref": self.reservation.reference}
        return payload


def _segments(ground_id: str, booking_date: date, reservations: Iterable[Reservation]):
    """Yield ``(reservation, hours, carried_over)`` for everything shown on the grid.

    Spill-over from the previous day comes first so that the day's own
    bookings are laid on top of it.
    """
    previous_day = booking_date - timedelta(days=1)
    own: list[tuple[Reservation, list[int], bool]] = []
    for reservation in reservations:
        if not reservation.is_active or reservation.ground_id != ground_id:
            continue
        if reservation.date == previous_day:
            spill = reservation.time_range.spill_hours()
            if spill:
                yield reservation, spill, True
        elif reservation.date == booking_date:
            own.append((reservation, reservation.time_range.hours(), False))
    yield from own


def build_grid(ground_id: str, booking_date: date, reservations: Iterable[Reservation]) -> list[OccupancySlot]:
    """Render a ground's day as 24 hourly slots.

    Reservations for other grounds or dates and cancelled ones are ignored.
    A reservation crossing midnight wraps into the early hours of its own
    grid, and a reservation from the previous date that runs past midnight
    shows up as continuation hours at the start of this one. If two
    reservations claim one hour, the later one processed wins.
    """
    slots = [OccupancySlot(hour=hour) for hour in range(HOURS_PER_DAY)]

    for reservation, hours, carried_over in _segments(ground_id, booking_date, reservations):
        for index, hour in enumerate(hours):
            current = slots[hour]
            if (
                current.reservation is not None
                and current.reservation.reference != reservation.reference
                and not current.carried_over
                and not carried_over
            ):
                logger.warning(
                    "Hour %02d on %s %s claimed by both %s and %s",
                    hour,
                    ground_id,
                    booking_date.isoformat(),
                    current.reservation.reference,
                    reservation.reference,
                )
            slots[hour] = OccupancySlot(
                hour=hour,
                status=SLOT_BOOKED,
                reservation=reservation,
                is_head=index == 0 and not carried_over,
                carried_over=carried_over,
            )

    return slots


def extendable_hours(grid: list[OccupancySlot], start_hour: int, limit: int | None = None) -> int:
    """Count consecutive free hours from ``start_hour``, walking past midnight."""
    if not 0 <= start_hour < HOURS_PER_DAY:
        raise ValueError("start_hour must be within 0-23")
    if len(grid) != HOURS_PER_DAY:
        raise ValueError("grid must have one slot per hour")

    cap = HOURS_PER_DAY if limit is None else min(limit, HOURS_PER_DAY)
    count = 0
    while count < cap and grid[(start_hour + count) % HOURS_PER_DAY].is_free:
        count += 1
    return count

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Iterable

from .errors import ValidationError

if TYPE_CHECKING:
    from .models import Reservation

MINUTES_PER_HOUR = 60
HOURS_PER_DAY = 24
MINUTES_PER_DAY = HOURS_PER_DAY * MINUTES_PER_HOUR

_TIME_RE = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?$")


def parse_time_of_day(text: str) -> int:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into minutes since midnight.

    ``24:00`` is accepted and maps to midnight. Seconds must be zero.
    """
    if text is None:
        raise ValidationError("time must not be empty")
    match = _TIME_RE.match(str(text).strip())
    if not match:
        raise ValidationError(f"Invalid time of day: {text!r}. Expected format: HH:MM")

    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    second = int(match.group("second") or 0)
    if hour == 24 and minute == 0 and second == 0:
        return 0
    if hour > 23 or minute > 59 or second != 0:
        raise ValidationError(f"Invalid time of day: {text!r}")
    return hour * MINUTES_PER_HOUR + minute


def format_time_of_day(minutes: int) -> str:
    hour, minute = divmod(minutes % MINUTES_PER_DAY, MINUTES_PER_HOUR)
    return f"{hour:02d}:{minute:02d}"


@dataclass(frozen=True)
class TimeRange:
    """A start/end pair of minutes since midnight.

    When ``end <= start`` the range crosses midnight and ends on the
    following day (23:00-01:00 is two hours long). Zero length is invalid.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        for value in (self.start, self.end):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError("time of day must be a whole number of minutes")
            if not 0 <= value < MINUTES_PER_DAY:
                raise ValidationError("time of day must be within 00:00-23:59")
        if self.start == self.end:
            raise ValidationError("Reservation start and end time must differ.")

    @classmethod
    def parse(cls, start_text: str, end_text: str) -> "TimeRange":
        return cls(parse_time_of_day(start_text), parse_time_of_day(end_text))

    @property
    def wraps(self) -> bool:
        return self.end <= self.start

    @property
    def normalized_end(self) -> int:
        return self.end + MINUTES_PER_DAY if self.wraps else self.end

    @property
    def duration_minutes(self) -> int:
        return self.normalized_end - self.start

    @property
    def duration_hours(self) -> float:
        return self.duration_minutes / MINUTES_PER_HOUR

    @property
    def is_whole_hours(self) -> bool:
        return self.duration_minutes % MINUTES_PER_HOUR == 0

    @property
    def start_hour(self) -> int:
        return self.start // MINUTES_PER_HOUR

    @property
    def start_text(self) -> str:
        return format_time_of_day(self.start)

    @property
    def end_text(self) -> str:
        return format_time_of_day(self.end)

    def hours(self) -> list[int]:
        """Return every hour bucket the range touches, in order, modulo 24."""
        end_hour = -(-self.normalized_end // MINUTES_PER_HOUR)
        return [hour % HOURS_PER_DAY for hour in range(self.start_hour, end_hour)]

    def spill_hours(self) -> list[int]:
        """Return the hour buckets of the following day that a wrapping range occupies."""
        if not self.wraps:
            return []
        return list(range(-(-self.end // MINUTES_PER_HOUR)))

    def overlaps(self, other: "TimeRange") -> bool:
        return has_time_overlap(self, other)

    def __str__(self) -> str:
        return f"{self.start_text}-{self.end_text}"


def has_time_overlap(new_range: TimeRange, existing_range: TimeRange, day_offset: int = 0) -> bool:
    """Return True when two time-of-day ranges overlap by even one minute.

    Both ranges are laid on one linear timeline: a wrapping end gets +24h
    and the existing range is moved ``day_offset`` days after the new
    range's date. Intervals are half-open ``[start, end)``, so 23:00-01:00
    overlaps 00:30-02:00 on the following day while 21:00-23:00 and
    23:00-01:00 only touch.
    """
    shift = day_offset * MINUTES_PER_DAY
    return (
        new_range.start < existing_range.normalized_end + shift
        and new_range.normalized_end > existing_range.start + shift
    )


def _day_offset(reservation: Reservation, booking_date: date | None) -> int:
    if booking_date is None:
        return 0
    return (reservation.date - booking_date).days


def find_conflict(
    candidate: TimeRange,
    existing_reservations: Iterable[Reservation],
    booking_date: date | None = None,
) -> Reservation | None:
    """Return the earliest-starting active reservation that overlaps ``candidate``.

    Without ``booking_date`` every reservation is taken to be on the
    candidate's date. With it, reservations on neighbouring dates are
    placed relative to that date, so a booking from the evening before
    that runs past midnight is seen. Cancelled reservations are skipped.
    """
    placed = [
        (_day_offset(reservation, booking_date), reservation)
        for reservation in existing_reservations
        if reservation.is_active
    ]
    placed.sort(key=lambda item: (item[0] * MINUTES_PER_DAY + item[1].time_range.start, item[1].reference))
    for day_offset, reservation in placed:
        if has_time_overlap(candidate, reservation.time_range, day_offset):
            return reservation
    return None


def can_reserve(
    candidate: TimeRange,
    existing_reservations: Iterable[Reservation],
    booking_date: date | None = None,
) -> bool:
    """Return True if the requested range does not overlap any existing reservation."""
    return find_conflict(candidate, existing_reservations, booking_date) is None

"""Price calculation for a ground booking.

The rate table has two axes: the day type of the calendar date
(Friday-Sunday are weekend) and the slot type of the start time (peak
from 12:00 through 04:59). The deposit is 30% of the total and the
balance 70%, each rounded half-up on its own, so the two parts may
differ from the total by a unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from .booking import MINUTES_PER_HOUR, TimeRange
from .errors import ConfigError
from .models import DAY_TYPES, DAY_WEEKDAY, DAY_WEEKEND, SLOT_OFFPEAK, SLOT_PEAK, SLOT_TYPES
from .store import RecordStore

logger = logging.getLogger(__name__)

DEPOSIT_RATIO = Decimal("0.30")
BALANCE_RATIO = Decimal("0.70")
PEAK_START_MINUTE = 12 * MINUTES_PER_HOUR
PEAK_END_MINUTE = 5 * MINUTES_PER_HOUR
WEEKEND_WEEKDAYS = {4, 5, 6}  # Friday, Saturday, Sunday


@dataclass(frozen=True)
class PriceQuote:
    duration_hours: float
    price_per_hour: int
    total: int
    deposit: int
    balance: int
    day_type: str
    slot_type: str

    def to_dict(self) -> dict[str, object]:
        return {
            "duration": self.duration_hours,
            "pricePerHour": self.price_per_hour,
            "basePrice": self.total,
            "advanceAmount": self.deposit,
            "remainingAmount": self.balance,
            "dayType": self.day_type,
            "slotType": self.slot_type,
        }


def day_type_for(booking_date: date) -> str:
    return DAY_WEEKEND if booking_date.weekday() in WEEKEND_WEEKDAYS else DAY_WEEKDAY


def slot_type_for(time_range: TimeRange) -> str:
    """Classify by start time only, even when the range spans both tiers."""
    if time_range.start >= PEAK_START_MINUTE or time_range.start < PEAK_END_MINUTE:
        return SLOT_PEAK
    return SLOT_OFFPEAK


def round_currency(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def split_amount(total: Decimal) -> tuple[int, int]:
    """Return ``(deposit, balance)`` rounded independently."""
    return round_currency(total * DEPOSIT_RATIO), round_currency(total * BALANCE_RATIO)


class PricingEngine:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def quote(self, ground_id: str, booking_date: date, time_range: TimeRange) -> PriceQuote:
        """Price a window on a ground.

        Raises:
            ConfigError: If no rate rule exists for the resolved day and slot type.
        """
        day_type = day_type_for(booking_date)
        slot_type = slot_type_for(time_range)

        rule = self._store.find_rate_rule(ground_id, day_type, slot_type)
        if rule is None:
            error = ConfigError(ground_id, day_type, slot_type)
            logger.error("Missing rate rule: %s", error.message)
            raise error

        exact_total = Decimal(rule.price_per_hour) * Decimal(time_range.duration_minutes) / Decimal(MINUTES_PER_HOUR)
        deposit, balance = split_amount(exact_total)
        return PriceQuote(
            duration_hours=time_range.duration_hours,
            price_per_hour=rule.price_per_hour,
            total=round_currency(exact_total),
            deposit=deposit,
            balance=balance,
            day_type=day_type,
            slot_type=slot_type,
        )


def audit_rate_table(store: RecordStore) -> list[tuple[str, str, str]]:
    """Return the ``(ground_id, day_type, slot_type)`` triples that have no rate rule."""
    missing: list[tuple[str, str, str]] = []
    for ground in store.list_grounds(active_only=True):
        for day_type in DAY_TYPES:
            for slot_type in SLOT_TYPES:
                if store.find_rate_rule(ground.id, day_type, slot_type) is None:
                    missing.append((ground.id, day_type, slot_type))
    return missing

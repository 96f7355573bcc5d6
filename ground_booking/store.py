"""Record store interface (repository pattern).

Stores must be swappable and return domain models. An implementation is
responsible for making ``insert_reservation`` atomic with respect to
overlapping windows on the same ground, including bookings on the
neighbouring dates that run past midnight.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from .models import Customer, Ground, RateRule, Reservation


@dataclass(frozen=True)
class ReservationFilter:
    """Criteria for the admin booking list. Empty fields match everything."""

    date_from: date | None = None
    date_to: date | None = None
    ground_ids: tuple[str, ...] = ()
    statuses: tuple[str, ...] = ()
    payment_status: str | None = None
    search: str | None = None

    def matches(self, reservation: Reservation) -> bool:
        if self.date_from is not None and reservation.date < self.date_from:
            return False
        if self.date_to is not None and reservation.date > self.date_to:
            return False
        if self.ground_ids and reservation.ground_id not in self.ground_ids:
            return False
        if self.statuses and reservation.status not in self.statuses:
            return False
        if self.payment_status and reservation.payment_status != self.payment_status:
            return False
        if self.search:
            needle = self.search.casefold()
            haystacks = (reservation.customer_name, reservation.customer_phone, reservation.reference)
            if not any(needle in value.casefold() for value in haystacks):
                return False
        return True


class RecordStore(ABC):
    """Interface for grounds, pricing, reservation and customer persistence."""

    @abstractmethod
    def list_grounds(self, active_only: bool = True) -> list[Ground]:
        """Return grounds ordered by name."""
        ...

    @abstractmethod
    def get_ground(self, ground_id: str) -> Ground | None:
        ...

    @abstractmethod
    def find_reservations(self, ground_id: str, booking_date: date) -> list[Reservation]:
        """Return non-cancelled reservations for a ground on a date, ordered by start time."""
        ...

    @abstractmethod
    def find_reservation(self, reference: str) -> Reservation | None:
        ...

    @abstractmethod
    def insert_reservation(self, reservation: Reservation) -> Reservation:
        """Persist a new reservation.

        Raises:
            DuplicateReferenceError: If the reference code is already taken.
            ConflictError: If an active reservation on the same ground
                overlaps the new one, counting neighbouring dates.
        """
        ...

    @abstractmethod
    def update_reservation(self, reference: str, **fields: Any) -> Reservation | None:
        """Apply status or payment changes; return None if the reference is unknown."""
        ...

    @abstractmethod
    def find_rate_rule(self, ground_id: str, day_type: str, slot_type: str) -> RateRule | None:
        ...

    @abstractmethod
    def upsert_customer(self, phone: str, name: str) -> Customer:
        """Create the customer or bump its visit counter and refresh its name."""
        ...

    @abstractmethod
    def reservations_between(
        self,
        date_from: date,
        date_to: date,
        include_cancelled: bool = False,
    ) -> list[Reservation]:
        """Return reservations with ``date_from <= date <= date_to``."""
        ...

    @abstractmethod
    def reservations_for_customer(self, phone: str) -> list[Reservation]:
        """Return a customer's reservations, newest first."""
        ...

    @abstractmethod
    def search_reservations(
        self,
        criteria: ReservationFilter,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[Reservation], int]:
        """Return one page of matching reservations, newest first, and the total match count."""
        ...

    def find_reservations_near(self, ground_id: str, booking_date: date) -> list[Reservation]:
        """Return non-cancelled reservations on the day before, the day of and the day after ``booking_date``."""
        reservations: list[Reservation] = []
        for delta in (-1, 0, 1):
            reservations.extend(self.find_reservations(ground_id, booking_date + timedelta(days=delta)))
        return reservations

"""Reservation service - booking rules live here.

The service depends only on the record store interface and a
notification sink. It validates input, runs the overlap check and the
pricing engine, and maps failures to the error kinds in ``errors``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable

from .booking import TimeRange, find_conflict
from .errors import ConflictError, DuplicateReferenceError, NotFoundError, StoreError, TooLateError, ValidationError
from .models import PAYMENT_PAID, STATUS_CANCELLED, Ground, Reservation
from .notifications import NotificationSink, NullNotificationSink
from .occupancy import OccupancySlot, build_grid, extendable_hours
from .pricing import PriceQuote, PricingEngine
from .store import RecordStore, ReservationFilter

logger = logging.getLogger(__name__)

REFERENCE_MIN = 100000
REFERENCE_MAX = 999999
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflict: Reservation | None = None
    quote: PriceQuote | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "price": self.quote.to_dict() if self.quote is not None else None,
            "conflict": self.conflict.to_dict() if self.conflict is not None else None,
        }


@dataclass(frozen=True)
class ReservationPage:
    bookings: list[Reservation]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit)

    def to_dict(self, ground_names: dict[str, str] | None = None) -> dict[str, Any]:
        names = ground_names or {}
        return {
            "bookings": [
                {**booking.to_dict(), "ground_name": names.get(booking.ground_id)} for booking in self.bookings
            ],
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


class ReservationService:
    def __init__(
        self,
        store: RecordStore,
        notifier: NotificationSink | None = None,
        *,
        pricing: PricingEngine | None = None,
        reference_prefix: str = "GS",
        max_reference_attempts: int = 5,
        cancellation_lead_hours: int = 24,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_reference_attempts <= 0:
            raise ValueError("max_reference_attempts must be greater than zero")
        self._store = store
        self._notifier = notifier or NullNotificationSink()
        self._pricing = pricing or PricingEngine(store)
        self._reference_prefix = reference_prefix
        self._max_reference_attempts = max_reference_attempts
        self._cancellation_lead = timedelta(hours=cancellation_lead_hours)
        self._cancellation_lead_hours = cancellation_lead_hours
        self._rng = rng or random.SystemRandom()
        self._clock = clock or datetime.now

    def generate_reference(self) -> str:
        return f"{self._reference_prefix}-{self._rng.randint(REFERENCE_MIN, REFERENCE_MAX)}"

    def check_availability(self, ground_id: str, booking_date: date, time_range: TimeRange) -> AvailabilityResult:
        """Return whether the window is free and, if so, its price.

        Raises:
            ValidationError: If the ground is unknown or the range is not whole hours.
            ConfigError: If the ground has no rate rule for the window.
        """
        ground = self._require_ground(ground_id)
        _validate_window(booking_date, time_range)

        conflict = find_conflict(time_range, self._store.find_reservations_near(ground.id, booking_date), booking_date)
        if conflict is not None:
            return AvailabilityResult(available=False, conflict=conflict)

        quote = self._pricing.quote(ground.id, booking_date, time_range)
        return AvailabilityResult(available=True, quote=quote)

    def create_reservation(
        self,
        ground_id: str,
        booking_date: date,
        time_range: TimeRange,
        customer_name: str,
        customer_phone: str,
        team_details: str | None = None,
        now: datetime | None = None,
    ) -> Reservation:
        """Book a window and return the confirmed, payment-pending reservation.

        Raises:
            ValidationError: On missing fields or an unknown/inactive ground.
            ConflictError: If the window overlaps a confirmed reservation.
            ConfigError: If the ground has no rate rule for the window.
            StoreError: If no unique reference could be allocated.
        """
        customer_name = _require_text(customer_name, "customer_name")
        customer_phone = _require_text(customer_phone, "customer_phone")
        ground = self._require_ground(ground_id)
        _validate_window(booking_date, time_range)

        conflict = find_conflict(time_range, self._store.find_reservations_near(ground.id, booking_date), booking_date)
        if conflict is not None:
            logger.info(
                "Rejected %s %s %s: overlaps %s",
                ground.id,
                booking_date.isoformat(),
                time_range,
                conflict.reference,
            )
            raise ConflictError(conflict)

        quote = self._pricing.quote(ground.id, booking_date, time_range)
        effective_now = now or self._clock()

        reservation = self._insert_with_unique_reference(
            ground=ground,
            booking_date=booking_date,
            time_range=time_range,
            quote=quote,
            customer_name=customer_name,
            customer_phone=customer_phone,
            team_details=(team_details or "").strip() or None,
            now=effective_now,
        )
        logger.info(
            "Booked %s: %s %s %s for %s",
            reservation.reference,
            ground.id,
            booking_date.isoformat(),
            time_range,
            reservation.total,
        )

        self._record_customer(customer_phone, customer_name)
        self._notify(reservation, ground.name)
        return reservation

    def cancel(self, reference: str, now: datetime | None = None) -> Reservation:
        """Cancel a reservation that starts at least the lead time from now.

        Raises:
            NotFoundError: If the reference is unknown.
            TooLateError: If the reservation starts within the lead time.
        """
        reservation = self.get_reservation(reference)
        if not reservation.is_active:
            return reservation

        effective_now = now or self._clock()
        until_start = reservation.starts_at - effective_now
        if until_start < self._cancellation_lead:
            raise TooLateError(reservation, until_start.total_seconds() / 3600, self._cancellation_lead_hours)

        updated = self._store.update_reservation(reference, status=STATUS_CANCELLED, updated_at=effective_now)
        if updated is None:
            raise NotFoundError(reference)
        logger.info("Cancelled %s", reference)
        return updated

    def mark_paid(
        self,
        reference: str,
        method: str | None = None,
        transaction_id: str | None = None,
        now: datetime | None = None,
    ) -> Reservation:
        """Record payment; availability is not re-checked."""
        updated = self._store.update_reservation(
            reference,
            payment_status=PAYMENT_PAID,
            payment_method=method or None,
            transaction_id=transaction_id or None,
            updated_at=now or self._clock(),
        )
        if updated is None:
            raise NotFoundError(reference)
        logger.info("Payment recorded for %s (%s)", reference, method or "unspecified")
        return updated

    def get_reservation(self, reference: str) -> Reservation:
        reservation = self._store.find_reservation(reference)
        if reservation is None:
            raise NotFoundError(reference)
        return reservation

    def customer_reservations(self, phone: str) -> list[Reservation]:
        return self._store.reservations_for_customer(_require_text(phone, "phone"))

    def day_grid(self, ground_id: str, booking_date: date) -> list[OccupancySlot]:
        ground = self._require_ground(ground_id, allow_inactive=True)
        return build_grid(ground.id, booking_date, self._grid_reservations(ground.id, booking_date))

    def day_grids(self, booking_date: date) -> dict[str, list[OccupancySlot]]:
        return {
            ground.id: build_grid(ground.id, booking_date, self._grid_reservations(ground.id, booking_date))
            for ground in self._store.list_grounds(active_only=True)
        }

    def extendable_hours(self, ground_id: str, booking_date: date, start_hour: int, limit: int | None = None) -> int:
        return extendable_hours(self.day_grid(ground_id, booking_date), start_hour, limit)

    def reservations_on(self, booking_date: date) -> list[Reservation]:
        """Every reservation on a date, cancelled ones included, by start time."""
        return self._store.reservations_between(booking_date, booking_date, include_cancelled=True)

    def week_calendar(self, week_start: date) -> list[Reservation]:
        """Active reservations for the seven days from ``week_start``."""
        return self._store.reservations_between(week_start, week_start + timedelta(days=6))

    def search_reservations(self, criteria: ReservationFilter, page: int = 1, limit: int = 20) -> ReservationPage:
        if page < 1:
            raise ValidationError("page must be 1 or greater")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if criteria.date_from and criteria.date_to and criteria.date_from > criteria.date_to:
            raise ValidationError("date_from must not be after date_to")
        bookings, total = self._store.search_reservations(criteria, offset=(page - 1) * limit, limit=limit)
        return ReservationPage(bookings=bookings, page=page, limit=limit, total=total)

    def ground_names(self) -> dict[str, str]:
        return {ground.id: ground.name for ground in self._store.list_grounds(active_only=False)}

    def _grid_reservations(self, ground_id: str, booking_date: date) -> list[Reservation]:
        previous_day = booking_date - timedelta(days=1)
        return self._store.find_reservations(ground_id, previous_day) + self._store.find_reservations(
            ground_id, booking_date
        )

    def _require_ground(self, ground_id: str, allow_inactive: bool = False) -> Ground:
        ground_id = _require_text(ground_id, "ground_id")
        ground = self._store.get_ground(ground_id)
        if ground is None:
            raise ValidationError(f"Unknown ground: {ground_id}")
        if not ground.is_active and not allow_inactive:
            raise ValidationError(f"Ground is not accepting bookings: {ground_id}")
        return ground

    def _insert_with_unique_reference(
        self,
        *,
        ground: Ground,
        booking_date: date,
        time_range: TimeRange,
        quote: PriceQuote,
        customer_name: str,
        customer_phone: str,
        team_details: str | None,
        now: datetime,
    ) -> Reservation:
        for attempt in range(1, self._max_reference_attempts + 1):
            reservation = Reservation(
                reference=self.generate_reference(),
                ground_id=ground.id,
                date=booking_date,
                time_range=time_range,
                customer_name=customer_name,
                customer_phone=customer_phone,
                team_details=team_details,
                duration_hours=quote.duration_hours,
                price_per_hour=quote.price_per_hour,
                total=quote.total,
                deposit=quote.deposit,
                balance=quote.balance,
                day_type=quote.day_type,
                slot_type=quote.slot_type,
                created_at=now,
                updated_at=now,
            )
            try:
                return self._store.insert_reservation(reservation)
            except DuplicateReferenceError:
                logger.warning(
                    "Booking reference %s already taken (attempt %d/%d)",
                    reservation.reference,
                    attempt,
                    self._max_reference_attempts,
                )
            except ConflictError:
                logger.info("Window %s on %s taken by a concurrent booking", time_range, ground.id)
                raise

        raise StoreError(f"Could not allocate a unique booking reference after {self._max_reference_attempts} attempts")

    def _record_customer(self, phone: str, name: str) -> None:
        try:
            self._store.upsert_customer(phone, name)
        except StoreError:
            logger.warning("Customer record for %s not updated", phone, exc_info=True)

    def _notify(self, reservation: Reservation, ground_name: str) -> None:
        try:
            self._notifier.booking_confirmed(reservation, ground_name)
        except Exception:
            logger.exception("Booking notification failed for %s", reservation.reference)


def _require_text(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def _validate_window(booking_date: date, time_range: TimeRange) -> None:
    if not isinstance(booking_date, date) or isinstance(booking_date, datetime):
        raise ValidationError("date must be a calendar date")
    if not isinstance(time_range, TimeRange):
        raise ValidationError("time range is required")
    if not time_range.is_whole_hours:
        raise ValidationError("Bookings must last a whole number of hours.")

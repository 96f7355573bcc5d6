"""Error kinds raised by the booking core.

Every error carries a code and a user-safe message plus the entity that
caused it, so a caller can explain why an operation failed.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Reservation


class ErrorCode(Enum):
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    CONFIG = "CONFIG"
    TOO_LATE = "TOO_LATE"
    NOT_FOUND = "NOT_FOUND"
    STORE = "STORE"
    DUPLICATE_REFERENCE = "DUPLICATE_REFERENCE"


class BookingError(Exception):
    code = ErrorCode.VALIDATION

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(BookingError, ValueError):
    """Malformed or missing input, rejected before touching storage."""

    code = ErrorCode.VALIDATION


class ConflictError(BookingError):
    """The requested window overlaps a confirmed reservation."""

    code = ErrorCode.CONFLICT

    def __init__(self, conflict: Reservation | None, message: str = "Slot not available") -> None:
        super().__init__(message)
        self.conflict = conflict


class ConfigError(BookingError):
    """No rate rule exists for a ground/day-type/slot-type combination."""

    code = ErrorCode.CONFIG

    def __init__(self, ground_id: str, day_type: str, slot_type: str) -> None:
        super().__init__(f"Pricing rule not found for ground {ground_id}, {day_type}, {slot_type}")
        self.ground_id = ground_id
        self.day_type = day_type
        self.slot_type = slot_type


class TooLateError(BookingError):
    code = ErrorCode.TOO_LATE

    def __init__(self, reservation: Reservation, hours_until_start: float, lead_hours: int = 24) -> None:
        super().__init__(f"Cannot cancel within {lead_hours} hours of booking")
        self.reservation = reservation
        self.hours_until_start = hours_until_start


class NotFoundError(BookingError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, reference: str, message: str = "Booking not found") -> None:
        super().__init__(message)
        self.reference = reference


class StoreError(BookingError, RuntimeError):
    """The record store failed or timed out."""

    code = ErrorCode.STORE


class DuplicateReferenceError(StoreError):
    code = ErrorCode.DUPLICATE_REFERENCE

    def __init__(self, reference: str) -> None:
        super().__init__(f"Booking reference already exists: {reference}")
        self.reference = reference

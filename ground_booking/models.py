from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time
from typing import Any

from .booking import MINUTES_PER_HOUR, TimeRange

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"

DAY_WEEKDAY = "weekday"
DAY_WEEKEND = "weekend"
SLOT_PEAK = "peak"
SLOT_OFFPEAK = "offpeak"
DAY_TYPES = (DAY_WEEKDAY, DAY_WEEKEND)
SLOT_TYPES = (SLOT_PEAK, SLOT_OFFPEAK)

GROUND_ACTIVE = "active"
GROUND_INACTIVE = "inactive"
SIZE_FULL = "full"
SIZE_SMALLER = "smaller"


def _optional_str(value: Any) -> str | None:
    return str(value) if value is not None else None


@dataclass(frozen=True)
class Ground:
    id: str
    name: str
    size: str = SIZE_FULL
    status: str = GROUND_ACTIVE
    description: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == GROUND_ACTIVE

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "status": self.status,
        }
        if self.description is not None:
            payload["description"] = self.description
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Ground":
        return Ground(
            id=str(data["id"]),
            name=str(data["name"]),
            size=str(data.get("size", SIZE_FULL)),
            status=str(data.get("status", GROUND_ACTIVE)),
            description=_optional_str(data.get("description")),
        )


@dataclass(frozen=True)
class RateRule:
    ground_id: str
    day_type: str
    slot_type: str
    price_per_hour: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "ground_id": self.ground_id,
            "day_type": self.day_type,
            "slot_type": self.slot_type,
            "price_per_hour": self.price_per_hour,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "RateRule":
        return RateRule(
            ground_id=str(data["ground_id"]),
            day_type=str(data["day_type"]),
            slot_type=str(data["slot_type"]),
            price_per_hour=int(data["price_per_hour"]),
        )


@dataclass(frozen=True)
class Customer:
    phone: str
    name: str
    total_bookings: int
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "phone": self.phone,
            "name": self.name,
            "total_bookings": self.total_bookings,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Customer":
        return Customer(
            phone=str(data["phone"]),
            name=str(data["name"]),
            total_bookings=int(data.get("total_bookings", 0)),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
        )


@dataclass(frozen=True)
class Reservation:
    reference: str
    ground_id: str
    date: date
    time_range: TimeRange
    customer_name: str
    customer_phone: str
    duration_hours: float
    price_per_hour: int
    total: int
    deposit: int
    balance: int
    day_type: str
    slot_type: str
    created_at: datetime
    updated_at: datetime
    status: str = STATUS_CONFIRMED
    payment_status: str = PAYMENT_PENDING
    team_details: str | None = None
    payment_method: str | None = None
    transaction_id: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_CANCELLED

    @property
    def starts_at(self) -> datetime:
        hour, minute = divmod(self.time_range.start, MINUTES_PER_HOUR)
        return datetime.combine(self.date, time(hour, minute))

    def with_changes(self, **changes: Any) -> "Reservation":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "booking_ref": self.reference,
            "ground_id": self.ground_id,
            "date": self.date.isoformat(),
            "start_time": self.time_range.start_text,
            "end_time": self.time_range.end_text,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "team_details": self.team_details,
            "duration_hours": self.duration_hours,
            "price_per_hour": self.price_per_hour,
            "base_price": self.total,
            "advance_amount": self.deposit,
            "remaining_amount": self.balance,
            "day_type": self.day_type,
            "slot_type": self.slot_type,
            "booking_status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Reservation":
        return Reservation(
            reference=str(data["booking_ref"]),
            ground_id=str(data["ground_id"]),
            date=date.fromisoformat(str(data["date"])),
            time_range=TimeRange.parse(str(data["start_time"]), str(data["end_time"])),
            customer_name=str(data["customer_name"]),
            customer_phone=str(data["customer_phone"]),
            duration_hours=float(data["duration_hours"]),
            price_per_hour=int(data["price_per_hour"]),
            total=int(data["base_price"]),
            deposit=int(data["advance_amount"]),
            balance=int(data["remaining_amount"]),
            day_type=str(data["day_type"]),
            slot_type=str(data["slot_type"]),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
            status=str(data.get("booking_status", STATUS_CONFIRMED)),
            payment_status=str(data.get("payment_status", PAYMENT_PENDING)),
            team_details=_optional_str(data.get("team_details")),
            payment_method=_optional_str(data.get("payment_method")),
            transaction_id=_optional_str(data.get("transaction_id")),
        )

from __future__ import annotations

import logging
import shutil
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from .booking import find_conflict
from .errors import ConflictError, DuplicateReferenceError, StoreError
from .models import (
    DAY_WEEKDAY,
    DAY_WEEKEND,
    PAYMENT_PAID,
    SIZE_FULL,
    SIZE_SMALLER,
    SLOT_OFFPEAK,
    SLOT_PEAK,
    STATUS_CANCELLED,
    Customer,
    Ground,
    RateRule,
    Reservation,
)
from .store import RecordStore, ReservationFilter

logger = logging.getLogger(__name__)

MUTABLE_RESERVATION_FIELDS = {"status", "payment_status", "payment_method", "transaction_id", "updated_at"}

DEFAULT_GROUNDS = [
    Ground(id="ground-1", name="Ground 1", size=SIZE_FULL, description="Full-size floodlit pitch"),
    Ground(id="ground-2", name="Ground 2", size=SIZE_FULL, description="Full-size floodlit pitch"),
    Ground(id="ground-3", name="Ground 3", size=SIZE_FULL, description="Full-size pitch"),
    Ground(id="ground-4", name="Ground 4", size=SIZE_SMALLER, description="Smaller five-a-side pitch"),
    Ground(id="ground-5", name="Ground 5", size=SIZE_SMALLER, description="Smaller five-a-side pitch"),
]

DEFAULT_RATES = {
    SIZE_FULL: {
        (DAY_WEEKDAY, SLOT_OFFPEAK): 3000,
        (DAY_WEEKDAY, SLOT_PEAK): 3500,
        (DAY_WEEKEND, SLOT_OFFPEAK): 3500,
        (DAY_WEEKEND, SLOT_PEAK): 4200,
    },
    SIZE_SMALLER: {
        (DAY_WEEKDAY, SLOT_OFFPEAK): 2000,
        (DAY_WEEKDAY, SLOT_PEAK): 2500,
        (DAY_WEEKEND, SLOT_OFFPEAK): 2500,
        (DAY_WEEKEND, SLOT_PEAK): 3000,
    },
}


class ReservationYamlRepository(RecordStore):
    """Record store kept in YAML files under ``base_dir``.

    Every write replaces the whole file through a temp file. Reservation
    inserts re-check overlaps under a process-wide lock, which is what
    keeps two concurrent creates from both landing.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.grounds_file = self.base_dir / "grounds.yaml"
        self.rates_file = self.base_dir / "rate_rules.yaml"
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.customers_file = self.base_dir / "customers.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._lock = threading.RLock()
        self._ensure_files()

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.grounds_file, self.rates_file, self.reservations_file, self.customers_file, self.log_file):
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
                continue
            logger.warning("Skipping row %d of %s: not a mapping", index, path.name)
            if path != self.log_file:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise StoreError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError as copy_error:
            logger.warning("Could not back up unreadable %s: %s", path.name, copy_error)

        path.write_text("[]\n", encoding="utf-8")
        if path == self.reservations_file:
            logger.error(
                "Reservations file %s was unreadable (%s) and has been reset; previous content kept in %s",
                path.name,
                error,
                backup_path.name,
            )
        else:
            logger.warning("Recovered unreadable %s (%s); backup %s", path.name, error, backup_path.name)
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        with self._lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def _all_reservations(self) -> list[Reservation]:
        return [Reservation.from_dict(row) for row in self._read_yaml_list(self.reservations_file)]

    def list_grounds(self, active_only: bool = True) -> list[Ground]:
        grounds = [Ground.from_dict(row) for row in self._read_yaml_list(self.grounds_file)]
        if active_only:
            grounds = [ground for ground in grounds if ground.is_active]
        return sorted(grounds, key=lambda ground: ground.name)

    def get_ground(self, ground_id: str) -> Ground | None:
        for ground in self.list_grounds(active_only=False):
            if ground.id == ground_id:
                return ground
        return None

    def find_reservations(self, ground_id: str, booking_date: date) -> list[Reservation]:
        matches = [
            reservation
            for reservation in self._all_reservations()
            if reservation.ground_id == ground_id and reservation.date == booking_date and reservation.is_active
        ]
        return sorted(matches, key=lambda reservation: reservation.time_range.start)

    def find_reservation(self, reference: str) -> Reservation | None:
        for reservation in self._all_reservations():
            if reservation.reference == reference:
                return reservation
        return None

    def insert_reservation(self, reservation: Reservation) -> Reservation:
        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            existing = [Reservation.from_dict(row) for row in rows]
            if any(row.reference == reservation.reference for row in existing):
                raise DuplicateReferenceError(reservation.reference)

            nearby = [
                row
                for row in existing
                if row.ground_id == reservation.ground_id and abs((row.date - reservation.date).days) <= 1
            ]
            conflict = find_conflict(reservation.time_range, nearby, reservation.date)
            if conflict is not None:
                raise ConflictError(conflict)

            rows.append(reservation.to_dict())
            self._write_yaml_list(self.reservations_file, rows)

            self._log_event(
                "RESERVATION_CREATED",
                {
                    "booking_ref": reservation.reference,
                    "ground_id": reservation.ground_id,
                    "date": reservation.date.isoformat(),
                    "time_range": str(reservation.time_range),
                    "base_price": reservation.total,
                },
                reservation.created_at,
            )
        return reservation

    def update_reservation(self, reference: str, **fields: Any) -> Reservation | None:
        unknown = set(fields) - MUTABLE_RESERVATION_FIELDS
        if unknown:
            raise ValueError(f"Reservation fields cannot be changed: {', '.join(sorted(unknown))}")

        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            for index, row in enumerate(rows):
                if str(row.get("booking_ref")) != reference:
                    continue

                updated = Reservation.from_dict(row).with_changes(**fields)
                rows[index] = updated.to_dict()
                self._write_yaml_list(self.reservations_file, rows)

                if fields.get("status") == STATUS_CANCELLED:
                    event_type = "RESERVATION_CANCELLED"
                elif fields.get("payment_status") == PAYMENT_PAID:
                    event_type = "RESERVATION_PAID"
                else:
                    event_type = "RESERVATION_UPDATED"
                self._log_event(
                    event_type,
                    {
                        "booking_ref": reference,
                        **{key: (value.isoformat(timespec="seconds") if isinstance(value, datetime) else value) for key, value in fields.items()},
                    },
                    updated.updated_at,
                )
                return updated
        return None

    def find_rate_rule(self, ground_id: str, day_type: str, slot_type: str) -> RateRule | None:
        for row in self._read_yaml_list(self.rates_file):
            rule = RateRule.from_dict(row)
            if rule.ground_id == ground_id and rule.day_type == day_type and rule.slot_type == slot_type:
                return rule
        return None

    def list_rate_rules(self, ground_id: str | None = None) -> list[RateRule]:
        rules = [RateRule.from_dict(row) for row in self._read_yaml_list(self.rates_file)]
        return [rule for rule in rules if ground_id is None or rule.ground_id == ground_id]

    def upsert_customer(self, phone: str, name: str, now: datetime | None = None) -> Customer:
        effective_now = now or datetime.now()
        with self._lock:
            rows = self._read_yaml_list(self.customers_file)
            for index, row in enumerate(rows):
                current = Customer.from_dict(row)
                if current.phone != phone:
                    continue
                customer = Customer(
                    phone=phone,
                    name=name,
                    total_bookings=current.total_bookings + 1,
                    created_at=current.created_at,
                    updated_at=effective_now,
                )
                rows[index] = customer.to_dict()
                break
            else:
                customer = Customer(
                    phone=phone,
                    name=name,
                    total_bookings=1,
                    created_at=effective_now,
                    updated_at=effective_now,
                )
                rows.append(customer.to_dict())

            self._write_yaml_list(self.customers_file, rows)
            self._log_event(
                "CUSTOMER_UPSERTED",
                {"phone": phone, "total_bookings": customer.total_bookings},
                effective_now,
            )
        return customer

    def get_customer(self, phone: str) -> Customer | None:
        for row in self._read_yaml_list(self.customers_file):
            customer = Customer.from_dict(row)
            if customer.phone == phone:
                return customer
        return None

    def reservations_between(
        self,
        date_from: date,
        date_to: date,
        include_cancelled: bool = False,
    ) -> list[Reservation]:
        matches = [
            reservation
            for reservation in self._all_reservations()
            if date_from <= reservation.date <= date_to and (include_cancelled or reservation.is_active)
        ]
        return sorted(matches, key=lambda reservation: (reservation.date, reservation.time_range.start))

    def reservations_for_customer(self, phone: str) -> list[Reservation]:
        matches = [reservation for reservation in self._all_reservations() if reservation.customer_phone == phone]
        return sorted(matches, key=lambda reservation: reservation.created_at, reverse=True)

    def search_reservations(
        self,
        criteria: ReservationFilter,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[Reservation], int]:
        matches = [reservation for reservation in self._all_reservations() if criteria.matches(reservation)]
        matches.sort(key=lambda reservation: reservation.reference)
        matches.sort(key=lambda reservation: reservation.created_at, reverse=True)
        end = None if limit is None else offset + limit
        return matches[offset:end], len(matches)

    def seed_grounds(
        self,
        grounds: list[Ground],
        rate_rules: list[RateRule],
        overwrite: bool = True,
        now: datetime | None = None,
    ) -> list[Ground]:
        with self._lock:
            ground_rows = [] if overwrite else self._read_yaml_list(self.grounds_file)
            rate_rows = [] if overwrite else self._read_yaml_list(self.rates_file)
            ground_rows.extend(ground.to_dict() for ground in grounds)
            rate_rows.extend(rule.to_dict() for rule in rate_rules)
            self._write_yaml_list(self.grounds_file, ground_rows)
            self._write_yaml_list(self.rates_file, rate_rows)

        self._log_event(
            "GROUNDS_SEEDED",
            {
                "grounds": len(grounds),
                "rate_rules": len(rate_rules),
                "overwrite": overwrite,
            },
            now,
        )
        return grounds

    def seed_default_grounds(self, overwrite: bool = True, now: datetime | None = None) -> list[Ground]:
        return self.seed_grounds(DEFAULT_GROUNDS, default_rate_rules(DEFAULT_GROUNDS), overwrite=overwrite, now=now)


def default_rate_rules(grounds: list[Ground]) -> list[RateRule]:
    rules: list[RateRule] = []
    for ground in grounds:
        table = DEFAULT_RATES.get(ground.size, DEFAULT_RATES[SIZE_FULL])
        for (day_type, slot_type), price in table.items():
            rules.append(RateRule(ground_id=ground.id, day_type=day_type, slot_type=slot_type, price_per_hour=price))
    return rules

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
import random
import traceback

from ground_booking import ConflictError, ReservationService, ReservationYamlRepository, TimeRange


def main() -> int:
    print("[INFO] Ground Booking Quick Check")
    print("[INFO] Seeding grounds and pricing...")

    repo = ReservationYamlRepository("data")
    grounds = repo.seed_default_grounds(overwrite=True)
    print(f"[OK] Grounds seeded: {len(grounds)}")

    service = ReservationService(repo, rng=random.Random(2026), clock=lambda: datetime(2026, 2, 18, 10, 0))
    friday = date(2026, 2, 20)
    evening = TimeRange.parse("18:00", "20:00")

    quote = service.check_availability("ground-1", friday, evening)
    print(f"[OK] Quote: {quote.to_dict()['price']}")

    booking = service.create_reservation("ground-1", friday, evening, "Quick Check", "03001234567")
    print(f"[OK] Booked {booking.reference}: {booking.date.isoformat()} {booking.time_range} total={booking.total}")

    try:
        service.create_reservation("ground-1", friday, TimeRange.parse("19:00", "21:00"), "Quick Check", "03001234567")
        print("[ERROR] Overlapping booking was accepted.")
        return 1
    except ConflictError as error:
        print(f"[OK] Overlap rejected by {error.conflict.reference}")

    grid = service.day_grid("ground-1", friday)
    booked = [slot.hour for slot in grid if not slot.is_free]
    print(f"[OK] Booked hours: {booked}")
    print(f"[OK] Reservations YAML: {Path('data/reservations.yaml').resolve()}")
    print(f"[OK] Event Log YAML: {Path('data/reservation_events.yaml').resolve()}")

    print("[DONE] Quick check completed successfully.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)

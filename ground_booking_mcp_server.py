from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from ground_booking import ReservationService, ReservationYamlRepository, TimeRange
from ground_booking.notifications import build_notification_sink
from ground_booking.settings import get_settings, local_clock

mcp = FastMCP(
    "Ground Booking MCP Server",
    instructions="Check availability, quote prices and book grounds through the ground_booking project.",
    json_response=True,
)

SETTINGS = get_settings()
DATA_DIR = Path(__file__).parent / SETTINGS.data_dir
REPOSITORY = ReservationYamlRepository(DATA_DIR)
SERVICE = ReservationService(
    REPOSITORY,
    build_notification_sink(SETTINGS.notification_url, SETTINGS.notification_timeout),
    reference_prefix=SETTINGS.booking_ref_prefix,
    max_reference_attempts=SETTINGS.booking_ref_max_attempts,
    cancellation_lead_hours=SETTINGS.cancellation_lead_hours,
    clock=local_clock(SETTINGS.timezone),
)


@mcp.resource("booking://grounds")
async def list_grounds() -> list[dict[str, Any]]:
    """List active grounds."""
    return [ground.to_dict() for ground in REPOSITORY.list_grounds()]


@mcp.tool()
def check_availability(ground_id: str, date_iso: str, start_time: str, end_time: str) -> dict[str, Any]:
    """Check whether a window is free and return its price quote."""
    result = SERVICE.check_availability(ground_id, date.fromisoformat(date_iso), TimeRange.parse(start_time, end_time))
    return result.to_dict()


@mcp.tool()
def create_booking(
    ground_id: str,
    date_iso: str,
    start_time: str,
    end_time: str,
    customer_name: str,
    customer_phone: str,
) -> dict[str, Any]:
    """Book a window using HH:MM times."""
    reservation = SERVICE.create_reservation(
        ground_id,
        date.fromisoformat(date_iso),
        TimeRange.parse(start_time, end_time),
        customer_name=customer_name,
        customer_phone=customer_phone,
    )
    return reservation.to_dict()


@mcp.tool()
def ground_slots(ground_id: str, date_iso: str) -> list[dict[str, Any]]:
    """Return the 24 hourly slots of a ground's day."""
    grid = SERVICE.day_grid(ground_id, date.fromisoformat(date_iso))
    return [slot.to_dict(include_booking=False) for slot in grid]


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()

from .booking import TimeRange, can_reserve, find_conflict, has_time_overlap, parse_time_of_day
from .errors import (
	BookingError,
	ConfigError,
	ConflictError,
	DuplicateReferenceError,
	NotFoundError,
	StoreError,
	TooLateError,
	ValidationError,
)
from .models import Customer, Ground, RateRule, Reservation
from .occupancy import OccupancySlot, build_grid, extendable_hours
from .pricing import PriceQuote, PricingEngine, audit_rate_table, day_type_for, slot_type_for
from .service import AvailabilityResult, ReservationPage, ReservationService
from .store import RecordStore, ReservationFilter
from .yaml_store import ReservationYamlRepository

__all__ = [
	"TimeRange",
	"can_reserve",
	"find_conflict",
	"has_time_overlap",
	"parse_time_of_day",
	"BookingError",
	"ConfigError",
	"ConflictError",
	"DuplicateReferenceError",
	"NotFoundError",
	"StoreError",
	"TooLateError",
	"ValidationError",
	"Customer",
	"Ground",
	"RateRule",
	"Reservation",
	"OccupancySlot",
	"build_grid",
	"extendable_hours",
	"PriceQuote",
	"PricingEngine",
	"audit_rate_table",
	"day_type_for",
	"slot_type_for",
	"AvailabilityResult",
	"ReservationPage",
	"ReservationService",
	"RecordStore",
	"ReservationFilter",
	"ReservationYamlRepository",
]

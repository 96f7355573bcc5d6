from __future__ import annotations

import logging
import random
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .booking import TimeRange
from .errors import BookingError, ConfigError, ConflictError, NotFoundError, StoreError, TooLateError, ValidationError
from .logging_config import setup_logging
from .notifications import NotificationSink, build_notification_sink
from .pricing import audit_rate_table
from .reports import daily_report, due_reminders, revenue_summary, send_daily_report, weekly_revenue
from .service import ReservationService
from .settings import AppSettings, get_settings, local_clock
from .store import ReservationFilter
from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    ConflictError: 409,
    ConfigError: 500,
    TooLateError: 400,
    NotFoundError: 404,
    StoreError: 503,
}


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    notifier: NotificationSink | None = None,
    settings: AppSettings | None = None,
    rng: random.Random | None = None,
) -> Flask:
    app = Flask(__name__)
    config = settings or get_settings()
    repository = ReservationYamlRepository(data_dir if data_dir is not None else config.data_dir)
    clock: Callable[[], datetime] = now_provider or local_clock(config.timezone)
    sink = notifier or build_notification_sink(config.notification_url, config.notification_timeout)
    service = ReservationService(
        repository,
        sink,
        reference_prefix=config.booking_ref_prefix,
        max_reference_attempts=config.booking_ref_max_attempts,
        cancellation_lead_hours=config.cancellation_lead_hours,
        rng=rng,
        clock=clock,
    )
    app.config["BOOKING_SERVICE"] = service

    missing = audit_rate_table(repository)
    if missing:
        logger.error("Rate table incomplete; missing rules: %s", ", ".join("/".join(item) for item in missing))

    def _serialize_ground(ground: Any) -> dict[str, Any]:
        return {
            **ground.to_dict(),
            "pricing_rules": [rule.to_dict() for rule in repository.list_rate_rules(ground.id)],
        }

    @app.errorhandler(BookingError)
    def handle_booking_error(error: BookingError) -> Any:
        status = 400
        for error_type, error_status in ERROR_STATUS.items():
            if isinstance(error, error_type):
                status = error_status
                break

        payload: dict[str, Any] = {"ok": False, "error": error.code.value, "message": error.message}
        if isinstance(error, ConflictError):
            payload["conflict"] = error.conflict.to_dict() if error.conflict is not None else None
        if status >= 500:
            logger.error("Request failed: %s", error)
        return jsonify(payload), status

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/health")
    def health() -> Any:
        return jsonify({"status": "ok", "timestamp": clock().isoformat(timespec="seconds")})

    @app.get("/api/grounds")
    def list_grounds() -> Any:
        return jsonify({"ok": True, "grounds": [_serialize_ground(ground) for ground in repository.list_grounds()]})

    @app.get("/api/grounds/<ground_id>")
    def get_ground(ground_id: str) -> Any:
        ground = repository.get_ground(ground_id)
        if ground is None:
            raise NotFoundError(ground_id, "Ground not found")
        return jsonify({"ok": True, "ground": _serialize_ground(ground)})

    @app.post("/api/availability/check")
    def check_availability() -> Any:
        payload = request.get_json(silent=True) or {}
        ground_id, booking_date, time_range = _parse_window(payload)
        result = service.check_availability(ground_id, booking_date, time_range)
        return jsonify({"ok": True, **result.to_dict()})

    @app.get("/api/availability/ground-slots")
    def ground_slots() -> Any:
        ground_id, booking_date = _parse_ground_and_date(request.args)
        grid = service.day_grid(ground_id, booking_date)
        return jsonify(
            {
                "ok": True,
                "groundId": ground_id,
                "date": booking_date.isoformat(),
                "slots": [slot.to_dict(include_booking=False) for slot in grid],
            }
        )

    @app.get("/api/availability/extendable")
    def extendable() -> Any:
        ground_id, booking_date = _parse_ground_and_date(request.args)
        start_hour = _parse_int(request.args.get("start_hour"), "start_hour")
        limit_text = request.args.get("limit")
        limit = _parse_int(limit_text, "limit") if limit_text else None
        if not 0 <= start_hour <= 23:
            raise ValidationError("start_hour must be within 0-23")
        hours = service.extendable_hours(ground_id, booking_date, start_hour, limit)
        return jsonify({"ok": True, "groundId": ground_id, "date": booking_date.isoformat(), "startHour": start_hour, "hours": hours})

    @app.get("/api/availability/<ground_id>/<date_text>")
    def booked_slots(ground_id: str, date_text: str) -> Any:
        booking_date = _parse_date(date_text)
        reservations = repository.find_reservations(ground_id, booking_date)
        return jsonify(
            {
                "ok": True,
                "groundId": ground_id,
                "date": booking_date.isoformat(),
                "bookedSlots": [
                    {
                        "startTime": reservation.time_range.start_text,
                        "endTime": reservation.time_range.end_text,
                        "bookingRef": reservation.reference,
                    }
                    for reservation in reservations
                ],
            }
        )

    @app.post("/api/bookings/create")
    def create_booking() -> Any:
        payload = request.get_json(silent=True) or {}
        ground_id, booking_date, time_range = _parse_window(payload)
        reservation = service.create_reservation(
            ground_id,
            booking_date,
            time_range,
            customer_name=payload.get("customerName"),
            customer_phone=payload.get("customerPhone"),
            team_details=payload.get("teamDetails"),
        )
        return jsonify({"ok": True, "booking": reservation.to_dict()}), 201

    @app.get("/api/bookings/slot-status")
    def slot_status() -> Any:
        ground_id, booking_date = _parse_ground_and_date(request.args)
        grid = service.day_grid(ground_id, booking_date)
        return jsonify(
            {
                "ok": True,
                "ground_id": ground_id,
                "date": booking_date.isoformat(),
                "slots": [slot.to_dict() for slot in grid],
            }
        )

    @app.get("/api/bookings/day-grid")
    def day_grid() -> Any:
        booking_date = _parse_date(request.args.get("date"))
        grids = service.day_grids(booking_date)
        return jsonify(
            {
                "ok": True,
                "date": booking_date.isoformat(),
                "grounds": {ground_id: [slot.to_dict() for slot in grid] for ground_id, grid in grids.items()},
            }
        )

    @app.get("/api/bookings/today")
    def bookings_today() -> Any:
        today = clock().date()
        names = service.ground_names()
        reservations = service.reservations_on(today)
        return jsonify(
            {
                "ok": True,
                "date": today.isoformat(),
                "bookings": [
                    {**reservation.to_dict(), "ground_name": names.get(reservation.ground_id)}
                    for reservation in reservations
                ],
            }
        )

    @app.get("/api/bookings/all")
    def bookings_all() -> Any:
        args = request.args
        criteria = ReservationFilter(
            date_from=_parse_date(args["date_from"]) if args.get("date_from") else None,
            date_to=_parse_date(args["date_to"]) if args.get("date_to") else None,
            ground_ids=tuple(value for value in args.getlist("ground_id") if value),
            statuses=tuple(value for value in args.getlist("status") if value),
            payment_status=args.get("payment_status") or None,
            search=(args.get("search") or "").strip() or None,
        )
        page = _parse_int(args.get("page", 1), "page")
        limit = _parse_int(args.get("limit", 20), "limit")
        result = service.search_reservations(criteria, page=page, limit=limit)
        return jsonify({"ok": True, **result.to_dict(service.ground_names())})

    @app.get("/api/bookings/calendar")
    def bookings_calendar() -> Any:
        week_start_text = request.args.get("week_start")
        if not week_start_text:
            raise ValidationError("week_start is required")
        week_start = _parse_date(week_start_text)
        names = service.ground_names()
        reservations = service.week_calendar(week_start)
        return jsonify(
            {
                "ok": True,
                "weekStart": week_start.isoformat(),
                "bookings": [
                    {**reservation.to_dict(), "ground_name": names.get(reservation.ground_id)}
                    for reservation in reservations
                ],
            }
        )

    @app.get("/api/bookings/customer/<phone>")
    def customer_bookings(phone: str) -> Any:
        reservations = service.customer_reservations(phone)
        return jsonify({"ok": True, "bookings": [reservation.to_dict() for reservation in reservations]})

    @app.get("/api/bookings/<reference>")
    def get_booking(reference: str) -> Any:
        reservation = service.get_reservation(reference)
        ground = repository.get_ground(reservation.ground_id)
        return jsonify(
            {
                "ok": True,
                "booking": {**reservation.to_dict(), "ground": ground.to_dict() if ground is not None else None},
            }
        )

    @app.put("/api/bookings/<reference>/cancel")
    def cancel_booking(reference: str) -> Any:
        reservation = service.cancel(reference)
        return jsonify({"ok": True, "message": "Booking cancelled successfully", "booking": reservation.to_dict()})

    @app.put("/api/bookings/<reference>/confirm-payment")
    def confirm_payment(reference: str) -> Any:
        payload = request.get_json(silent=True) or {}
        reservation = service.mark_paid(
            reference,
            method=payload.get("paymentMethod"),
            transaction_id=payload.get("transactionId"),
        )
        return jsonify({"ok": True, "booking": reservation.to_dict()})

    @app.get("/api/reports/daily/<date_text>")
    def report_daily(date_text: str) -> Any:
        report = daily_report(repository, _parse_date(date_text))
        return jsonify({"ok": True, **report.to_dict()})

    @app.get("/api/reports/weekly")
    def report_weekly() -> Any:
        return jsonify({"ok": True, "days": weekly_revenue(repository, clock().date())})

    @app.get("/api/reports/summary")
    def report_summary() -> Any:
        return jsonify({"ok": True, **revenue_summary(repository, clock().date())})

    @app.post("/api/reports/send-daily")
    def report_send_daily() -> Any:
        report, delivered = send_daily_report(repository, sink, clock().date())
        return jsonify({"ok": True, "success": delivered, "report": report.to_dict()})

    @app.get("/api/reports/reminders")
    @app.get("/api/availability/reminders")
    def report_reminders() -> Any:
        reservations = due_reminders(repository, clock())
        return jsonify({"ok": True, "bookings": [reservation.to_dict() for reservation in reservations]})

    return app


def _parse_date(value: Any) -> date:
    text = str(value or "").strip()
    if not text:
        raise ValidationError("date is required")
    try:
        return date.fromisoformat(text)
    except ValueError as error:
        raise ValidationError(f"Invalid date: {text!r}. Expected format: YYYY-MM-DD") from error


def _parse_int(value: Any, field: str) -> int:
    try:
        return int(str(value))
    except (TypeError, ValueError) as error:
        raise ValidationError(f"{field} must be an integer") from error


def _parse_ground_and_date(args: Any) -> tuple[str, date]:
    ground_id = str(args.get("ground_id", "")).strip()
    if not ground_id:
        raise ValidationError("ground_id and date are required")
    return ground_id, _parse_date(args.get("date"))


def _parse_window(payload: dict[str, Any]) -> tuple[str, date, TimeRange]:
    required = ("groundId", "date", "startTime", "endTime")
    if any(not str(payload.get(key) or "").strip() for key in required):
        raise ValidationError("groundId, date, startTime, and endTime are required")

    ground_id = str(payload["groundId"]).strip()
    booking_date = _parse_date(payload["date"])
    time_range = TimeRange.parse(str(payload["startTime"]), str(payload["endTime"]))
    return ground_id, booking_date, time_range


if __name__ == "__main__":
    app_settings = get_settings()
    setup_logging(app_settings.log_level)
    seed_repository = ReservationYamlRepository(app_settings.data_dir)
    if not seed_repository.list_grounds(active_only=False):
        seed_repository.seed_default_grounds(overwrite=False)
    app = create_app(settings=app_settings)
    app.run(host=app_settings.host, port=app_settings.port, debug=False)

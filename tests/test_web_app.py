import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from ground_booking import ReservationYamlRepository
from ground_booking.notifications import NotificationSink
from ground_booking.settings import load_settings
from ground_booking.web_app import create_app


class RecordingSink(NotificationSink):
    def __init__(self) -> None:
        self.confirmations: list[str] = []
        self.reports: list[object] = []

    def booking_confirmed(self, reservation, ground_name) -> None:
        self.confirmations.append(reservation.reference)

    def daily_report(self, report) -> None:
        self.reports.append(report)


class OfflineSink(RecordingSink):
    def daily_report(self, report) -> None:
        raise RuntimeError("webhook unreachable")


def _window(start: str = "18:00", end: str = "20:00", **extra) -> dict:
    return {"groundId": "ground-1", "date": "2026-02-20", "startTime": start, "endTime": end, **extra}


def _booking(start: str = "18:00", end: str = "20:00") -> dict:
    return _window(start, end, customerName="Lahore Lions", customerPhone="03001234567", teamDetails="7-a-side")


class TestWebApp(unittest.TestCase):
    def setUp(self) -> None:
        temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(temp_dir.cleanup)
        self.data_dir = Path(temp_dir.name) / "data"
        ReservationYamlRepository(self.data_dir).seed_default_grounds(now=datetime(2026, 2, 1, 9, 0))
        self.now = datetime(2026, 2, 18, 10, 0)
        self.sink = RecordingSink()
        app = create_app(
            self.data_dir,
            now_provider=lambda: self.now,
            notifier=self.sink,
            settings=load_settings({}),
        )
        self.client = app.test_client()

    def _create(self, start: str = "18:00", end: str = "20:00") -> dict:
        response = self.client.post("/api/bookings/create", json=_booking(start, end))
        self.assertEqual(response.status_code, 201)
        return response.get_json()["booking"]

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["status"], "ok")
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")

    def test_list_grounds_includes_rates(self) -> None:
        payload = self.client.get("/api/grounds").get_json()

        self.assertEqual(len(payload["grounds"]), 5)
        self.assertEqual(len(payload["grounds"][0]["pricing_rules"]), 4)
        self.assertEqual(self.client.get("/api/grounds/ground-42").status_code, 404)

    def test_check_availability_quotes_price(self) -> None:
        response = self.client.post("/api/availability/check", json=_window())

        payload = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertTrue(payload["available"])
        self.assertEqual(payload["price"]["basePrice"], 8400)
        self.assertEqual(payload["price"]["advanceAmount"], 2520)
        self.assertEqual(payload["price"]["remainingAmount"], 5880)
        self.assertEqual(payload["price"]["dayType"], "weekend")
        self.assertEqual(payload["price"]["slotType"], "peak")

    def test_missing_fields_are_rejected(self) -> None:
        response = self.client.post("/api/availability/check", json={"groundId": "ground-1"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "VALIDATION")

    def test_partial_hour_is_rejected(self) -> None:
        response = self.client.post("/api/bookings/create", json=_booking("18:00", "19:30"))

        self.assertEqual(response.status_code, 400)

    def test_create_then_conflict(self) -> None:
        booking = self._create()

        self.assertEqual(booking["base_price"], 8400)
        self.assertEqual(booking["booking_status"], "confirmed")
        self.assertEqual(booking["payment_status"], "pending")
        self.assertEqual(booking["team_details"], "7-a-side")
        self.assertEqual(self.sink.confirmations, [booking["booking_ref"]])

        response = self.client.post("/api/bookings/create", json=_booking("19:00", "21:00"))

        self.assertEqual(response.status_code, 409)
        payload = response.get_json()
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["error"], "CONFLICT")
        self.assertEqual(payload["conflict"]["booking_ref"], booking["booking_ref"])

    def test_slot_views_show_booked_hours(self) -> None:
        booking = self._create("22:00", "02:00")

        slots = self.client.get("/api/availability/ground-slots?ground_id=ground-1&date=2026-02-20").get_json()["slots"]
        self.assertFalse(slots[22]["available"])
        self.assertTrue(slots[1]["isContinuation"])
        self.assertNotIn("booking", slots[22])

        status = self.client.get("/api/bookings/slot-status?ground_id=ground-1&date=2026-02-20").get_json()["slots"]
        self.assertEqual(status[22]["booking"]["booking_ref"], booking["booking_ref"])
        self.assertEqual(status[23]["booking"], {"booking_ref": booking["booking_ref"]})

        booked = self.client.get("/api/availability/ground-1/2026-02-20").get_json()["bookedSlots"]
        self.assertEqual(booked, [{"startTime": "22:00", "endTime": "02:00", "bookingRef": booking["booking_ref"]}])

        grid = self.client.get("/api/bookings/day-grid?date=2026-02-20").get_json()["grounds"]
        self.assertEqual(len(grid), 5)
        self.assertTrue(grid["ground-1"][22]["isHead"])

    def test_extendable_hours(self) -> None:
        self._create("18:00", "20:00")

        response = self.client.get("/api/availability/extendable?ground_id=ground-1&date=2026-02-20&start_hour=15")

        self.assertEqual(response.get_json()["hours"], 3)
        bad = self.client.get("/api/availability/extendable?ground_id=ground-1&date=2026-02-20&start_hour=x")
        self.assertEqual(bad.status_code, 400)

    def test_get_booking_and_customer_history(self) -> None:
        booking = self._create()

        fetched = self.client.get(f"/api/bookings/{booking['booking_ref']}").get_json()["booking"]
        self.assertEqual(fetched["ground"]["name"], "Ground 1")

        history = self.client.get("/api/bookings/customer/03001234567").get_json()["bookings"]
        self.assertEqual([row["booking_ref"] for row in history], [booking["booking_ref"]])

        missing = self.client.get("/api/bookings/GS-000000")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.get_json()["error"], "NOT_FOUND")

    def test_cancel_inside_lead_time_is_rejected(self) -> None:
        booking = self._create()
        self.now = datetime(2026, 2, 20, 9, 0)

        response = self.client.put(f"/api/bookings/{booking['booking_ref']}/cancel")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "TOO_LATE")

    def test_cancel_frees_the_window(self) -> None:
        booking = self._create()

        response = self.client.put(f"/api/bookings/{booking['booking_ref']}/cancel")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["booking"]["booking_status"], "cancelled")
        self.assertTrue(self.client.post("/api/availability/check", json=_window()).get_json()["available"])

    def test_confirm_payment_and_daily_report(self) -> None:
        first = self._create("10:00", "11:00")
        second = self._create("18:00", "20:00")
        self._create("21:00", "22:00")

        paid = self.client.put(
            f"/api/bookings/{first['booking_ref']}/confirm-payment",
            json={"paymentMethod": "cash"},
        ).get_json()["booking"]
        self.client.put(
            f"/api/bookings/{second['booking_ref']}/confirm-payment",
            json={"paymentMethod": "easypaisa", "transactionId": "TX-1"},
        )

        self.assertEqual(paid["payment_status"], "paid")
        self.assertEqual(paid["payment_method"], "cash")

        report = self.client.get("/api/reports/daily/2026-02-20").get_json()
        self.assertEqual(report["bookings"]["count"], 2)
        self.assertEqual(report["bookings"]["cash"], first["base_price"])
        self.assertEqual(report["bookings"]["online"], second["base_price"])
        self.assertEqual(report["grandTotal"], first["base_price"] + second["base_price"])
        self.assertEqual(report["bookings"]["byGround"], {"Ground 1": report["grandTotal"]})

    def test_weekly_report_has_seven_days(self) -> None:
        days = self.client.get("/api/reports/weekly").get_json()["days"]

        self.assertEqual(len(days), 7)
        self.assertEqual(days[0]["date"], "2026-02-18")

    def test_bad_date_is_validation_error(self) -> None:
        response = self.client.get("/api/reports/daily/20-02-2026")

        self.assertEqual(response.status_code, 400)

    def _create_on(self, date_text: str, start: str, end: str, name: str = "Lahore Lions", phone: str = "03001234567") -> dict:
        payload = {**_window(start, end, date=date_text), "customerName": name, "customerPhone": phone}
        response = self.client.post("/api/bookings/create", json=payload)
        self.assertEqual(response.status_code, 201)
        return response.get_json()["booking"]

    def test_late_booking_blocks_next_morning_over_http(self) -> None:
        self._create("23:00", "01:00")

        response = self.client.post("/api/bookings/create", json={**_booking("00:00", "01:00"), "date": "2026-02-21"})
        self.assertEqual(response.status_code, 409)

        slots = self.client.get("/api/bookings/slot-status?ground_id=ground-1&date=2026-02-21").get_json()["slots"]
        self.assertTrue(slots[0]["carriedOver"])
        self.assertTrue(slots[0]["isContinuation"])
        self.assertTrue(slots[1]["available"])

    def test_todays_bookings_include_cancelled(self) -> None:
        kept = self._create_on("2026-02-18", "20:00", "21:00")
        self._create_on("2026-02-19", "20:00", "21:00")
        self.now = datetime(2026, 2, 17, 10, 0)
        dropped = self._create_on("2026-02-18", "18:00", "19:00")
        self.client.put(f"/api/bookings/{dropped['booking_ref']}/cancel")
        self.now = datetime(2026, 2, 18, 10, 0)

        payload = self.client.get("/api/bookings/today").get_json()

        self.assertEqual(payload["date"], "2026-02-18")
        self.assertEqual([booking["booking_ref"] for booking in payload["bookings"]], [dropped["booking_ref"], kept["booking_ref"]])
        self.assertEqual(payload["bookings"][0]["booking_status"], "cancelled")
        self.assertEqual(payload["bookings"][1]["ground_name"], "Ground 1")

    def test_all_bookings_filters_and_pages(self) -> None:
        first = self._create_on("2026-02-20", "10:00", "11:00", name="Lahore Lions")
        self.now = datetime(2026, 2, 18, 11, 0)
        second = self._create_on("2026-02-21", "10:00", "11:00", name="Karachi Kings", phone="03112223333")
        self.now = datetime(2026, 2, 18, 12, 0)
        third = self._create_on("2026-02-22", "10:00", "11:00", name="Lahore Qalandars")

        page = self.client.get("/api/bookings/all?page=1&limit=2").get_json()
        self.assertEqual([booking["booking_ref"] for booking in page["bookings"]], [third["booking_ref"], second["booking_ref"]])
        self.assertEqual((page["page"], page["limit"], page["total"], page["totalPages"]), (1, 2, 3, 2))

        searched = self.client.get("/api/bookings/all?search=LAHORE&date_from=2026-02-20&date_to=2026-02-21").get_json()
        self.assertEqual([booking["booking_ref"] for booking in searched["bookings"]], [first["booking_ref"]])

        by_phone = self.client.get("/api/bookings/all?search=0311").get_json()
        self.assertEqual(by_phone["total"], 1)

        by_status = self.client.get("/api/bookings/all?status=confirmed&status=cancelled&ground_id=ground-2").get_json()
        self.assertEqual(by_status["total"], 0)

    def test_all_bookings_rejects_bad_paging(self) -> None:
        self.assertEqual(self.client.get("/api/bookings/all?page=0").status_code, 400)
        self.assertEqual(self.client.get("/api/bookings/all?limit=500").status_code, 400)
        self.assertEqual(self.client.get("/api/bookings/all?page=two").status_code, 400)

    def test_week_calendar(self) -> None:
        inside = self._create_on("2026-02-26", "10:00", "11:00")
        self._create_on("2026-02-27", "10:00", "11:00")

        payload = self.client.get("/api/bookings/calendar?week_start=2026-02-20").get_json()

        self.assertEqual(payload["weekStart"], "2026-02-20")
        self.assertEqual([booking["booking_ref"] for booking in payload["bookings"]], [inside["booking_ref"]])
        self.assertEqual(self.client.get("/api/bookings/calendar").status_code, 400)

    def test_revenue_summary_counts_paid_bookings(self) -> None:
        today = self._create_on("2026-02-18", "20:00", "21:00")
        later = self._create_on("2026-02-25", "20:00", "21:00")
        self._create_on("2026-02-26", "20:00", "21:00")
        for booking in (today, later):
            self.client.put(f"/api/bookings/{booking['booking_ref']}/confirm-payment", json={"paymentMethod": "cash"})

        summary = self.client.get("/api/reports/summary").get_json()

        self.assertEqual(summary["totalBookingsThisMonth"], 2)
        self.assertEqual(summary["totalRevenueThisMonth"], today["base_price"] + later["base_price"])
        self.assertEqual(summary["bookingsToday"], 1)
        self.assertEqual(summary["revenueToday"], today["base_price"])

    def test_send_daily_report(self) -> None:
        response = self.client.post("/api/reports/send-daily")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["success"])
        self.assertEqual(response.get_json()["report"]["date"], "2026-02-18")
        self.assertEqual(len(self.sink.reports), 1)

    def test_send_daily_report_failure_is_reported(self) -> None:
        app = create_app(self.data_dir, now_provider=lambda: self.now, notifier=OfflineSink(), settings=load_settings({}))

        with self.assertLogs("ground_booking.reports", level="ERROR"):
            response = app.test_client().post("/api/reports/send-daily")

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.get_json()["success"])

    def test_reminders_available_under_both_paths(self) -> None:
        booking = self._create_on("2026-02-18", "12:00", "13:00")
        self.client.put(f"/api/bookings/{booking['booking_ref']}/confirm-payment", json={"paymentMethod": "cash"})

        for path in ("/api/availability/reminders", "/api/reports/reminders"):
            with self.subTest(path=path):
                bookings = self.client.get(path).get_json()["bookings"]
                self.assertEqual([item["booking_ref"] for item in bookings], [booking["booking_ref"]])


if __name__ == "__main__":
    unittest.main()

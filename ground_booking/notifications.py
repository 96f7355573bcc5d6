"""Outbound notifications for confirmed bookings and daily reports.

Delivery is opaque to the booking core: callers catch and log whatever a
sink raises.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import requests

from .models import Reservation

if TYPE_CHECKING:
    from .reports import DailyReport

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    @abstractmethod
    def booking_confirmed(self, reservation: Reservation, ground_name: str) -> None:
        ...

    @abstractmethod
    def daily_report(self, report: DailyReport) -> None:
        ...


class NullNotificationSink(NotificationSink):
    """Sink used when no messaging endpoint is configured."""

    def booking_confirmed(self, reservation: Reservation, ground_name: str) -> None:
        logger.debug("Notification disabled; skipping confirmation for %s", reservation.reference)

    def daily_report(self, report: DailyReport) -> None:
        logger.debug("Notification disabled; skipping daily report for %s", report.date.isoformat())


class WebhookNotificationSink(NotificationSink):
    """POST JSON payloads to a messaging bot over HTTP."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _post(self, path: str, payload: dict[str, Any]) -> None:
        response = self._session.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        response.raise_for_status()

    def booking_confirmed(self, reservation: Reservation, ground_name: str) -> None:
        self._post("/send-confirmation", {"booking": reservation.to_dict(), "groundName": ground_name})
        logger.info("Confirmation sent for %s", reservation.reference)

    def daily_report(self, report: DailyReport) -> None:
        self._post("/send-daily-report", {"report": report.to_dict()})
        logger.info("Daily report sent for %s", report.date.isoformat())


def build_notification_sink(url: str | None, timeout: float = 5.0) -> NotificationSink:
    if not url:
        return NullNotificationSink()
    return WebhookNotificationSink(url, timeout=timeout)

"""
REST client for reading schedule data from a hosted booking backend.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import UpstreamDataUnavailable
from ..domain.models import Booking, BookingStatus, TimeOff, WorkingHours

logger = logging.getLogger(__name__)


class ScheduleApiClient:
    """
    Client for the booking backend's schedule endpoints.

    Implements the read ports of the service layer:

    - ``GET /barbers/{id}/working-hours?weekday=N`` (404 means day off)
    - ``GET /barbers/{id}/appointments?from=...&to=...``
    - ``GET /barbers/{id}/time-off?from=...&to=...``
    - ``GET /services/{id}/barbers?active=true``

    Blocking HTTP calls are run in a worker thread so the per-barber
    fan-out of the aggregator can overlap them.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timezone: str = "Europe/Berlin",
        timeout_seconds: float = 10,
    ):
        """
        Initialize the API client.

        Args:
            base_url: Backend root, e.g. ``https://shop.example.com/api``
            token: Optional bearer token
            timezone: Shop timezone used for timestamps without an offset
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.timezone = timezone
        self.timeout_seconds = timeout_seconds
        self.headers = {"Accept": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    async def get_working_hours(self, barber_id: str, weekday: int) -> Optional[WorkingHours]:
        data = await asyncio.to_thread(
            self._get,
            f"/barbers/{barber_id}/working-hours",
            {"weekday": weekday},
            True,
        )
        if data is None:
            return None
        try:
            return WorkingHours.from_strings(barber_id, weekday, data["start"], data["end"])
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamDataUnavailable(f"Malformed working hours for barber {barber_id}: {exc}") from exc

    async def list_bookings(self, barber_id: str, day_start: DateTime, day_end: DateTime) -> List[Booking]:
        data = await asyncio.to_thread(
            self._get,
            f"/barbers/{barber_id}/appointments",
            self._window_params(day_start, day_end),
        )
        try:
            bookings = [
                Booking(
                    id=str(item["id"]),
                    barber_id=barber_id,
                    start=self._parse_datetime(item["start"]),
                    end=self._parse_datetime(item["end"]),
                    status=BookingStatus(item.get("status", BookingStatus.BOOKED.value)),
                    customer_id=item.get("customer_id"),
                )
                for item in data.get("appointments", [])
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise UpstreamDataUnavailable(f"Malformed appointments for barber {barber_id}: {exc}") from exc

        return [booking for booking in bookings if booking.blocks_time]

    async def list_time_off(self, barber_id: str, day_start: DateTime, day_end: DateTime) -> List[TimeOff]:
        data = await asyncio.to_thread(
            self._get,
            f"/barbers/{barber_id}/time-off",
            self._window_params(day_start, day_end),
        )
        try:
            return [
                TimeOff(
                    id=item.get("id"),
                    barber_id=barber_id,
                    start=self._parse_datetime(item["start"]),
                    end=self._parse_datetime(item["end"]),
                    reason=item.get("reason"),
                )
                for item in data.get("time_off", [])
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise UpstreamDataUnavailable(f"Malformed time off for barber {barber_id}: {exc}") from exc

    async def list_active_barbers(self, service_id: int) -> List[str]:
        data = await asyncio.to_thread(self._get, f"/services/{service_id}/barbers", {"active": "true"})
        try:
            return [str(barber_id) for barber_id in data["barbers"]]
        except (KeyError, TypeError) as exc:
            raise UpstreamDataUnavailable(f"Malformed barber list for service {service_id}: {exc}") from exc

    def _get(self, path: str, params: Dict[str, Any], allow_missing: bool = False) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}{path}"

        try:
            response = requests.get(url, headers=self.headers, params=params, timeout=self.timeout_seconds)
            if allow_missing and response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise UpstreamDataUnavailable(f"Failed to fetch {path} from booking backend: {e}") from e
        except ValueError as e:
            raise UpstreamDataUnavailable(f"Booking backend returned invalid JSON for {path}: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamDataUnavailable(f"Unexpected response shape for {path}")

        logger.debug("GET %s -> %s", path, response.status_code)
        return data

    @staticmethod
    def _window_params(day_start: DateTime, day_end: DateTime) -> Dict[str, str]:
        return {"from": day_start.to_iso8601_string(), "to": day_end.to_iso8601_string()}

    def _parse_datetime(self, datetime_str: str) -> DateTime:
        """
        Parse an ISO 8601 timestamp into the shop timezone.
        """
        dt = pendulum.parse(datetime_str, tz=self.timezone)

        if isinstance(dt, DateTime):
            return dt.in_timezone(self.timezone)

        raise ValueError(f"Could not parse datetime: {datetime_str}")

"""
File-backed schedule store.

Keeps barbers, services, working hours, appointments and time off in a single
JSON document. It implements every read and write port of the service layer,
which makes it the default backend of the CLI and a realistic fixture for
tests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import NotFound, UpstreamDataUnavailable
from ..domain.intervals import clip_to_window
from ..domain.models import (
    Barber,
    Booking,
    BookingStatus,
    Service,
    TimeOff,
    WorkingHours,
)
from ..domain.time_utils import format_hhmm

logger = logging.getLogger(__name__)


class JsonScheduleStore:
    """
    Schedule store persisted as one JSON document.

    Document layout::

        {
          "barbers": [{"id": "anna", "name": "Anna", "active": true,
                       "services": [1, 2],
                       "working_hours": [{"weekday": 1, "start": "10:00", "end": "20:00"}]}],
          "services": [{"id": 1, "name": "Haircut", "duration_minutes": 45,
                        "price": "25.00", "active": true}],
          "appointments": [{"id": "a1", "barber_id": "anna", "customer_id": "c1",
                            "start": "2024-11-25T12:00:00", "end": "2024-11-25T12:45:00",
                            "status": "BOOKED", "service_ids": [1], "total_price": "25.00"}],
          "time_off": [{"id": "t1", "barber_id": "anna", "start": "...", "end": "...",
                        "reason": "Holiday"}]
        }

    The file is read on first use. Missing or malformed data raises
    ``UpstreamDataUnavailable`` instead of yielding an empty schedule.
    """

    def __init__(self, path: Optional[Path], timezone: str = "Europe/Berlin"):
        """
        Initialize the store.

        Args:
            path: JSON document to read and write; None keeps data in memory only
            timezone: Shop timezone used for timestamps without an offset
        """
        self.path = path
        self.timezone = timezone
        self._lock = asyncio.Lock()
        self._loaded = False

        self._barbers: Dict[str, Barber] = {}
        self._working_hours: Dict[Tuple[str, int], WorkingHours] = {}
        self._services: Dict[int, Service] = {}
        self._bookings: Dict[str, Booking] = {}
        self._time_off: List[TimeOff] = []

    @classmethod
    def from_dict(cls, data: Dict[str, Any], timezone: str = "Europe/Berlin") -> "JsonScheduleStore":
        """Build an in-memory store from an already parsed document."""
        store = cls(path=None, timezone=timezone)
        store._load_document(data, source="<memory>")
        return store

    # Loading

    def reload(self) -> None:
        """Drop cached data; the document is read again on next access."""
        self._loaded = False

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._load_document(self._read_file(), source=str(self.path))

    def _read_file(self) -> Dict[str, Any]:
        if self.path is None:
            return {}

        if not self.path.exists():
            raise UpstreamDataUnavailable(f"Schedule data file not found: {self.path}")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise UpstreamDataUnavailable(f"Could not read schedule data from {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise UpstreamDataUnavailable("Schedule data must contain a mapping at the root level.")
        return data

    def _load_document(self, data: Dict[str, Any], source: str) -> None:
        try:
            barbers: Dict[str, Barber] = {}
            working_hours: Dict[Tuple[str, int], WorkingHours] = {}
            for raw in data.get("barbers", []):
                barber = Barber(
                    id=str(raw["id"]),
                    name=raw.get("name", str(raw["id"])),
                    active=bool(raw.get("active", True)),
                    service_ids=tuple(int(service_id) for service_id in raw.get("services", [])),
                )
                barbers[barber.id] = barber
                for entry in raw.get("working_hours", []):
                    hours = WorkingHours.from_strings(
                        barber.id, int(entry["weekday"]), entry["start"], entry["end"]
                    )
                    key = (barber.id, hours.weekday)
                    if key in working_hours:
                        raise ValueError(f"Duplicate working hours for {barber.id} on weekday {hours.weekday}")
                    working_hours[key] = hours

            services = {
                int(raw["id"]): Service(
                    id=int(raw["id"]),
                    name=raw["name"],
                    duration_minutes=int(raw["duration_minutes"]),
                    price=Decimal(str(raw.get("price", "0"))),
                    active=bool(raw.get("active", True)),
                )
                for raw in data.get("services", [])
            }

            bookings = {}
            for raw in data.get("appointments", []):
                booking = Booking(
                    id=str(raw["id"]),
                    barber_id=str(raw["barber_id"]),
                    start=self._parse_datetime(raw["start"]),
                    end=self._parse_datetime(raw["end"]),
                    status=BookingStatus(raw.get("status", BookingStatus.BOOKED.value)),
                    customer_id=raw.get("customer_id"),
                    service_ids=[int(service_id) for service_id in raw.get("service_ids", [])],
                    total_price=Decimal(str(raw.get("total_price", "0"))),
                )
                bookings[booking.id] = booking

            time_off = [
                TimeOff(
                    id=raw.get("id"),
                    barber_id=str(raw["barber_id"]),
                    start=self._parse_datetime(raw["start"]),
                    end=self._parse_datetime(raw["end"]),
                    reason=raw.get("reason"),
                )
                for raw in data.get("time_off", [])
            ]
        except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
            raise UpstreamDataUnavailable(f"Invalid schedule data in {source}: {exc}") from exc

        self._barbers = barbers
        self._working_hours = working_hours
        self._services = services
        self._bookings = bookings
        self._time_off = time_off
        self._loaded = True

        logger.debug(
            "Loaded %d barbers, %d services, %d appointments from %s",
            len(barbers),
            len(services),
            len(bookings),
            source,
        )

    def _parse_datetime(self, value: str) -> DateTime:
        parsed = pendulum.parse(value, tz=self.timezone)
        if not isinstance(parsed, DateTime):
            raise ValueError(f"Could not parse datetime: {value}")
        return parsed.in_timezone(self.timezone)

    # Read ports

    async def get_working_hours(self, barber_id: str, weekday: int) -> Optional[WorkingHours]:
        self._ensure_loaded()
        return self._working_hours.get((barber_id, weekday))

    async def list_bookings(self, barber_id: str, day_start: DateTime, day_end: DateTime) -> List[Booking]:
        self._ensure_loaded()
        own = (
            replace(booking)
            for booking in self._bookings.values()
            if booking.barber_id == barber_id and booking.blocks_time
        )
        return clip_to_window(own, day_start, day_end)

    async def list_time_off(self, barber_id: str, day_start: DateTime, day_end: DateTime) -> List[TimeOff]:
        self._ensure_loaded()
        own = (period for period in self._time_off if period.barber_id == barber_id)
        return clip_to_window(own, day_start, day_end)

    async def list_active_barbers(self, service_id: int) -> List[str]:
        self._ensure_loaded()
        service = self._services.get(service_id)
        if service is None or not service.active:
            logger.debug("Service %s is unknown or inactive; no barbers offer it", service_id)
            return []
        return [
            barber.id for barber in self._barbers.values()
            if barber.active and barber.offers(service_id)
        ]

    def list_barbers(self) -> List[Barber]:
        self._ensure_loaded()
        return list(self._barbers.values())

    def working_hours_for(self, barber_id: str) -> List[WorkingHours]:
        self._ensure_loaded()
        return sorted(
            (hours for (owner, _), hours in self._working_hours.items() if owner == barber_id),
            key=lambda hours: hours.weekday,
        )

    def get_service(self, service_id: int) -> Optional[Service]:
        self._ensure_loaded()
        return self._services.get(service_id)

    async def get_barber(self, barber_id: str) -> Optional[Barber]:
        self._ensure_loaded()
        return self._barbers.get(barber_id)

    # Write port

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            self._ensure_loaded()
            bookings_before = {key: replace(booking) for key, booking in self._bookings.items()}
            time_off_before = list(self._time_off)
            try:
                yield
                self._persist()
            except BaseException:
                self._bookings = bookings_before
                self._time_off = time_off_before
                raise

    async def get_services(self, service_ids: Sequence[int]) -> List[Service]:
        self._ensure_loaded()
        found = []
        for service_id in service_ids:
            service = self._services.get(service_id)
            if service is not None and service.active:
                found.append(service)
        return found

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        self._ensure_loaded()
        booking = self._bookings.get(booking_id)
        return replace(booking) if booking else None

    async def list_bookings_starting_between(
        self,
        barber_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Booking]:
        self._ensure_loaded()
        found = [
            replace(booking)
            for booking in self._bookings.values()
            if booking.barber_id == barber_id and booking.blocks_time and start <= booking.start <= end
        ]
        return sorted(found, key=lambda booking: booking.start)

    async def insert_booking(self, booking: Booking) -> None:
        self._ensure_loaded()
        self._bookings[booking.id] = replace(booking)

    async def update_booking(self, booking: Booking) -> None:
        self._ensure_loaded()
        if booking.id not in self._bookings:
            raise NotFound(f"Unknown appointment: {booking.id}")
        self._bookings[booking.id] = replace(booking)

    async def insert_time_off(self, time_off: TimeOff) -> None:
        self._ensure_loaded()
        self._time_off.append(time_off)

    # Persistence

    def _persist(self) -> None:
        if self.path is None:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._to_document(), f, indent=2)
        except OSError as exc:
            raise UpstreamDataUnavailable(f"Could not save schedule data to {self.path}: {exc}") from exc

    def _to_document(self) -> Dict[str, Any]:
        return {
            "barbers": [
                {
                    "id": barber.id,
                    "name": barber.name,
                    "active": barber.active,
                    "services": list(barber.service_ids),
                    "working_hours": [
                        {
                            "weekday": hours.weekday,
                            "start": format_hhmm(hours.start_time),
                            "end": format_hhmm(hours.end_time),
                        }
                        for hours in self.working_hours_for(barber.id)
                    ],
                }
                for barber in self._barbers.values()
            ],
            "services": [
                {
                    "id": service.id,
                    "name": service.name,
                    "duration_minutes": service.duration_minutes,
                    "price": str(service.price),
                    "active": service.active,
                }
                for service in self._services.values()
            ],
            "appointments": [
                {
                    "id": booking.id,
                    "barber_id": booking.barber_id,
                    "customer_id": booking.customer_id,
                    "start": booking.start.to_iso8601_string(),
                    "end": booking.end.to_iso8601_string(),
                    "status": booking.status.value,
                    "service_ids": list(booking.service_ids),
                    "total_price": str(booking.total_price),
                }
                for booking in sorted(self._bookings.values(), key=lambda booking: booking.start)
            ],
            "time_off": [
                {
                    "id": period.id,
                    "barber_id": period.barber_id,
                    "start": period.start.to_iso8601_string(),
                    "end": period.end.to_iso8601_string(),
                    "reason": period.reason,
                }
                for period in self._time_off
            ],
        }

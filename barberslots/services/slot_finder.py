"""
Application service for generating one barber's slots on one day.

The service reads working hours, bookings and time off through small
protocols and delegates the actual grid calculation to the domain-level
``SlotGenerator``. Any failing read is surfaced as
``UpstreamDataUnavailable``; an empty conflict list is never substituted,
because that would show the day as free.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Awaitable, List, Optional, Protocol, TypeVar

from pendulum import DateTime

from ..domain.clock import Clock
from ..domain.exceptions import UpstreamDataUnavailable
from ..domain.models import Booking, CandidateSlot, TimeOff, WorkingHours
from ..domain.slot_generator import SlotGenerator, validate_slot_request
from ..domain.time_utils import coerce_date, day_bounds, shop_weekday
from .fanout import gather_all

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkingHoursProvider(Protocol):
    """Protocol describing where per-weekday working hours come from."""

    async def get_working_hours(self, barber_id: str, weekday: int) -> Optional[WorkingHours]:
        """Return the barber's hours for a weekday (0=Sunday), or None."""


class BookingStore(Protocol):
    """Protocol describing read access to existing appointments."""

    async def list_bookings(
        self,
        barber_id: str,
        day_start: DateTime,
        day_end: DateTime,
    ) -> List[Booking]:
        """Return the non-canceled bookings overlapping ``[day_start, day_end)``."""


class TimeOffStore(Protocol):
    """Protocol describing read access to time-off periods."""

    async def list_time_off(
        self,
        barber_id: str,
        day_start: DateTime,
        day_end: DateTime,
    ) -> List[TimeOff]:
        """Return the time-off periods overlapping ``[day_start, day_end)``."""


class SlotFinderService:
    """
    Orchestrates schedule retrieval and slot generation for one barber.
    """

    def __init__(
        self,
        working_hours_provider: WorkingHoursProvider,
        booking_store: BookingStore,
        time_off_store: TimeOffStore,
        clock: Clock,
        slot_generator: SlotGenerator,
    ) -> None:
        self._working_hours_provider = working_hours_provider
        self._booking_store = booking_store
        self._time_off_store = time_off_store
        self._clock = clock
        self._slot_generator = slot_generator

    @property
    def policy(self):
        return self._slot_generator.policy

    @property
    def clock(self) -> Clock:
        return self._clock

    async def generate_slots(
        self,
        barber_id: str,
        day: date | str,
        service_duration_minutes: int,
        cadence_minutes: Optional[int] = None,
    ) -> List[CandidateSlot]:
        """
        Generate the full slot grid for a barber on a day.

        Args:
            barber_id: Barber to generate for
            day: Calendar date (``date`` or ``YYYY-MM-DD``)
            service_duration_minutes: Length of the requested service
            cadence_minutes: Grid step, defaults to the shop policy cadence

        Returns:
            All slots in chronological order; empty when the barber does not
            work that weekday or the day is in the past

        Raises:
            InvalidInput: On non-positive duration/cadence or a malformed date
            UpstreamDataUnavailable: If any schedule read fails
        """
        if cadence_minutes is None:
            cadence_minutes = self.policy.default_cadence_minutes
        validate_slot_request(service_duration_minutes, cadence_minutes)
        day = coerce_date(day)

        working_hours = await self._read(
            "working hours",
            barber_id,
            self._working_hours_provider.get_working_hours(barber_id, shop_weekday(day)),
        )
        if working_hours is None:
            logger.debug("Barber %s does not work on %s", barber_id, day.to_date_string())
            return []

        now = self._clock.now()
        if day < now.date():
            return []

        day_start, day_end = day_bounds(day, self._slot_generator.timezone)
        bookings, time_off = await gather_all(
            self._read(
                "bookings",
                barber_id,
                self._booking_store.list_bookings(barber_id, day_start, day_end),
            ),
            self._read(
                "time off",
                barber_id,
                self._time_off_store.list_time_off(barber_id, day_start, day_end),
            ),
        )

        return self._slot_generator.build_slots(
            day=day,
            working_hours=working_hours,
            bookings=bookings,
            time_off=time_off,
            now=now,
            service_duration_minutes=service_duration_minutes,
            cadence_minutes=cadence_minutes,
        )

    @staticmethod
    async def _read(what: str, barber_id: str, pending: Awaitable[T]) -> T:
        try:
            return await pending
        except UpstreamDataUnavailable:
            raise
        except Exception as exc:
            raise UpstreamDataUnavailable(
                f"Could not read {what} for barber {barber_id}: {exc}"
            ) from exc

"""
Service-wide availability: which barbers have slots on a day, and which
days of a range are worth opening in a booking calendar.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional, Protocol

from pendulum import Date

from ..domain.exceptions import InvalidInput, UpstreamDataUnavailable
from ..domain.models import BarberSlots, DayAvailability
from ..domain.slot_generator import validate_slot_request
from ..domain.time_utils import coerce_date, iter_dates, month_range
from .fanout import gather_all
from .slot_finder import SlotFinderService

logger = logging.getLogger(__name__)


class BarberDirectory(Protocol):
    """Protocol describing how active barbers are resolved for a service."""

    async def list_active_barbers(self, service_id: int) -> List[str]:
        """Return the ids of the active barbers offering the service."""


class ServiceAvailabilityAggregator:
    """
    Fans slot generation out across every active barber of a service.

    Per-barber calls are independent reads and run concurrently; the result
    does not depend on that concurrency.
    """

    def __init__(self, slot_finder: SlotFinderService, barber_directory: BarberDirectory) -> None:
        self._slot_finder = slot_finder
        self._barber_directory = barber_directory

    async def available_barber_slots(
        self,
        service_id: int,
        day: date | str,
        service_duration_minutes: int,
        cadence_minutes: Optional[int] = None,
    ) -> List[BarberSlots]:
        """
        Slots of every active barber working on ``day``.

        Barbers with an empty grid (day off, past day) are left out; the
        directory order is preserved.
        """
        if cadence_minutes is None:
            cadence_minutes = self._slot_finder.policy.default_cadence_minutes
        validate_slot_request(service_duration_minutes, cadence_minutes)
        day = coerce_date(day)

        barber_ids = await self._active_barbers(service_id)
        grids = await gather_all(
            *(
                self._slot_finder.generate_slots(
                    barber_id, day, service_duration_minutes, cadence_minutes
                )
                for barber_id in barber_ids
            )
        )

        return [
            BarberSlots(barber_id=barber_id, slots=slots)
            for barber_id, slots in zip(barber_ids, grids)
            if slots
        ]

    async def day_availability(
        self,
        service_id: int,
        start_date: date | str,
        end_date: date | str,
        service_duration_minutes: int,
    ) -> Dict[Date, DayAvailability]:
        """
        Classify every date in ``[start_date, end_date]``.

        - before today: booked
        - closed weekday (Sunday by default): nonWorkingDay, without looking
          at anyone's working hours
        - otherwise available if at least one barber has a free slot,
          booked if not
        """
        validate_slot_request(
            service_duration_minutes, self._slot_finder.policy.default_cadence_minutes
        )
        start = coerce_date(start_date)
        end = coerce_date(end_date)
        if start > end:
            raise InvalidInput(
                f"Start date {start.to_date_string()} is after end date {end.to_date_string()}"
            )

        policy = self._slot_finder.policy
        today = self._slot_finder.clock.now().date()
        result: Dict[Date, DayAvailability] = {}
        to_check: List[Date] = []

        for day in iter_dates(start, end):
            if day < today:
                result[day] = DayAvailability.BOOKED
            elif policy.is_closed(day):
                result[day] = DayAvailability.NON_WORKING_DAY
            else:
                to_check.append(day)

        checked = await gather_all(
            *(self._classify_open_day(service_id, day, service_duration_minutes) for day in to_check)
        )
        result.update(zip(to_check, checked))

        logger.debug(
            "Classified %d days for service %s (%d open)",
            len(result),
            service_id,
            sum(1 for status in result.values() if status == DayAvailability.AVAILABLE),
        )
        return dict(sorted(result.items()))

    async def month_availability(
        self,
        service_id: int,
        day_in_month: date | str,
        service_duration_minutes: int,
    ) -> Dict[Date, DayAvailability]:
        """Classify the whole calendar month containing ``day_in_month``."""
        first, last = month_range(coerce_date(day_in_month))
        return await self.day_availability(service_id, first, last, service_duration_minutes)

    async def _classify_open_day(
        self,
        service_id: int,
        day: Date,
        service_duration_minutes: int,
    ) -> DayAvailability:
        barber_slots = await self.available_barber_slots(service_id, day, service_duration_minutes)
        if any(entry.has_available_slot() for entry in barber_slots):
            return DayAvailability.AVAILABLE
        return DayAvailability.BOOKED

    async def _active_barbers(self, service_id: int) -> List[str]:
        try:
            return list(await self._barber_directory.list_active_barbers(service_id))
        except UpstreamDataUnavailable:
            raise
        except Exception as exc:
            raise UpstreamDataUnavailable(
                f"Could not list active barbers for service {service_id}: {exc}"
            ) from exc

"""
Core business logic for generating bookable time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). Everything it
needs, "now" included, is passed in by the caller.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional

from pendulum import DateTime

from .exceptions import InvalidInput
from .intervals import overlaps_any
from .models import Booking, CandidateSlot, ShopPolicy, TimeOff, TimeRange, WorkingHours
from .time_utils import coerce_date, next_aligned_instant

logger = logging.getLogger(__name__)


def validate_slot_request(service_duration_minutes: int, cadence_minutes: int) -> None:
    """
    Reject non-positive durations before any data is read.

    Raises:
        InvalidInput: If either value is not a positive integer
    """
    for name, value in (
        ("service_duration_minutes", service_duration_minutes),
        ("cadence_minutes", cadence_minutes),
    ):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidInput(f"{name} must be a positive integer, got {value!r}")


class SlotGenerator:
    """
    Enumerates the slot grid of one barber on one day.

    Algorithm:
    1. Resolve the working window from the barber's working hours
    2. Walk the window in cadence steps, jumping over the lunch break
    3. For each tick, build the conflict window ``[start, start + duration)``
    4. Mark the tick unavailable if the conflict window hits a booking,
       a time-off period, closing time, or the tick is already past
    5. Return every tick, available or not, so calendars can grey them out
    """

    def __init__(self, policy: Optional[ShopPolicy] = None, timezone: str = "Europe/Berlin"):
        self.policy = policy or ShopPolicy()
        self.timezone = timezone

    def build_slots(
        self,
        *,
        day: date,
        working_hours: Optional[WorkingHours],
        bookings: Iterable[Booking],
        time_off: Iterable[TimeOff],
        now: DateTime,
        service_duration_minutes: int,
        cadence_minutes: int = 15,
    ) -> List[CandidateSlot]:
        """
        Build the candidate slots for a single day.

        Args:
            day: Calendar date to generate (time of day is ignored)
            working_hours: The barber's hours for this weekday, None for a day off
            bookings: Bookings overlapping the day; canceled ones are ignored
            time_off: Time-off periods overlapping the day
            now: Current instant in the shop timezone
            service_duration_minutes: Length of the requested service
            cadence_minutes: Grid step between slot starts

        Returns:
            Chronologically ordered CandidateSlot list, empty on a day off
        """
        validate_slot_request(service_duration_minutes, cadence_minutes)
        day = coerce_date(day)

        if working_hours is None:
            return []

        today = now.date()
        if day < today:
            # Past days never get a grid
            return []

        window = working_hours.window_for(day, self.timezone)
        lunch_break = self.policy.lunch_break_on(day, self.timezone)
        blocking = [booking for booking in bookings if booking.blocks_time]
        time_off = list(time_off)
        earliest_start = next_aligned_instant(now, cadence_minutes) if day == today else None

        slots: List[CandidateSlot] = []
        slot_start = window.start

        while slot_start.add(minutes=cadence_minutes) <= window.end:
            if lunch_break.contains(slot_start):
                slot_start = lunch_break.end
                continue

            conflict_end = slot_start.add(minutes=service_duration_minutes)
            available = self._is_available(
                slot_start=slot_start,
                conflict_end=conflict_end,
                window=window,
                lunch_break=lunch_break,
                bookings=blocking,
                time_off=time_off,
                earliest_start=earliest_start,
            )
            slots.append(CandidateSlot(start=slot_start, end=conflict_end, available=available))

            slot_start = slot_start.add(minutes=cadence_minutes)

        logger.debug(
            "Built %d slots (%d available) for %s",
            len(slots),
            sum(1 for slot in slots if slot.available),
            day.to_date_string(),
        )
        return slots

    def _is_available(
        self,
        *,
        slot_start: DateTime,
        conflict_end: DateTime,
        window: TimeRange,
        lunch_break: TimeRange,
        bookings: List[Booking],
        time_off: List[TimeOff],
        earliest_start: Optional[DateTime],
    ) -> bool:
        if overlaps_any(slot_start, conflict_end, bookings):
            return False

        if overlaps_any(slot_start, conflict_end, time_off):
            return False

        if earliest_start is not None and slot_start < earliest_start:
            return False

        if self.policy.reject_past_closing and conflict_end > window.end:
            return False

        if self.policy.lunch_blocks_service and lunch_break.overlaps(TimeRange(slot_start, conflict_end)):
            return False

        return True

"""
Booking write path.

Slot grids are computed from a read snapshot, so a slot shown as free may be
taken a moment later. Every write therefore re-checks conflicts inside the
store's transaction before anything is persisted.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import AsyncContextManager, List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.clock import Clock
from ..domain.exceptions import InvalidInput, NotFound, SlotUnavailable
from ..domain.intervals import overlaps
from ..domain.models import Barber, Booking, BookingStatus, Service, TimeOff
from .slot_finder import BookingStore, TimeOffStore

logger = logging.getLogger(__name__)


class ScheduleWriter(BookingStore, TimeOffStore, Protocol):
    """Protocol describing the write side of the schedule store."""

    def transaction(self) -> AsyncContextManager[None]:
        """Serialise writers; changes are rolled back if the block raises."""

    async def get_barber(self, barber_id: str) -> Optional[Barber]:
        """Return a barber by id, inactive ones included."""

    async def get_services(self, service_ids: Sequence[int]) -> List[Service]:
        """Return the active services among ``service_ids``."""

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Return a booking by id, canceled ones included."""

    async def list_bookings_starting_between(
        self,
        barber_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Booking]:
        """Return non-canceled bookings whose start lies in ``[start, end]``."""

    async def insert_booking(self, booking: Booking) -> None:
        """Persist a new booking."""

    async def update_booking(self, booking: Booking) -> None:
        """Persist changes to an existing booking."""

    async def insert_time_off(self, time_off: TimeOff) -> None:
        """Persist a new time-off period."""


@dataclass
class CancelResult:
    canceled_count: int
    appointments: List[Booking] = field(default_factory=list)


class BookingService:
    """Creates, cancels and blocks appointments for barbers."""

    def __init__(self, store: ScheduleWriter, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    async def create_appointment(
        self,
        *,
        customer_id: str,
        barber_id: str,
        start: DateTime,
        service_ids: Sequence[int],
    ) -> Booking:
        """
        Book one or more services back to back starting at ``start``.

        Args:
            customer_id: Customer the appointment belongs to
            barber_id: Barber performing the services
            start: Appointment start in the shop timezone
            service_ids: Services in the order they are performed

        Returns:
            The persisted booking with status BOOKED

        Raises:
            InvalidInput: If no services are given or start is in the past
            NotFound: If the barber or a service is unknown or inactive
            SlotUnavailable: If the time was taken or blocked meanwhile
        """
        if not service_ids:
            raise InvalidInput("At least one service is required")
        if start < self._clock.now():
            raise InvalidInput(f"Cannot book an appointment in the past ({start})")

        await self._require_barber(barber_id)

        requested = list(dict.fromkeys(service_ids))
        services = await self._store.get_services(requested)
        if len(services) != len(requested):
            raise NotFound("One or more services are invalid or inactive")

        by_id = {service.id: service for service in services}
        ordered = [by_id[service_id] for service_id in requested]
        total_minutes = sum(service.duration_minutes for service in ordered)
        total_price = sum((service.price for service in ordered), Decimal("0"))
        end = start.add(minutes=total_minutes)

        async with self._store.transaction():
            await self._ensure_free(barber_id, start, end)

            booking = Booking(
                id=uuid.uuid4().hex,
                barber_id=barber_id,
                start=start,
                end=end,
                status=BookingStatus.BOOKED,
                customer_id=customer_id,
                service_ids=[service.id for service in ordered],
                total_price=total_price,
            )
            await self._store.insert_booking(booking)

        logger.info(
            "Booked %s with barber %s from %s to %s",
            customer_id,
            barber_id,
            start.to_iso8601_string(),
            end.to_iso8601_string(),
        )
        return booking

    async def update_status(self, booking_id: str, status: BookingStatus | str) -> Booking:
        """
        Move a booking to a new status (arrived, missed, canceled...).

        Reviving a canceled booking re-checks its time like a new booking.

        Raises:
            InvalidInput: If ``status`` is not a known booking status
            NotFound: If the booking does not exist
            SlotUnavailable: If a revived booking's time was taken meanwhile
        """
        try:
            new_status = BookingStatus(status)
        except ValueError as exc:
            raise InvalidInput(f"Unknown booking status: {status!r}") from exc

        async with self._store.transaction():
            booking = await self._store.get_booking(booking_id)
            if booking is None:
                raise NotFound(f"Unknown appointment: {booking_id}")

            if booking.status == BookingStatus.CANCELED and new_status != BookingStatus.CANCELED:
                await self._ensure_free(booking.barber_id, booking.start, booking.end, ignore_id=booking.id)

            booking.status = new_status
            await self._store.update_booking(booking)

        logger.info("Appointment %s is now %s", booking_id, booking.status.value)
        return booking

    async def cancel_range(self, barber_id: str, start: DateTime, end: DateTime) -> CancelResult:
        """
        Cancel every active booking of a barber starting within ``[start, end]``.

        Inactive barbers are accepted so their remaining bookings can be cleared.
        """
        if end <= start:
            raise InvalidInput("End date must be after start date")

        await self._require_barber(barber_id, active_only=False)

        async with self._store.transaction():
            affected = await self._store.list_bookings_starting_between(barber_id, start, end)
            for booking in affected:
                booking.status = BookingStatus.CANCELED
                await self._store.update_booking(booking)

        logger.info("Canceled %d appointments for barber %s", len(affected), barber_id)
        return CancelResult(canceled_count=len(affected), appointments=affected)

    async def add_time_off(
        self,
        barber_id: str,
        start: DateTime,
        end: DateTime,
        reason: Optional[str] = None,
    ) -> TimeOff:
        """Block a period for a barber; existing bookings are left untouched."""
        if end <= start:
            raise InvalidInput("End date must be after start date")

        await self._require_barber(barber_id)

        time_off = TimeOff(
            id=uuid.uuid4().hex,
            barber_id=barber_id,
            start=start,
            end=end,
            reason=reason or None,
        )
        async with self._store.transaction():
            await self._store.insert_time_off(time_off)

        logger.info("Added time off for barber %s: %s - %s", barber_id, start, end)
        return time_off

    async def _require_barber(self, barber_id: str, active_only: bool = True) -> Barber:
        barber = await self._store.get_barber(barber_id)
        if barber is None or (active_only and not barber.active):
            raise NotFound(f"Unknown or inactive barber: {barber_id}")
        return barber

    async def _ensure_free(
        self,
        barber_id: str,
        start: DateTime,
        end: DateTime,
        ignore_id: Optional[str] = None,
    ) -> None:
        # Must run inside the store transaction
        conflicts = await self._store.list_bookings(barber_id, start, end)
        if any(
            other.id != ignore_id and overlaps(start, end, other.start, other.end)
            for other in conflicts
        ):
            raise SlotUnavailable("Time slot is no longer available")

        blocked = await self._store.list_time_off(barber_id, start, end)
        if any(overlaps(start, end, period.start, period.end) for period in blocked):
            raise SlotUnavailable("Barber is not available at that time")

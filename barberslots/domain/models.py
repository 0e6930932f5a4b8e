"""
Domain models for schedules, bookings and slot calculations.
"""

from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pendulum import DateTime

from .intervals import overlaps
from .time_utils import SUNDAY, at_time, format_hhmm, parse_hhmm, shop_weekday


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return overlaps(self.start, self.end, other.start, other.end)

    def contains(self, instant: DateTime) -> bool:
        """Check if an instant lies inside the range (end excluded)."""
        return self.start <= instant < self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class WorkingHours:
    """
    Opening hours of one barber on one weekday.

    ``weekday`` uses 0=Sunday .. 6=Saturday.
    """
    barber_id: str
    weekday: int
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.weekday not in range(7):
            raise ValueError(f"Weekday must be between 0 and 6, got {self.weekday}")
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Working hours must open before they close, got "
                f"{format_hhmm(self.start_time)}-{format_hhmm(self.end_time)}"
            )

    @classmethod
    def from_strings(cls, barber_id: str, weekday: int, start: str, end: str) -> "WorkingHours":
        """Build working hours from ``HH:mm`` strings."""
        return cls(
            barber_id=barber_id,
            weekday=weekday,
            start_time=parse_hhmm(start),
            end_time=parse_hhmm(end),
        )

    def window_for(self, day: date, tz: str) -> TimeRange:
        """Get the working window for a specific calendar date."""
        return TimeRange(start=at_time(day, self.start_time, tz), end=at_time(day, self.end_time, tz))


class BookingStatus(str, Enum):
    BOOKED = "BOOKED"
    ARRIVED = "ARRIVED"
    MISSED = "MISSED"
    CANCELED = "CANCELED"
    COMPLETED = "COMPLETED"


@dataclass
class Booking:
    """An appointment as seen by availability checks."""
    id: str
    barber_id: str
    start: DateTime
    end: DateTime
    status: BookingStatus = BookingStatus.BOOKED
    customer_id: Optional[str] = None
    service_ids: List[int] = field(default_factory=list)
    total_price: Decimal = Decimal("0")

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Booking {self.id} must start before it ends")

    @property
    def blocks_time(self) -> bool:
        """Only non-canceled bookings take part in conflict checks."""
        return self.status != BookingStatus.CANCELED


@dataclass(frozen=True)
class TimeOff:
    """A holiday, sick leave or blocked period for one barber."""
    barber_id: str
    start: DateTime
    end: DateTime
    id: Optional[str] = None
    reason: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Time off {self.start} - {self.end} must start before it ends")


@dataclass(frozen=True)
class Service:
    id: int
    name: str
    duration_minutes: int
    price: Decimal
    active: bool = True


@dataclass(frozen=True)
class Barber:
    id: str
    name: str
    active: bool = True
    service_ids: tuple = ()

    def offers(self, service_id: int) -> bool:
        """An empty service list means the barber offers every service."""
        return not self.service_ids or service_id in self.service_ids


@dataclass(frozen=True)
class CandidateSlot:
    """
    A grid slot for one barber.

    ``start`` lies on the cadence grid, ``end`` is ``start`` plus the
    requested service duration (the conflict window).
    """
    start: DateTime
    end: DateTime
    available: bool

    def format_display(self) -> str:
        """Format: HH:mm – HH:mm (free|taken)"""
        state = "free" if self.available else "taken"
        return f"{self.start.format('HH:mm')} – {self.end.format('HH:mm')} ({state})"


@dataclass
class BarberSlots:
    """All candidate slots of one barber on one day."""
    barber_id: str
    slots: List[CandidateSlot]

    def has_available_slot(self) -> bool:
        return any(slot.available for slot in self.slots)


class DayAvailability(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    NON_WORKING_DAY = "nonWorkingDay"


@dataclass(frozen=True)
class ShopPolicy:
    """
    Shop-wide scheduling rules.

    Defaults: lunch break 14:30-15:00, closed on Sunday, 15 minute grid,
    services may not run past closing time, and a service started on a
    tick before the lunch break may run into it.
    """
    lunch_break_start: time = time(14, 30)
    lunch_break_end: time = time(15, 0)
    closed_weekdays: frozenset = frozenset({SUNDAY})
    default_cadence_minutes: int = 15
    reject_past_closing: bool = True
    lunch_blocks_service: bool = False

    def __post_init__(self):
        if self.lunch_break_start >= self.lunch_break_end:
            raise ValueError("Lunch break must start before it ends")
        invalid_days = [day for day in self.closed_weekdays if day not in range(7)]
        if invalid_days:
            raise ValueError(f"closed_weekdays must be between 0 and 6, got {invalid_days}")
        if self.default_cadence_minutes <= 0:
            raise ValueError("default_cadence_minutes must be greater than zero")

    def lunch_break_on(self, day: date, tz: str) -> TimeRange:
        return TimeRange(
            start=at_time(day, self.lunch_break_start, tz),
            end=at_time(day, self.lunch_break_end, tz),
        )

    def is_closed(self, day: date) -> bool:
        return shop_weekday(day) in self.closed_weekdays

"""
Domain layer - Pure business logic without external dependencies.
"""

from .clock import Clock, FixedClock, SystemClock
from .exceptions import (
    BarberSlotsError,
    InvalidInput,
    NotFound,
    SlotUnavailable,
    UpstreamDataUnavailable,
)
from .intervals import overlaps
from .models import (
    Barber,
    BarberSlots,
    Booking,
    BookingStatus,
    CandidateSlot,
    DayAvailability,
    Service,
    ShopPolicy,
    TimeOff,
    TimeRange,
    WorkingHours,
)
from .slot_generator import SlotGenerator

__all__ = [
    "Barber",
    "BarberSlots",
    "BarberSlotsError",
    "Booking",
    "BookingStatus",
    "CandidateSlot",
    "Clock",
    "DayAvailability",
    "FixedClock",
    "InvalidInput",
    "NotFound",
    "Service",
    "ShopPolicy",
    "SlotGenerator",
    "SlotUnavailable",
    "SystemClock",
    "TimeOff",
    "TimeRange",
    "UpstreamDataUnavailable",
    "WorkingHours",
    "overlaps",
]

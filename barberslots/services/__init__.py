"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import BarberDirectory, ServiceAvailabilityAggregator
from .booking import BookingService, CancelResult, ScheduleWriter
from .slot_finder import BookingStore, SlotFinderService, TimeOffStore, WorkingHoursProvider

__all__ = [
    "BarberDirectory",
    "BookingService",
    "BookingStore",
    "CancelResult",
    "ScheduleWriter",
    "ServiceAvailabilityAggregator",
    "SlotFinderService",
    "TimeOffStore",
    "WorkingHoursProvider",
]

"""
Domain-specific exception hierarchy for the barbershop booking core.
"""


class BarberSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidInput(BarberSlotsError, ValueError):
    """Raised when a request is rejected before any data is read."""


class UpstreamDataUnavailable(BarberSlotsError):
    """Raised when schedule data cannot be fetched or parsed."""


class SlotUnavailable(BarberSlotsError):
    """Raised when a requested slot was taken by the time it is written."""


class NotFound(BarberSlotsError):
    """Raised when a referenced barber, service or appointment does not exist."""

"""
Tests for domain models.
"""

from datetime import time
from decimal import Decimal

import pendulum
import pytest

from barberslots.domain.models import (
    Barber,
    Booking,
    BookingStatus,
    CandidateSlot,
    Service,
    ShopPolicy,
    TimeOff,
    TimeRange,
    WorkingHours,
)

TZ = "Europe/Berlin"


def _dt(value: str):
    return pendulum.parse(value, tz=TZ)


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        start = _dt("2024-11-25 09:00")
        end = _dt("2024-11-25 17:00")

        tr = TimeRange(start=start, end=end)

        assert tr.start == start
        assert tr.end == end

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises ValueError."""
        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeRange(start=_dt("2024-11-25 17:00"), end=_dt("2024-11-25 09:00"))

    def test_overlaps(self):
        """Test overlap detection."""
        tr1 = TimeRange(start=_dt("2024-11-25 09:00"), end=_dt("2024-11-25 12:00"))
        tr2 = TimeRange(start=_dt("2024-11-25 11:00"), end=_dt("2024-11-25 14:00"))
        tr3 = TimeRange(start=_dt("2024-11-25 14:00"), end=_dt("2024-11-25 17:00"))

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)
        # Touching ranges share no minute
        assert not tr2.overlaps(tr3)

    def test_contains_excludes_end(self):
        """The end instant belongs to the next range."""
        lunch = TimeRange(start=_dt("2024-11-25 14:30"), end=_dt("2024-11-25 15:00"))

        assert lunch.contains(_dt("2024-11-25 14:30"))
        assert lunch.contains(_dt("2024-11-25 14:45"))
        assert not lunch.contains(_dt("2024-11-25 15:00"))
        assert not lunch.contains(_dt("2024-11-25 14:15"))


class TestWorkingHours:
    """Tests for WorkingHours model."""

    def test_from_strings(self):
        hours = WorkingHours.from_strings("anna", 1, "10:00", "20:00")

        assert hours.start_time == time(10, 0)
        assert hours.end_time == time(20, 0)

    def test_window_for_day(self):
        """Test getting the working window for a specific day."""
        hours = WorkingHours.from_strings("anna", 1, "09:30", "17:00")

        window = hours.window_for(pendulum.date(2024, 11, 25), TZ)

        assert window.start == _dt("2024-11-25 09:30")
        assert window.end == _dt("2024-11-25 17:00")

    def test_rejects_reversed_hours(self):
        with pytest.raises(ValueError, match="open before they close"):
            WorkingHours.from_strings("anna", 1, "18:00", "09:00")

    def test_rejects_invalid_weekday(self):
        with pytest.raises(ValueError, match="Weekday"):
            WorkingHours.from_strings("anna", 7, "09:00", "18:00")

    def test_rejects_malformed_time(self):
        with pytest.raises(ValueError, match="HH:mm"):
            WorkingHours.from_strings("anna", 1, "9am", "18:00")


class TestBookingAndTimeOff:

    def test_canceled_booking_does_not_block(self):
        booking = Booking(
            id="a1",
            barber_id="anna",
            start=_dt("2024-11-25 12:00"),
            end=_dt("2024-11-25 12:45"),
            status=BookingStatus.CANCELED,
        )

        assert not booking.blocks_time

    @pytest.mark.parametrize(
        "status",
        [BookingStatus.BOOKED, BookingStatus.ARRIVED, BookingStatus.MISSED, BookingStatus.COMPLETED],
    )
    def test_other_statuses_block(self, status):
        booking = Booking(
            id="a1",
            barber_id="anna",
            start=_dt("2024-11-25 12:00"),
            end=_dt("2024-11-25 12:45"),
            status=status,
        )

        assert booking.blocks_time

    def test_booking_requires_positive_length(self):
        with pytest.raises(ValueError):
            Booking(id="a1", barber_id="anna", start=_dt("2024-11-25 12:00"), end=_dt("2024-11-25 12:00"))

    def test_time_off_requires_positive_length(self):
        with pytest.raises(ValueError):
            TimeOff(barber_id="anna", start=_dt("2024-11-25 12:00"), end=_dt("2024-11-25 11:00"))


class TestShopPolicy:

    def test_defaults(self):
        policy = ShopPolicy()

        assert policy.lunch_break_start == time(14, 30)
        assert policy.lunch_break_end == time(15, 0)
        assert policy.default_cadence_minutes == 15
        assert policy.reject_past_closing
        assert not policy.lunch_blocks_service

    def test_sunday_is_closed_by_default(self):
        policy = ShopPolicy()

        assert policy.is_closed(pendulum.date(2024, 11, 24))  # Sunday
        assert not policy.is_closed(pendulum.date(2024, 11, 25))  # Monday
        assert not policy.is_closed(pendulum.date(2024, 11, 30))  # Saturday

    def test_lunch_break_on_day(self):
        lunch = ShopPolicy().lunch_break_on(pendulum.date(2024, 11, 25), TZ)

        assert lunch.start == _dt("2024-11-25 14:30")
        assert lunch.end == _dt("2024-11-25 15:00")

    def test_rejects_reversed_lunch_break(self):
        with pytest.raises(ValueError, match="Lunch break"):
            ShopPolicy(lunch_break_start=time(15, 0), lunch_break_end=time(14, 30))

    def test_rejects_invalid_closed_weekday(self):
        with pytest.raises(ValueError, match="closed_weekdays"):
            ShopPolicy(closed_weekdays=frozenset({7}))


class TestBarberAndSlot:

    def test_barber_without_service_list_offers_everything(self):
        assert Barber(id="anna", name="Anna").offers(42)

    def test_barber_with_service_list(self):
        barber = Barber(id="marco", name="Marco", service_ids=(1, 3))

        assert barber.offers(1)
        assert not barber.offers(2)

    def test_slot_display(self):
        free = CandidateSlot(start=_dt("2024-11-25 11:00"), end=_dt("2024-11-25 11:45"), available=True)
        taken = CandidateSlot(start=_dt("2024-11-25 12:00"), end=_dt("2024-11-25 12:45"), available=False)

        assert free.format_display() == "11:00 – 11:45 (free)"
        assert taken.format_display() == "12:00 – 12:45 (taken)"

    def test_service_price_is_decimal(self):
        service = Service(id=1, name="Haircut", duration_minutes=45, price=Decimal("25.00"))

        assert service.price + Decimal("10.00") == Decimal("35.00")

"""
Tests for the JSON file schedule store.
"""

import asyncio
import json
from decimal import Decimal

import pendulum
import pytest

from barberslots.adapters.json_store import JsonScheduleStore
from barberslots.domain.clock import FixedClock
from barberslots.domain.exceptions import SlotUnavailable, UpstreamDataUnavailable
from barberslots.domain.models import Booking, BookingStatus
from barberslots.services.booking import BookingService

TZ = "Europe/Berlin"


def _dt(value: str):
    return pendulum.parse(value, tz=TZ)


SAMPLE = {
    "barbers": [
        {
            "id": "anna",
            "name": "Anna",
            "services": [],
            "working_hours": [
                {"weekday": 1, "start": "10:00", "end": "20:00"},
                {"weekday": 6, "start": "09:00", "end": "15:00"},
            ],
        },
        {"id": "marco", "name": "Marco", "services": [1], "working_hours": []},
        {"id": "lena", "name": "Lena", "active": False},
    ],
    "services": [
        {"id": 1, "name": "Haircut", "duration_minutes": 45, "price": "25.00"},
        {"id": 2, "name": "Beard trim", "duration_minutes": 15, "price": "10.00", "active": False},
    ],
    "appointments": [
        {"id": "a2", "barber_id": "anna", "start": "2024-11-25T15:00:00", "end": "2024-11-25T15:45:00"},
        {"id": "a1", "barber_id": "anna", "start": "2024-11-25T12:00:00", "end": "2024-11-25T12:45:00"},
        {
            "id": "a3",
            "barber_id": "anna",
            "start": "2024-11-25T17:00:00",
            "end": "2024-11-25T17:45:00",
            "status": "CANCELED",
        },
        {"id": "a4", "barber_id": "anna", "start": "2024-11-26T12:00:00", "end": "2024-11-26T12:45:00"},
    ],
    "time_off": [
        {"id": "t1", "barber_id": "anna", "start": "2024-11-24T18:00:00", "end": "2024-11-25T11:00:00"},
    ],
}


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "schedule.json"
    path.write_text(json.dumps(SAMPLE), encoding="utf-8")
    return path


class TestReadPorts:

    def test_working_hours_lookup(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)

        hours = asyncio.run(store.get_working_hours("anna", 6))

        assert hours.weekday == 6
        assert asyncio.run(store.get_working_hours("anna", 0)) is None
        assert asyncio.run(store.get_working_hours("nobody", 1)) is None

    def test_list_bookings_filters_and_sorts(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)

        bookings = asyncio.run(store.list_bookings("anna", _dt("2024-11-25 00:00"), _dt("2024-11-26 00:00")))

        assert [booking.id for booking in bookings] == ["a1", "a2"]
        assert bookings[0].start == _dt("2024-11-25 12:00")

    def test_list_bookings_returns_copies(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)
        window = (_dt("2024-11-25 00:00"), _dt("2024-11-26 00:00"))

        bookings = asyncio.run(store.list_bookings("anna", *window))
        bookings[0].status = BookingStatus.CANCELED

        assert len(asyncio.run(store.list_bookings("anna", *window))) == 2

    def test_time_off_spanning_midnight(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)

        periods = asyncio.run(store.list_time_off("anna", _dt("2024-11-25 00:00"), _dt("2024-11-26 00:00")))

        assert [period.id for period in periods] == ["t1"]

    def test_active_barbers_for_service(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)

        assert asyncio.run(store.list_active_barbers(1)) == ["anna", "marco"]
        assert asyncio.run(store.list_active_barbers(2)) == []  # inactive service
        assert asyncio.run(store.list_active_barbers(99)) == []

    def test_get_barber_includes_inactive(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)

        assert asyncio.run(store.get_barber("anna")).active is True
        assert asyncio.run(store.get_barber("lena")).active is False
        assert asyncio.run(store.get_barber("ghost")) is None

    def test_offset_timestamps_are_moved_to_shop_timezone(self, tmp_path):
        document = {
            "appointments": [
                {"id": "utc", "barber_id": "anna", "start": "2024-11-25T11:00:00Z", "end": "2024-11-25T11:45:00Z"}
            ]
        }
        path = tmp_path / "schedule.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        store = JsonScheduleStore(path, timezone=TZ)

        bookings = asyncio.run(store.list_bookings("anna", _dt("2024-11-25 00:00"), _dt("2024-11-26 00:00")))

        assert bookings[0].start.hour == 12
        assert bookings[0].start == _dt("2024-11-25 12:00")


class TestLoadErrors:

    def test_missing_file(self, tmp_path):
        store = JsonScheduleStore(tmp_path / "missing.json", timezone=TZ)

        with pytest.raises(UpstreamDataUnavailable, match="not found"):
            asyncio.run(store.get_working_hours("anna", 1))

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "schedule.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(UpstreamDataUnavailable):
            JsonScheduleStore(path, timezone=TZ).list_barbers()

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / "schedule.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(UpstreamDataUnavailable, match="mapping"):
            JsonScheduleStore(path, timezone=TZ).list_barbers()

    @pytest.mark.parametrize(
        "document",
        [
            {"barbers": [{"name": "No id"}]},
            {"barbers": [{"id": "anna", "working_hours": [{"weekday": 1, "start": "20:00", "end": "10:00"}]}]},
            {"services": [{"id": 1, "name": "Haircut", "duration_minutes": 45, "price": "cheap"}]},
            {"appointments": [{"id": "a1", "barber_id": "anna", "start": "2024-11-25T12:00:00",
                               "end": "2024-11-25T12:45:00", "status": "LOST"}]},
        ],
    )
    def test_invalid_documents(self, document):
        with pytest.raises(UpstreamDataUnavailable, match="Invalid schedule data"):
            JsonScheduleStore.from_dict(document, timezone=TZ)

    def test_duplicate_working_hours(self):
        document = {
            "barbers": [
                {
                    "id": "anna",
                    "working_hours": [
                        {"weekday": 1, "start": "10:00", "end": "14:00"},
                        {"weekday": 1, "start": "15:00", "end": "20:00"},
                    ],
                }
            ]
        }

        with pytest.raises(UpstreamDataUnavailable, match="Duplicate working hours"):
            JsonScheduleStore.from_dict(document, timezone=TZ)


class TestTransactions:

    def test_committed_booking_is_written_to_disk(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)
        service = BookingService(store=store, clock=FixedClock(_dt("2024-11-20 09:00")))

        booking = asyncio.run(
            service.create_appointment(
                customer_id="c1", barber_id="anna", start=_dt("2024-11-25 13:00"), service_ids=[1]
            )
        )

        saved = json.loads(data_file.read_text(encoding="utf-8"))
        saved_ids = [entry["id"] for entry in saved["appointments"]]
        assert booking.id in saved_ids
        entry = next(entry for entry in saved["appointments"] if entry["id"] == booking.id)
        assert entry["total_price"] == "25.00"
        assert entry["status"] == "BOOKED"

        reopened = JsonScheduleStore(data_file, timezone=TZ)
        assert asyncio.run(reopened.get_booking(booking.id)).total_price == Decimal("25.00")

    def test_failed_write_rolls_back(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)
        before = data_file.read_text(encoding="utf-8")
        intruder = Booking(
            id="intruder", barber_id="anna", start=_dt("2024-11-25 10:00"), end=_dt("2024-11-25 10:30")
        )

        async def write_then_fail():
            async with store.transaction():
                await store.insert_booking(intruder)
                raise SlotUnavailable("lost the race")

        with pytest.raises(SlotUnavailable):
            asyncio.run(write_then_fail())

        assert asyncio.run(store.get_booking("intruder")) is None
        assert data_file.read_text(encoding="utf-8") == before

    def test_reload_picks_up_external_changes(self, data_file):
        store = JsonScheduleStore(data_file, timezone=TZ)
        assert len(store.list_barbers()) == 3

        document = dict(SAMPLE, barbers=SAMPLE["barbers"][:1])
        data_file.write_text(json.dumps(document), encoding="utf-8")
        store.reload()

        assert [barber.id for barber in store.list_barbers()] == ["anna"]

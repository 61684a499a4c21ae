from __future__ import annotations

import threading
from datetime import date, time

import pytest

from receptionist.adapters.memory_adapter import InMemoryClientAdapter
from receptionist.schemas.booking import BookingStatus
from receptionist.schemas.tenant import ServiceProvider
from receptionist.services.booking import BookingService, parse_date, parse_time
from receptionist.services.errors import Conflict, InvalidArgument, NotFound, SlotTaken

MONDAY = date(2025, 3, 3)
SATURDAY = date(2025, 3, 8)


def _provider(**overrides) -> ServiceProvider:
    data = dict(
        id="dr-lopez",
        tenant_id="clinic",
        name="Dra. Ana López",
        role="Odontóloga",
        working_days=frozenset({0, 1, 2, 3, 4}),
        start_time=time(9, 0),
        end_time=time(12, 0),
        slot_duration_minutes=30,
    )
    data.update(overrides)
    return ServiceProvider(**data)


@pytest.fixture()
def service() -> BookingService:
    return BookingService(InMemoryClientAdapter([_provider()]), tenant_id="clinic")


def test_no_slots_on_non_working_day(service: BookingService):
    assert service.list_available_slots("dr-lopez", SATURDAY) == []


def test_slots_cover_working_hours(service: BookingService):
    slots = service.list_available_slots("dr-lopez", MONDAY)

    assert [slot.time for slot in slots] == [
        time(9, 0),
        time(9, 30),
        time(10, 0),
        time(10, 30),
        time(11, 0),
        time(11, 30),
    ]
    assert all(slot.is_available for slot in slots)


def test_unknown_provider_raises_not_found(service: BookingService):
    with pytest.raises(NotFound):
        service.list_available_slots("dr-nobody", MONDAY)
    with pytest.raises(NotFound):
        service.create_booking("Laura Gomez", "dr-nobody", MONDAY, time(9, 0))


def test_create_marks_slot_taken_and_rejects_duplicates(service: BookingService):
    booking = service.create_booking("Laura Gomez", "dr-lopez", MONDAY, time(9, 30), {"client_id": "CC-1"})

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.confirmation_code.startswith("CITA-")
    assert len(booking.confirmation_code) == len("CITA-XXXX")
    assert booking.id
    assert booking.created_at is not None
    assert booking.provider_name == "Dra. Ana López"
    assert service.exists(MONDAY, time(9, 30), "dr-lopez") is True

    with pytest.raises(Conflict) as excinfo:
        service.create_booking("Someone Else", "dr-lopez", MONDAY, time(9, 30))
    assert isinstance(excinfo.value, SlotTaken)

    taken = [slot for slot in service.list_available_slots("dr-lopez", MONDAY) if not slot.is_available]
    assert [slot.time for slot in taken] == [time(9, 30)]
    assert taken[0].booking_code == booking.confirmation_code


def test_cancel_frees_the_slot(service: BookingService):
    booking = service.create_booking("Laura Gomez", "dr-lopez", MONDAY, time(10, 0))

    cancelled = service.cancel_booking(booking.confirmation_code.lower())

    assert cancelled.status == BookingStatus.CANCELLED
    assert service.exists(MONDAY, time(10, 0), "dr-lopez") is False
    freed = [slot for slot in service.list_available_slots("dr-lopez", MONDAY) if slot.time == time(10, 0)]
    assert freed[0].is_available is True
    assert freed[0].booking_code is None
    assert service.get_booking(booking.confirmation_code).status == BookingStatus.CANCELLED
    rebooked = service.create_booking("Someone Else", "dr-lopez", MONDAY, time(10, 0))
    assert rebooked.confirmation_code != booking.confirmation_code


def test_cancel_unknown_code_raises_not_found(service: BookingService):
    with pytest.raises(NotFound):
        service.cancel_booking("CITA-0000")


@pytest.mark.parametrize("at", [time(8, 30), time(12, 30), time(17, 0)])
def test_create_outside_working_hours_is_rejected(service: BookingService, at: time):
    with pytest.raises(InvalidArgument):
        service.create_booking("Laura Gomez", "dr-lopez", MONDAY, at)


def test_create_on_non_working_day_is_rejected(service: BookingService):
    with pytest.raises(InvalidArgument):
        service.create_booking("Laura Gomez", "dr-lopez", SATURDAY, time(9, 0))


def test_concurrent_creates_for_one_slot_have_one_winner(service: BookingService):
    attempts = 12
    barrier = threading.Barrier(attempts)
    outcomes = []
    outcomes_lock = threading.Lock()

    def attempt(index: int) -> None:
        barrier.wait()
        try:
            service.create_booking(f"Client {index}", "dr-lopez", MONDAY, time(11, 0))
            outcome = "ok"
        except SlotTaken:
            outcome = "taken"
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt, args=(index,)) for index in range(attempts)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("taken") == attempts - 1
    assert len(service.get_bookings_by_date(MONDAY)) == 1


def test_update_status(service: BookingService):
    booking = service.create_booking("Laura Gomez", "dr-lopez", MONDAY, time(9, 0))

    updated = service.update_status(booking.confirmation_code, BookingStatus.COMPLETED)

    assert updated.status == BookingStatus.COMPLETED
    stored = service.get_booking(booking.confirmation_code)
    assert stored.status == BookingStatus.COMPLETED
    assert stored.updated_at is not None


def test_reactivating_onto_a_rebooked_slot_is_rejected(service: BookingService):
    first = service.create_booking("Laura Gomez", "dr-lopez", MONDAY, time(9, 0))
    service.cancel_booking(first.confirmation_code)
    second = service.create_booking("Someone Else", "dr-lopez", MONDAY, time(9, 0))

    with pytest.raises(SlotTaken):
        service.update_status(first.confirmation_code, BookingStatus.CONFIRMED)

    active = [booking for booking in service.get_bookings_by_date(MONDAY) if booking.is_active]
    assert [booking.confirmation_code for booking in active] == [second.confirmation_code]
    assert service.get_booking(first.confirmation_code).status == BookingStatus.CANCELLED


def test_get_booking_validates_code(service: BookingService):
    with pytest.raises(InvalidArgument):
        service.get_booking("  ")
    with pytest.raises(NotFound):
        service.get_booking("CITA-FFFF")


def test_occupancy_has_no_client_data(service: BookingService):
    service.create_booking("Laura Gomez", "dr-lopez", MONDAY, time(10, 30), {"client_id": "CC-1"})
    first = service.create_booking("Pedro Ruiz", "dr-lopez", MONDAY, time(9, 0))
    cancelled = service.create_booking("Marta Diaz", "dr-lopez", MONDAY, time(11, 30))
    service.cancel_booking(cancelled.confirmation_code)

    entries = service.occupancy_for(MONDAY)

    assert [entry.time for entry in entries] == [time(9, 0), time(10, 30)]
    dumped = [entry.model_dump() for entry in entries]
    assert all(set(item) == {"provider_name", "time", "status"} for item in dumped)
    assert "Laura Gomez" not in repr(entries)
    assert first.provider_name == entries[0].provider_name
    # The raw by-date listing still returns cancelled records for data management.
    assert len(service.get_bookings_by_date(MONDAY)) == 3


def test_first_available_skips_weekend(service: BookingService):
    found = service.first_available(SATURDAY, days_to_search=7)

    assert found is not None
    assert found.date == date(2025, 3, 10)
    assert found.provider.id == "dr-lopez"
    assert found.times == [time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0)]


def test_first_available_returns_none_without_working_days():
    service = BookingService(InMemoryClientAdapter([_provider(working_days=frozenset())]))

    assert service.first_available(MONDAY, days_to_search=14) is None


def test_client_id_lookups(service: BookingService):
    older = service.create_booking("Laura Gomez", "dr-lopez", MONDAY, time(9, 0), {"client_id": "CC-1"})
    newer = service.create_booking("Laura Gomez", "dr-lopez", date(2025, 3, 4), time(9, 0), {"client_id": "CC-1"})

    assert [b.id for b in service.get_bookings_by_client_id("cc-1")] == [newer.id, older.id]
    assert service.get_booking_by_client_id("CC-1").id == newer.id

    service.cancel_booking(newer.confirmation_code)
    assert service.get_booking_by_client_id("CC-1").id == older.id
    assert service.get_booking_by_client_id("CC-404") is None


def test_delete_booking_removes_record(service: BookingService):
    booking = service.create_booking("Laura Gomez", "dr-lopez", MONDAY, time(9, 0))

    assert service.delete_booking(booking.id) is True
    assert service.delete_booking(booking.id) is False
    with pytest.raises(NotFound):
        service.get_booking(booking.confirmation_code)


def test_parse_helpers():
    assert parse_date(" 2025-03-03 ") == MONDAY
    assert parse_time("09:30") == time(9, 30)
    with pytest.raises(InvalidArgument):
        parse_date("03/03/2025")
    with pytest.raises(InvalidArgument):
        parse_time("9.30am")

from datetime import date

import pytest

import availability
from conftest import make_room
from errors import NotFound
from models import Booking, BookingStatus, DateSlotOverride, Room

SUNDAY = date(2025, 6, 1)
MONDAY = date(2025, 6, 2)


def test_weekday_counts_from_sunday():
    assert availability.weekday(SUNDAY) == 0
    assert availability.weekday(date(2025, 6, 7)) == 6


def test_override_wins_over_defaults():
    room = Room(id=1, title="R", base_price=35, default_time_slots=[{"time": "10:00", "price": 35}])
    override = DateSlotOverride(
        room_id=1,
        slot_date=SUNDAY,
        slots=[{"time": "12:00", "price": 30, "available": True}, {"time": "14:00", "price": 30, "available": False}],
    )
    day = availability.day_availability(room, SUNDAY, override)
    assert [(s.time, s.price, s.available) for s in day.slots] == [("12:00", 30, True), ("14:00", 30, False)]


def test_empty_override_closes_the_day():
    room = Room(id=1, title="R", base_price=35, default_time_slots=[{"time": "10:00", "price": 35}])
    override = DateSlotOverride(room_id=1, slot_date=SUNDAY, slots=[])
    assert availability.day_availability(room, SUNDAY, override).slots == []


def test_defaults_used_without_override():
    room = Room(id=1, title="R", base_price=35, default_time_slots=[{"time": "10:00", "price": 35}])
    day = availability.day_availability(room, SUNDAY)
    assert [(s.time, s.price, s.available) for s in day.slots] == [("10:00", 35, True)]


def test_unconfigured_room_gets_fallback_list():
    room = Room(id=1, title="Demo", base_price=0)
    slots = availability.day_availability(room, SUNDAY).slots
    assert [s.time for s in slots] == list(availability.FALLBACK_TIMES)
    assert [s.price for s in slots] == list(availability.FALLBACK_PRICES)


def test_fallback_uses_base_price_when_set():
    room = Room(id=1, title="Demo", base_price=30)
    assert {s.price for s in availability.day_availability(room, SUNDAY).slots} == {30}


def test_non_operating_day_has_no_default_slots():
    room = Room(id=1, title="R", base_price=35, operating_days=[1, 2, 3])
    assert availability.day_availability(room, SUNDAY).slots == []
    assert availability.day_availability(room, MONDAY).slots


def test_override_opens_a_non_operating_day():
    room = Room(id=1, title="R", base_price=35, operating_days=[1])
    override = DateSlotOverride(room_id=1, slot_date=SUNDAY, slots=[{"time": "15:00", "price": 35}])
    assert [s.time for s in availability.day_availability(room, SUNDAY, override).slots] == ["15:00"]


def test_booked_time_is_unavailable():
    room = Room(id=1, title="R", base_price=35, default_time_slots=[{"time": "10:00", "price": 35}, {"time": "19:00", "price": 42}])
    day = availability.day_availability(room, SUNDAY, booked={"19:00"})
    assert [s.available for s in day.slots] == [True, False]


def _overflow_room(days=()):
    return Room(
        id=1,
        title="R",
        base_price=35,
        default_time_slots=[{"time": "10:00", "price": 35}, {"time": "19:00", "price": 42}],
        overflow_slot={"time": "21:30", "price": 45, "days": list(days)},
    )


def test_overflow_hidden_while_any_slot_is_open():
    assert availability.day_availability(_overflow_room(), SUNDAY, booked={"10:00"}).overflow_slot is None


def test_overflow_appears_when_day_is_full():
    day = availability.day_availability(_overflow_room(), SUNDAY, booked={"10:00", "19:00"})
    assert day.overflow_slot is not None
    assert (day.overflow_slot.time, day.overflow_slot.price) == ("21:30", 45)
    assert day.overflow_slot.available and day.overflow_slot.overflow


def test_slots_closed_by_venue_count_as_taken_for_overflow():
    override = DateSlotOverride(room_id=1, slot_date=SUNDAY, slots=[{"time": "10:00", "price": 35, "available": False}])
    assert availability.day_availability(_overflow_room(), SUNDAY, override).overflow_slot is not None


def test_overflow_respects_weekdays():
    room = _overflow_room(days=[5, 6])
    assert availability.day_availability(room, SUNDAY, booked={"10:00", "19:00"}).overflow_slot is None
    saturday = date(2025, 6, 7)
    assert availability.day_availability(room, saturday, booked={"10:00", "19:00"}).overflow_slot is not None


def test_overflow_needs_regular_slots():
    override = DateSlotOverride(room_id=1, slot_date=SUNDAY, slots=[])
    assert availability.day_availability(_overflow_room(), SUNDAY, override).overflow_slot is None


def test_booked_overflow_slot_is_unavailable():
    day = availability.day_availability(_overflow_room(), SUNDAY, booked={"10:00", "19:00", "21:30"})
    assert day.overflow_slot is not None
    assert not day.overflow_slot.available


def test_find_slot_checks_overflow_last():
    day = availability.day_availability(_overflow_room(), SUNDAY, booked={"10:00", "19:00"})
    assert availability.find_slot(day, "19:00").overflow is False
    assert availability.find_slot(day, "21:30").overflow is True
    assert availability.find_slot(day, "23:00") is None


async def test_get_slots_reads_bookings_and_overrides(session):
    room = await make_room(session)
    room_id = room.id
    session.add(Booking(room_id=room_id, booking_date=SUNDAY, slot_time="10:00", booking_code="UNL-AAAAAA"))
    session.add(
        Booking(
            room_id=room_id,
            booking_date=SUNDAY,
            slot_time="19:00",
            booking_code="UNL-BBBBBB",
            status=BookingStatus.cancelled,
        )
    )
    await session.commit()

    day = await availability.get_slots(session, room_id, SUNDAY)
    assert [(s.time, s.available) for s in day.slots] == [("10:00", False), ("19:00", True)]
    assert await availability.booked_times(session, room_id, SUNDAY) == {"10:00"}

    session.add(DateSlotOverride(room_id=room_id, slot_date=SUNDAY, slots=[{"time": "12:00", "price": 30}]))
    await session.commit()
    day = await availability.get_slots(session, room_id, SUNDAY)
    assert [(s.time, s.available) for s in day.slots] == [("12:00", True)]


async def test_get_slots_for_unknown_room(session):
    with pytest.raises(NotFound):
        await availability.get_slots(session, 404, SUNDAY)


def test_resolved_slots_carry_group_tables():
    room = Room(
        id=1,
        title="R",
        base_price=35,
        price_per_group=[{"players": 4, "price": 100}],
        default_time_slots=[{"time": "10:00", "price": 35}],
        overflow_slot={"time": "21:30", "price": 45, "price_per_group": [{"players": 4, "price": 150}], "days": []},
    )
    defaults = availability.day_availability(room, SUNDAY)
    assert [(g.players, g.price) for g in defaults.slots[0].price_per_group] == [(4, 100)]

    override = DateSlotOverride(
        room_id=1,
        slot_date=SUNDAY,
        slots=[{"time": "10:00", "price": 35, "price_per_group": [{"players": 4, "price": 70}]}],
    )
    day = availability.day_availability(room, SUNDAY, override, booked={"10:00"})
    assert [(g.players, g.price) for g in day.slots[0].price_per_group] == [(4, 70)]
    assert [(g.players, g.price) for g in day.overflow_slot.price_per_group] == [(4, 150)]


def test_slots_are_listed_by_time_of_day():
    override = DateSlotOverride(
        room_id=1,
        slot_date=SUNDAY,
        slots=[
            {"time": "1:30", "price": 30},
            {"time": "19:00", "price": 30},
            {"time": "7:30 PM", "price": 30},
            {"time": "10:00", "price": 30},
            {"time": "12:00 AM", "price": 30},
        ],
    )
    room = Room(id=1, title="R", base_price=35)
    times = [s.time for s in availability.day_availability(room, SUNDAY, override).slots]
    assert times == ["10:00", "19:00", "7:30 PM", "12:00 AM", "1:30"]


def test_slot_sort_key_puts_unparseable_labels_last():
    assert availability.slot_sort_key("sunset") > availability.slot_sort_key("5:00")

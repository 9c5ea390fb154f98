from datetime import date, timedelta

import pytest

import availability
import slot_admin
from conftest import OTHER_VENUE_ID, VENUE_ID, make_room
from errors import AuthorizationFailure, InvalidConfiguration
from schemas import GroupPrice, OverflowRule, RoomCreate, RoomUpdate, SlotInput

DAY = date(2025, 6, 1)


async def test_set_slots_replaces_the_day(session, room):
    room_id = room.id
    await slot_admin.set_slots(session, VENUE_ID, room_id, DAY, [SlotInput(time="12:00", price=30)])
    override = await slot_admin.set_slots(
        session, VENUE_ID, room_id, DAY, [SlotInput(time="13:00", price=32), SlotInput(time="15:00")]
    )
    assert [(s["time"], s["price"]) for s in override.slots] == [("13:00", 32), ("15:00", 35)]

    day = await availability.get_slots(session, room_id, DAY)
    assert [s.time for s in day.slots] == ["13:00", "15:00"]


async def test_empty_slot_list_closes_the_day(session, room):
    room_id = room.id
    await slot_admin.set_slots(session, VENUE_ID, room_id, DAY, [])
    assert (await availability.get_slots(session, room_id, DAY)).slots == []


async def test_discount_derives_slot_price(session, room):
    override = await slot_admin.set_slots(session, VENUE_ID, room.id, DAY, [SlotInput(time="10:00", discount=20)])
    assert override.slots[0]["price"] == 28


async def test_duplicate_times_rejected(session, room):
    room_id = room.id
    with pytest.raises(InvalidConfiguration) as exc_info:
        await slot_admin.set_slots(
            session, VENUE_ID, room_id, DAY, [SlotInput(time="10:00", price=30), SlotInput(time=" 10:00", price=31)]
        )
    assert exc_info.value.details["duplicates"] == ["10:00"]
    assert await availability.load_override(session, room_id, DAY) is None


@pytest.mark.parametrize(
    "slot",
    [
        SlotInput(time="10:00", price=-1),
        SlotInput(time="   ", price=30),
        SlotInput(time="10:00", discount=120),
        SlotInput(time="10:00", price=30, price_per_group=[GroupPrice(players=0, price=10)]),
    ],
)
async def test_invalid_slots_rejected(session, room, slot):
    with pytest.raises(InvalidConfiguration):
        await slot_admin.set_slots(session, VENUE_ID, room.id, DAY, [slot])


async def test_foreign_venue_cannot_edit_slots(session, room):
    with pytest.raises(AuthorizationFailure):
        await slot_admin.set_slots(session, OTHER_VENUE_ID, room.id, DAY, [SlotInput(time="10:00")])


async def test_copy_to_range_writes_each_following_day(session, room):
    room_id = room.id
    result = await slot_admin.copy_to_range(session, VENUE_ID, room_id, DAY, [SlotInput(time="11:00", price=30)])

    assert result.requested == 7
    assert result.updated == 7
    assert result.updated_dates == [DAY + timedelta(days=n) for n in range(1, 8)]
    assert result.failed_dates == []
    assert await availability.load_override(session, room_id, DAY) is None
    assert [s.time for s in (await availability.get_slots(session, room_id, DAY + timedelta(days=7))).slots] == ["11:00"]


async def test_copy_to_range_reports_partial_failure(session, room, monkeypatch):
    room_id = room.id
    bad_day = DAY + timedelta(days=3)
    save = slot_admin._save_override

    async def flaky_save(session, room_id, on_date, slots):
        if on_date == bad_day:
            raise InvalidConfiguration("storage refused the write")
        return await save(session, room_id, on_date, slots)

    monkeypatch.setattr(slot_admin, "_save_override", flaky_save)
    result = await slot_admin.copy_to_range(session, VENUE_ID, room_id, DAY, [SlotInput(time="11:00")], days=5)

    assert result.requested == 5
    assert result.updated == 4
    assert result.failed_dates == [bad_day]
    assert await availability.load_override(session, room_id, bad_day) is None


async def test_copy_to_range_requires_positive_days(session, room):
    with pytest.raises(InvalidConfiguration):
        await slot_admin.copy_to_range(session, VENUE_ID, room.id, DAY, [SlotInput(time="11:00")], days=0)


async def test_overflow_rule_set_and_cleared(session, room):
    room = await slot_admin.set_overflow(
        session, VENUE_ID, room.id, OverflowRule(time="21:30", price=45, days=[6, 5, 5])
    )
    assert room.overflow_slot == {"time": "21:30", "price": 45.0, "price_per_group": None, "days": [5, 6]}

    room = await slot_admin.clear_overflow(session, VENUE_ID, room.id)
    assert room.overflow_slot is None


async def test_overflow_rejects_bad_weekday(session, room):
    with pytest.raises(InvalidConfiguration):
        await slot_admin.set_overflow(session, VENUE_ID, room.id, OverflowRule(time="21:30", price=45, days=[7]))


async def test_create_room_normalizes_configuration(session):
    room = await slot_admin.create_room(
        session,
        VENUE_ID,
        RoomCreate(
            title="  Lab 7 ",
            base_price=30,
            price_per_group=[GroupPrice(players=4, price=100), GroupPrice(players=2, price=55)],
            operating_days=[6, 0, 6],
        ),
    )
    assert room.title == "Lab 7"
    assert room.company_id == VENUE_ID
    assert [entry["players"] for entry in room.price_per_group] == [2, 4]
    assert room.operating_days == [0, 6]


async def test_create_room_rejects_duplicate_group_sizes(session):
    with pytest.raises(InvalidConfiguration):
        await slot_admin.create_room(
            session,
            VENUE_ID,
            RoomCreate(title="R", price_per_group=[GroupPrice(players=2, price=55), GroupPrice(players=2, price=60)]),
        )


async def test_update_room_is_validated_before_writing(session, room):
    room_id = room.id
    with pytest.raises(InvalidConfiguration):
        await slot_admin.update_room(session, VENUE_ID, room_id, RoomUpdate(title="New", players_min=8))

    room = await availability.get_room(session, room_id)
    assert room.title == "The Vault"

    room = await slot_admin.update_room(session, VENUE_ID, room_id, RoomUpdate(base_price=40, players_max=8))
    assert (room.base_price, room.players_max) == (40, 8)


async def test_deactivate_room(session):
    room = await make_room(session)
    room = await slot_admin.deactivate_room(session, VENUE_ID, room.id)
    assert room.is_active is False

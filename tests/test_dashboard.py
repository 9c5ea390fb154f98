from datetime import date

import dashboard
import lifecycle
import orchestrator
from conftest import OTHER_VENUE_ID, VENUE_ID, make_room
from identity import Actor
from models import Booking, BookingSource, BookingStatus
from schemas import CustomerBookingCreate, ExternalBlockCreate

DAY = date(2025, 6, 1)


def test_display_name():
    assert dashboard.display_name(Booking(player_name="Dana", booking_code="x", room_id=1, booking_date=DAY, slot_time="t")) == "Dana"
    assert dashboard.display_name(Booking(source=BookingSource.external, booking_code="x", room_id=1, booking_date=DAY, slot_time="t")) == "External"
    assert dashboard.display_name(Booking(user_id=7, booking_code="x", room_id=1, booking_date=DAY, slot_time="t")) == "Player #7"


async def test_venue_day_view_and_stats(session, room, sent):
    room_id = room.id
    await make_room(session, title="Elsewhere", company_id=OTHER_VENUE_ID)

    app_booking = await orchestrator.customer_book(
        session, 101, CustomerBookingCreate(room_id=room_id, booking_date=DAY, time="19:00", players=4)
    )
    await orchestrator.venue_external_block(
        session,
        VENUE_ID,
        ExternalBlockCreate(room_id=room_id, booking_date=DAY, time="10:00", external_source="partner"),
    )

    rows = await dashboard.venue_bookings(session, VENUE_ID, DAY)
    assert [(r.slot_time, r.display_name, r.room_title) for r in rows] == [
        ("10:00", "External", "The Vault"),
        ("19:00", "Player #101", "The Vault"),
    ]

    stats = await dashboard.day_stats(session, VENUE_ID, DAY)
    assert stats.total_bookings == 2
    assert stats.unlocked_bookings == 1
    assert stats.external_bookings == 1
    assert stats.revenue == 120
    assert stats.total_slots == 2
    assert stats.available_slots == 0
    assert stats.active_rooms == 1

    await lifecycle.cancel(session, Actor(company_id=VENUE_ID), app_booking.id)
    stats = await dashboard.day_stats(session, VENUE_ID, DAY)
    assert (stats.total_bookings, stats.revenue, stats.available_slots) == (1, 0, 1)


async def test_user_bookings_filter_by_status(session, room):
    room_id = room.id
    first = await orchestrator.customer_book(
        session, 101, CustomerBookingCreate(room_id=room_id, booking_date=DAY, time="19:00", players=4)
    )
    await orchestrator.customer_book(
        session, 101, CustomerBookingCreate(room_id=room_id, booking_date=DAY, time="10:00", players=2)
    )
    await lifecycle.cancel(session, Actor(user_id=101), first.id)

    assert [b.slot_time for b in await dashboard.user_bookings(session, 101)] == ["10:00", "19:00"]
    upcoming = await dashboard.user_bookings(session, 101, BookingStatus.upcoming)
    assert [b.slot_time for b in upcoming] == ["10:00"]

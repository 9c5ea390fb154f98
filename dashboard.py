"""Read-side views for venue operators and customers."""

from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from availability import day_availability, load_override
from models import Booking, BookingSource, BookingStatus, Room
from schemas import BookingRead, DayStats, VenueBookingRow


def display_name(booking: Booking) -> str:
    if booking.player_name:
        return booking.player_name
    if booking.source == BookingSource.external:
        return "External"
    if booking.user_id is not None:
        return f"Player #{booking.user_id}"
    return "Walk-in"


async def company_rooms(session: AsyncSession, company_id: int) -> List[Room]:
    statement = select(Room).where(Room.company_id == company_id).order_by(Room.id)
    return list((await session.execute(statement)).scalars().all())


async def _bookings_on(session: AsyncSession, room_id: int, on_date: date) -> List[Booking]:
    statement = select(Booking).where(Booking.room_id == room_id, Booking.booking_date == on_date)
    return list((await session.execute(statement)).scalars().all())


async def venue_bookings(session: AsyncSession, company_id: int, on_date: date) -> List[VenueBookingRow]:
    rows = []
    for room in await company_rooms(session, company_id):
        for booking in await _bookings_on(session, room.id, on_date):
            rows.append(
                VenueBookingRow(
                    **BookingRead.model_validate(booking).model_dump(),
                    room_title=room.title,
                    display_name=display_name(booking),
                )
            )
    return sorted(rows, key=lambda row: row.slot_time)


async def day_stats(session: AsyncSession, company_id: int, on_date: date) -> DayStats:
    stats = DayStats(
        total_bookings=0,
        unlocked_bookings=0,
        external_bookings=0,
        revenue=0,
        total_slots=0,
        available_slots=0,
        active_rooms=0,
    )
    for room in await company_rooms(session, company_id):
        if not room.is_active:
            continue
        stats.active_rooms += 1

        active = [b for b in await _bookings_on(session, room.id, on_date) if b.status != BookingStatus.cancelled]
        stats.total_bookings += len(active)
        stats.unlocked_bookings += sum(1 for b in active if b.source == BookingSource.unlocked)
        stats.external_bookings += sum(1 for b in active if b.source == BookingSource.external)
        stats.revenue += sum(b.total or 0 for b in active)

        override = await load_override(session, room.id, on_date)
        availability = day_availability(room, on_date, override, {b.slot_time for b in active})
        stats.total_slots += len(availability.slots)
        stats.available_slots += sum(1 for slot in availability.slots if slot.available)

    return stats


async def user_bookings(
    session: AsyncSession, user_id: int, status: Optional[BookingStatus] = None
) -> List[Booking]:
    statement = select(Booking).where(Booking.user_id == user_id)
    if status is not None:
        statement = statement.where(Booking.status == status)
    statement = statement.order_by(col(Booking.booking_date), col(Booking.slot_time))
    return list((await session.execute(statement)).scalars().all())

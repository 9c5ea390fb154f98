"""
One active booking per (room, date, time).

The check below gives callers a readable conflict naming the booking that
holds the slot. The partial unique index on ``bookings`` is what actually
closes the race: if two writers both pass the check, the second insert (or
reschedule update) fails at commit and is reported as the same conflict.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from availability import find_slot, get_slots
from errors import InvalidRequest, SlotConflict
from models import Booking, BookingStatus, Room
from schemas import ResolvedSlot

logger = logging.getLogger(__name__)


async def find_active_booking(
    session: AsyncSession,
    room_id: int,
    on_date: date,
    time: str,
    exclude_id: Optional[int] = None,
) -> Optional[Booking]:
    statement = select(Booking).where(
        Booking.room_id == room_id,
        Booking.booking_date == on_date,
        Booking.slot_time == time,
        col(Booking.status) != BookingStatus.cancelled,
    )
    if exclude_id is not None:
        statement = statement.where(Booking.id != exclude_id)
    result = await session.execute(statement)
    return result.scalars().first()


async def ensure_free(
    session: AsyncSession,
    room_id: int,
    on_date: date,
    time: str,
    exclude_id: Optional[int] = None,
) -> None:
    holder = await find_active_booking(session, room_id, on_date, time, exclude_id)
    if holder is not None:
        logger.warning(
            "Slot conflict on room %s %s %s: held by booking %s", room_id, on_date, time, holder.id
        )
        raise SlotConflict(room_id, on_date, time, existing_booking_id=holder.id)


async def require_offered_slot(
    session: AsyncSession,
    room: Room,
    on_date: date,
    time: str,
    exclude_id: Optional[int] = None,
) -> ResolvedSlot:
    """
    The slot customers see for ``time`` that day, if they can take it.

    A time that is not listed, or that the venue closed, is not offered.
    A listed time held by another booking is a conflict.
    """
    slot = find_slot(await get_slots(session, room.id, on_date), time)
    if slot is not None and not slot.available:
        holder = await find_active_booking(session, room.id, on_date, time, exclude_id)
        if holder is not None:
            raise SlotConflict(room.id, on_date, time, existing_booking_id=holder.id)
        slot = None
    if slot is None:
        raise InvalidRequest(
            "This time is not offered on that date",
            details={"room_id": room.id, "date": str(on_date), "time": time},
        )
    return slot


async def conflict_from_integrity_error(
    session: AsyncSession,
    room_id: int,
    on_date: date,
    time: str,
    exclude_id: Optional[int] = None,
) -> Optional[SlotConflict]:
    """After a failed commit: the conflict it represents, if any. Rolls back."""
    await session.rollback()
    holder = await find_active_booking(session, room_id, on_date, time, exclude_id)
    if holder is None:
        return None
    logger.warning(
        "Slot conflict on room %s %s %s caught by unique index (holder %s)", room_id, on_date, time, holder.id
    )
    return SlotConflict(room_id, on_date, time, existing_booking_id=holder.id)


async def reserve(session: AsyncSession, booking: Booking) -> Booking:
    """Insert ``booking`` if its slot is free; raise :class:`SlotConflict` if not."""
    room_id, on_date, time = booking.room_id, booking.booking_date, booking.slot_time

    await ensure_free(session, room_id, on_date, time)

    session.add(booking)
    try:
        await session.commit()
    except IntegrityError:
        conflict = await conflict_from_integrity_error(session, room_id, on_date, time)
        if conflict is None:
            raise
        raise conflict

    await session.refresh(booking)
    return booking

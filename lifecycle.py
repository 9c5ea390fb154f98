"""
Booking lifecycle.

    upcoming --scan--> completed
    upcoming --cancel--> cancelled
    upcoming --reschedule--> upcoming (new date/time)

``completed`` and ``cancelled`` are terminal. Every transition is a single
compare-and-set UPDATE guarded by ``status = 'upcoming'``, so the status
check and the write cannot be separated by a concurrent operation. Rows are
never deleted; a cancelled booking stays for reporting and stops holding
its slot.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

import alerts
from availability import ensure_accepting, get_room
from booking_guard import conflict_from_integrity_error, ensure_free, require_offered_slot
from errors import AuthorizationFailure, InvalidRequest, InvalidTransition, NotFound
from identity import Actor
from models import Booking, BookingStatus
from notifications import notify

logger = logging.getLogger(__name__)


async def get_booking(session: AsyncSession, booking_id: int) -> Booking:
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking", booking_id)
    return booking


async def get_by_code(session: AsyncSession, booking_code: str) -> Booking:
    code = booking_code.strip().upper()
    statement = select(Booking).where(Booking.booking_code == code)
    booking = (await session.execute(statement)).scalars().first()
    if booking is None:
        raise NotFound("Booking code", code)
    return booking


async def owning_company(session: AsyncSession, booking: Booking) -> Optional[int]:
    """The booking's own company, falling back to the room's owner."""
    if booking.company_id is not None:
        return booking.company_id
    room = await get_room(session, booking.room_id)
    return room.company_id


async def acts_for_venue(session: AsyncSession, actor: Actor, booking: Booking) -> bool:
    return actor.company_id is not None and await owning_company(session, booking) == actor.company_id


async def guard_can_manage(session: AsyncSession, actor: Actor, booking: Booking) -> None:
    if await acts_for_venue(session, actor, booking):
        return
    if actor.user_id is not None and booking.user_id == actor.user_id:
        return
    logger.warning("Actor %s denied access to booking %s", actor, booking.id)
    raise AuthorizationFailure("Access denied: booking does not belong to you")


async def _compare_and_set(session: AsyncSession, booking_id: int, **values) -> bool:
    statement = (
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == BookingStatus.upcoming)
        .values(**values)
    )
    result = await session.execute(statement)
    return result.rowcount == 1


async def _lost_race(session: AsyncSession, booking: Booking, action: str) -> InvalidTransition:
    # Another request moved the booking out of upcoming first
    await session.rollback()
    await session.refresh(booking)
    logger.warning("Booking %s changed to %s before %s", booking.id, booking.status.value, action)
    return InvalidTransition(booking.id, booking.status, action)


async def cancel(session: AsyncSession, actor: Actor, booking_id: int) -> Booking:
    """Cancel an upcoming booking. Cancelling twice returns the booking unchanged."""
    booking = await get_booking(session, booking_id)
    await guard_can_manage(session, actor, booking)

    if booking.status == BookingStatus.cancelled:
        return booking
    if booking.status != BookingStatus.upcoming:
        logger.warning("Refusing to cancel booking %s in status %s", booking_id, booking.status.value)
        raise InvalidTransition(booking_id, booking.status, "cancel")

    room_id, on_date, time = booking.room_id, booking.booking_date, booking.slot_time
    if not await _compare_and_set(session, booking_id, status=BookingStatus.cancelled):
        error = await _lost_race(session, booking, "cancel")
        if booking.status == BookingStatus.cancelled:
            return booking
        raise error

    waiting = await alerts.release_slot(session, room_id, on_date, time)
    await session.commit()
    await session.refresh(booking)

    logger.info("Booking %s cancelled; slot %s %s %s is free", booking_id, room_id, on_date, time)
    await notify("booking_cancelled", booking_id=booking_id, room_id=room_id, date=str(on_date), time=time)
    if waiting:
        await notify("slot_available", room_id=room_id, date=str(on_date), time=time, user_ids=waiting)
    return booking


async def reschedule(
    session: AsyncSession,
    actor: Actor,
    booking_id: int,
    new_date: date,
    new_time: str,
) -> Booking:
    """
    Move an upcoming booking to another slot of the same room.

    The owning venue may pick any time label. A customer is held to the
    slots offered that day, like at checkout.

    The date/time change is one UPDATE: the booking never holds zero or two
    slots, and the old slot is free the moment it commits.
    """
    booking = await get_booking(session, booking_id)
    await guard_can_manage(session, actor, booking)

    if booking.status != BookingStatus.upcoming:
        raise InvalidTransition(booking_id, booking.status, "reschedule")

    new_time = (new_time or "").strip()
    if not new_time:
        raise InvalidRequest("A new time is required")

    room_id, old_date, old_time = booking.room_id, booking.booking_date, booking.slot_time
    if (new_date, new_time) == (old_date, old_time):
        return booking

    if not await acts_for_venue(session, actor, booking):
        room = await get_room(session, room_id)
        ensure_accepting(room)
        await require_offered_slot(session, room, new_date, new_time, exclude_id=booking_id)
    await ensure_free(session, room_id, new_date, new_time, exclude_id=booking_id)

    try:
        moved = await _compare_and_set(session, booking_id, booking_date=new_date, slot_time=new_time)
        if moved:
            waiting = await alerts.release_slot(session, room_id, old_date, old_time)
            await session.commit()
    except IntegrityError:
        conflict = await conflict_from_integrity_error(session, room_id, new_date, new_time, exclude_id=booking_id)
        if conflict is None:
            raise
        raise conflict

    if not moved:
        raise await _lost_race(session, booking, "reschedule")

    await session.refresh(booking)
    logger.info(
        "Booking %s rescheduled from %s %s to %s %s", booking_id, old_date, old_time, new_date, new_time
    )
    await notify(
        "booking_rescheduled",
        booking_id=booking_id,
        room_id=room_id,
        date=str(new_date),
        time=new_time,
    )
    if waiting:
        await notify("slot_available", room_id=room_id, date=str(old_date), time=old_time, user_ids=waiting)
    return booking


async def complete_by_code(session: AsyncSession, company_id: int, booking_code: str) -> Booking:
    """
    Validate a QR scan at the venue.

    Ownership is checked before status so a foreign venue learns nothing
    about the booking. A used or cancelled code fails with
    :class:`InvalidTransition`, whose ``reason`` tells the two apart.
    """
    booking = await get_by_code(session, booking_code)

    if await owning_company(session, booking) != company_id:
        logger.warning("Company %s scanned a code belonging to another venue", company_id)
        raise AuthorizationFailure("This booking is not for your venue")

    if booking.status != BookingStatus.upcoming:
        logger.warning("Scan of booking %s rejected: %s", booking.id, booking.status.value)
        raise InvalidTransition(booking.id, booking.status, "complete")

    booking_id = booking.id
    if not await _compare_and_set(session, booking_id, status=BookingStatus.completed):
        raise await _lost_race(session, booking, "complete")
    await session.commit()
    await session.refresh(booking)

    logger.info("Booking %s validated at the venue", booking_id)
    return booking


async def update_notes(session: AsyncSession, company_id: int, booking_id: int, notes: str) -> Booking:
    booking = await get_booking(session, booking_id)
    if await owning_company(session, booking) != company_id:
        raise AuthorizationFailure("Access denied: booking does not belong to your company")

    booking.notes = notes.strip()
    session.add(booking)
    await session.commit()
    await session.refresh(booking)
    return booking

"""
Booking entry points: customer checkout, venue manual booking and external
blocks. Each one prices the slot, runs the conflict guard and inserts the
booking in one commit.
"""

import logging
import secrets
import string

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

import pricing
from availability import ensure_accepting, find_slot, get_room, get_slots
from booking_guard import require_offered_slot, reserve
from config import BOOKING_CODE_LENGTH
from errors import InvalidRequest
from models import Booking, BookingSource, PaymentStatus, Room
from notifications import notify
from schemas import CustomerBookingCreate, ExternalBlockCreate, VenueBookingCreate
from slot_admin import guard_company_owns_room

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_ATTEMPTS = 5

APP_PREFIX = "UNL"
EXTERNAL_PREFIX = "EXT"


def generate_booking_code(prefix: str = APP_PREFIX, length: int = BOOKING_CODE_LENGTH) -> str:
    """Short, legible code printed on tickets and encoded in the QR."""
    return f"{prefix}-" + "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


async def allocate_booking_code(session: AsyncSession, prefix: str = APP_PREFIX) -> str:
    for _ in range(CODE_ATTEMPTS):
        code = generate_booking_code(prefix)
        statement = select(Booking.id).where(Booking.booking_code == code)
        if (await session.execute(statement)).first() is None:
            return code
    raise RuntimeError("Could not allocate a unique booking code")


def _check_group_size(room: Room, players: int) -> None:
    if not room.players_min <= players <= room.players_max:
        raise InvalidRequest(
            f"Group size must be between {room.players_min} and {room.players_max}",
            details={"players": players, "min": room.players_min, "max": room.players_max},
        )


def _time_label(time: str) -> str:
    time = (time or "").strip()
    if not time:
        raise InvalidRequest("A time slot is required")
    return time


async def customer_book(session: AsyncSession, user_id: int, data: CustomerBookingCreate) -> Booking:
    """App checkout: the time must be one of the slots offered that day."""
    room = await get_room(session, data.room_id)
    ensure_accepting(room)
    _check_group_size(room, data.players)
    time = _time_label(data.time)

    slot = await require_offered_slot(session, room, data.booking_date, time)

    total = pricing.slot_price(room, data.players, slot.price)
    booking = Booking(
        room_id=room.id,
        company_id=room.company_id,
        user_id=user_id,
        booking_date=data.booking_date,
        slot_time=time,
        players=data.players,
        total=total,
        deposit_paid=pricing.deposit_for(total, data.payment_terms),
        source=BookingSource.unlocked,
        payment_terms=data.payment_terms,
        payment_status=pricing.payment_status_for(data.payment_terms),
        booking_code=await allocate_booking_code(session, APP_PREFIX),
    )
    booking = await reserve(session, booking)

    logger.info(
        "Booking %s (%s) created by user %s for room %s %s %s, total %.2f",
        booking.id, booking.booking_code, user_id, booking.room_id, booking.booking_date, time, total,
    )
    await notify("booking_created", booking_id=booking.id, user_id=user_id, room_id=booking.room_id)
    return booking


async def venue_manual_book(session: AsyncSession, company_id: int, data: VenueBookingCreate) -> Booking:
    """Operator-entered app booking; the player is free text, not a user."""
    room = await guard_company_owns_room(session, company_id, data.room_id)
    ensure_accepting(room)
    _check_group_size(room, data.players)
    time = _time_label(data.time)

    player_name = (data.player_name or "").strip()
    if not player_name:
        raise InvalidRequest("Player name is required")

    if data.total is not None:
        if data.total < 0:
            raise InvalidRequest("Total must be non-negative", details={"total": data.total})
        total = data.total
    else:
        # Operators may book times outside the offered list
        slot = find_slot(await get_slots(session, room.id, data.booking_date), time)
        total = pricing.slot_price(room, data.players, slot.price if slot else None)

    booking = Booking(
        room_id=room.id,
        company_id=company_id,
        booking_date=data.booking_date,
        slot_time=time,
        players=data.players,
        total=total,
        deposit_paid=pricing.deposit_for(total, data.payment_terms),
        source=BookingSource.unlocked,
        payment_terms=data.payment_terms,
        payment_status=pricing.payment_status_for(data.payment_terms),
        booking_code=await allocate_booking_code(session, APP_PREFIX),
        player_name=player_name,
        player_contact=data.player_contact,
        notes=data.notes,
    )
    booking = await reserve(session, booking)

    logger.info("Manual booking %s created by company %s", booking.id, company_id)
    await notify("booking_created", booking_id=booking.id, company_id=company_id, room_id=booking.room_id)
    return booking


async def venue_external_block(session: AsyncSession, company_id: int, data: ExternalBlockCreate) -> Booking:
    """
    Hold a slot for a booking taken through another channel.

    No revenue or payment is tracked for the platform, but the block is as
    exclusive as any app booking.
    """
    room = await guard_company_owns_room(session, company_id, data.room_id)
    ensure_accepting(room)
    time = _time_label(data.time)

    external_source = (data.external_source or "").strip()
    if not external_source:
        raise InvalidRequest("External source is required")

    booking = Booking(
        room_id=room.id,
        company_id=company_id,
        booking_date=data.booking_date,
        slot_time=time,
        players=data.players or 0,
        total=0,
        source=BookingSource.external,
        external_source=external_source,
        payment_terms=None,
        payment_status=PaymentStatus.na,
        booking_code=await allocate_booking_code(session, EXTERNAL_PREFIX),
        player_name=data.player_name,
        notes=data.notes,
    )
    booking = await reserve(session, booking)

    logger.info("External block %s (%s) created by company %s", booking.id, external_source, company_id)
    await notify("booking_created", booking_id=booking.id, company_id=company_id, room_id=booking.room_id)
    return booking

"""
Slot resolution for a room on a calendar date.

The slot list comes from the first layer that exists:

1. the venue's per-date override (an empty override closes the day),
2. the room's default time slots (skipped on days the room doesn't operate),
3. a fixed fallback list for rooms that were never configured.

A slot is available when the venue left it open and no active booking holds
its time. The overflow slot is derived on every read: it shows up only when
every regular slot of the day is taken and the rule is active on that
weekday. Nothing about it is ever persisted.

Slots are listed by time of day. Hours before 06:00 count as late night and
sort after 23:59.
"""

import logging
import re
from datetime import date
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from errors import InvalidRequest, NotFound
from models import Booking, BookingStatus, DateSlotOverride, Room
from schemas import DateSlot, DayAvailability, OverflowRule, ResolvedSlot

logger = logging.getLogger(__name__)

FALLBACK_TIMES = ("10:00 AM", "11:30 AM", "1:00 PM", "2:30 PM", "4:00 PM", "5:30 PM", "7:00 PM", "8:30 PM")
# Used only when the room has no base price either
FALLBACK_PRICES = (35, 35, 35, 35, 38, 38, 42, 42)

# "19:00", "7:30 PM", "12 AM"
TIME_LABEL = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])?\s*$")
LATE_NIGHT_BEFORE = 6


def weekday(on_date: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (on_date.weekday() + 1) % 7


def fallback_slots(room: Room) -> List[DateSlot]:
    return [
        DateSlot(time=time, price=room.base_price or price, available=True, price_per_group=room.price_per_group)
        for time, price in zip(FALLBACK_TIMES, FALLBACK_PRICES)
    ]


def slot_sort_key(label: str) -> Tuple[int, int]:
    """Minutes after midnight, with early-morning hours pushed past midnight."""
    match = TIME_LABEL.match(label or "")
    if match is None:
        # Unparseable labels keep their relative order at the end
        return (1, 0)
    hour, minute, meridiem = int(match.group(1)), int(match.group(2) or 0), match.group(3)
    if meridiem:
        hour = hour % 12 + (12 if meridiem.lower() == "pm" else 0)
    if hour < LATE_NIGHT_BEFORE:
        hour += 24
    return (0, hour * 60 + minute)


def overflow_rule(room: Room) -> Optional[OverflowRule]:
    if not room.overflow_slot:
        return None
    return OverflowRule.model_validate(room.overflow_slot)


def is_operating(room: Room, on_date: date) -> bool:
    # No configured days means open every day
    return not room.operating_days or weekday(on_date) in room.operating_days


def base_slots(room: Room, on_date: date, override: Optional[DateSlotOverride] = None) -> List[DateSlot]:
    if override is not None:
        return [DateSlot.model_validate(slot) for slot in override.slots]
    if not is_operating(room, on_date):
        return []
    if room.default_time_slots:
        return [
            DateSlot(
                time=slot["time"],
                price=slot["price"],
                available=True,
                price_per_group=room.price_per_group,
            )
            for slot in room.default_time_slots
        ]
    return fallback_slots(room)


def resolve_slots(slots: Iterable[DateSlot], booked: Iterable[str] = ()) -> List[ResolvedSlot]:
    booked = set(booked)
    return [
        ResolvedSlot(
            time=slot.time,
            price=slot.price,
            available=slot.available and slot.time not in booked,
            price_per_group=slot.price_per_group,
        )
        for slot in slots
    ]


def overflow_active(room: Room, resolved: List[ResolvedSlot], on_date: date) -> bool:
    rule = overflow_rule(room)
    if rule is None:
        return False
    # A closed day (no regular slots) never unlocks the bonus slot
    if not resolved or any(slot.available for slot in resolved):
        return False
    return not rule.days or weekday(on_date) in rule.days


def day_availability(
    room: Room,
    on_date: date,
    override: Optional[DateSlotOverride] = None,
    booked: Iterable[str] = (),
) -> DayAvailability:
    booked = set(booked)
    resolved = resolve_slots(base_slots(room, on_date, override), booked)
    resolved.sort(key=lambda slot: slot_sort_key(slot.time))

    overflow = None
    if overflow_active(room, resolved, on_date):
        rule = overflow_rule(room)
        overflow = ResolvedSlot(
            time=rule.time,
            price=rule.price,
            available=rule.time not in booked,
            overflow=True,
            price_per_group=rule.price_per_group,
        )

    return DayAvailability(room_id=room.id, slot_date=on_date, slots=resolved, overflow_slot=overflow)


def find_slot(availability: DayAvailability, time: str) -> Optional[ResolvedSlot]:
    for slot in availability.slots:
        if slot.time == time:
            return slot
    if availability.overflow_slot and availability.overflow_slot.time == time:
        return availability.overflow_slot
    return None


async def get_room(session: AsyncSession, room_id: int) -> Room:
    room = await session.get(Room, room_id)
    if room is None:
        raise NotFound("Room", room_id)
    return room


def ensure_accepting(room: Room) -> None:
    if not room.is_active:
        raise InvalidRequest("This room is not accepting bookings", details={"room_id": room.id})


async def load_override(session: AsyncSession, room_id: int, on_date: date) -> Optional[DateSlotOverride]:
    statement = select(DateSlotOverride).where(
        DateSlotOverride.room_id == room_id,
        DateSlotOverride.slot_date == on_date,
    )
    result = await session.execute(statement)
    return result.scalars().first()


async def booked_times(session: AsyncSession, room_id: int, on_date: date) -> Set[str]:
    """Time labels held by active bookings on this room and date."""
    statement = select(Booking.slot_time).where(
        Booking.room_id == room_id,
        Booking.booking_date == on_date,
        col(Booking.status) != BookingStatus.cancelled,
    )
    result = await session.execute(statement)
    return set(result.scalars().all())


async def get_slots(session: AsyncSession, room_id: int, on_date: date) -> DayAvailability:
    room = await get_room(session, room_id)
    override = await load_override(session, room_id, on_date)
    booked = await booked_times(session, room_id, on_date)
    availability = day_availability(room, on_date, override, booked)
    logger.debug(
        "Resolved %d slots for room %s on %s (overflow=%s)",
        len(availability.slots), room_id, on_date, availability.overflow_slot is not None,
    )
    return availability

"""
Venue-side authoring of rooms, per-date slots and the overflow rule.

All input is validated before anything is written; a rejected configuration
raises :class:`InvalidConfiguration` and leaves the store untouched.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from availability import get_room, load_override
from config import COPY_RANGE_DAYS
from errors import AuthorizationFailure, DomainException, InvalidConfiguration
from models import DateSlotOverride, Room, utcnow
from pricing import price_for_discount
from schemas import (
    CopyResult,
    DateSlot,
    GroupPrice,
    OverflowRule,
    RoomCreate,
    RoomUpdate,
    SlotInput,
    SlotTemplate,
)

logger = logging.getLogger(__name__)

WEEKDAYS = range(7)


# --- Validation ---

def validate_time_label(label: str) -> str:
    label = (label or "").strip()
    if not label:
        raise InvalidConfiguration("Time label is required")
    return label


def validate_price(price: float, field: str = "price") -> float:
    if price is None or price < 0:
        raise InvalidConfiguration(f"{field} must be non-negative", details={"field": field, "value": price})
    return float(price)


def validate_days(days: Optional[Iterable[int]], field: str = "days") -> Optional[List[int]]:
    if days is None:
        return None
    days = list(days)
    invalid = [day for day in days if day not in WEEKDAYS]
    if invalid:
        raise InvalidConfiguration(
            f"{field} must be weekdays between 0 (Sunday) and 6 (Saturday)",
            details={"field": field, "invalid": invalid},
        )
    return sorted(set(days))


def validate_group_prices(entries: Optional[List[GroupPrice]]) -> Optional[List[dict]]:
    if not entries:
        return None
    seen = set()
    for entry in entries:
        if entry.players < 1:
            raise InvalidConfiguration("Group size must be at least 1", details={"players": entry.players})
        if entry.players in seen:
            raise InvalidConfiguration("Duplicate group size in price table", details={"players": entry.players})
        seen.add(entry.players)
        validate_price(entry.price, f"price for {entry.players} players")
    return [entry.model_dump() for entry in sorted(entries, key=lambda e: e.players)]


def _ensure_unique_times(times: List[str]) -> None:
    duplicates = sorted({time for time in times if times.count(time) > 1})
    if duplicates:
        raise InvalidConfiguration("Slot times must be unique within a date", details={"duplicates": duplicates})


def normalize_slots(room: Room, slots: List[SlotInput]) -> List[DateSlot]:
    """Validate venue input and turn discounts into concrete slot prices."""
    normalized = []
    for slot in slots:
        time = validate_time_label(slot.time)
        validate_group_prices(slot.price_per_group)
        if slot.discount is not None:
            if not 0 <= slot.discount <= 100:
                raise InvalidConfiguration(
                    "Discount must be between 0 and 100",
                    details={"time": time, "discount": slot.discount},
                )
            price = price_for_discount(room.base_price or 0, slot.discount, ndigits=2)
        elif slot.price is not None:
            price = validate_price(slot.price, f"price for {time}")
        else:
            price = room.base_price or 0
        normalized.append(
            DateSlot(
                time=time,
                price=price,
                available=slot.available,
                price_per_group=slot.price_per_group,
            )
        )

    _ensure_unique_times([slot.time for slot in normalized])
    return normalized


def normalize_templates(templates: Optional[List[SlotTemplate]]) -> Optional[List[dict]]:
    if templates is None:
        return None
    rows = [
        {"time": validate_time_label(t.time), "price": validate_price(t.price, f"price for {t.time}")}
        for t in templates
    ]
    _ensure_unique_times([row["time"] for row in rows])
    return rows


def _validate_capacity(players_min: int, players_max: int) -> None:
    if players_min < 1 or players_max < players_min:
        raise InvalidConfiguration(
            "Capacity bounds must satisfy 1 <= min <= max",
            details={"players_min": players_min, "players_max": players_max},
        )


# --- Ownership ---

async def guard_company_owns_room(session: AsyncSession, company_id: int, room_id: int) -> Room:
    room = await get_room(session, room_id)
    if room.company_id is None or room.company_id != company_id:
        logger.warning("Company %s denied access to room %s", company_id, room_id)
        raise AuthorizationFailure("Access denied: room does not belong to your company")
    return room


# --- Rooms ---

async def create_room(session: AsyncSession, company_id: int, data: RoomCreate) -> Room:
    _validate_capacity(data.players_min, data.players_max)
    room = Room(
        company_id=company_id,
        title=data.title.strip(),
        base_price=validate_price(data.base_price, "base_price"),
        price_per_group=validate_group_prices(data.price_per_group),
        default_time_slots=normalize_templates(data.default_time_slots),
        operating_days=validate_days(data.operating_days, "operating_days"),
        players_min=data.players_min,
        players_max=data.players_max,
    )
    session.add(room)
    await session.commit()
    await session.refresh(room)
    logger.info("Room %s created for company %s", room.id, company_id)
    return room


async def update_room(session: AsyncSession, company_id: int, room_id: int, data: RoomUpdate) -> Room:
    room = await guard_company_owns_room(session, company_id, room_id)
    changes = data.model_dump(exclude_unset=True)

    # Validate everything before touching the row
    values = {}
    if data.title is not None:
        values["title"] = data.title.strip()
    if data.base_price is not None:
        values["base_price"] = validate_price(data.base_price, "base_price")
    if "price_per_group" in changes:
        values["price_per_group"] = validate_group_prices(data.price_per_group)
    if "default_time_slots" in changes:
        values["default_time_slots"] = normalize_templates(data.default_time_slots)
    if "operating_days" in changes:
        values["operating_days"] = validate_days(data.operating_days, "operating_days")
    if "players_min" in changes or "players_max" in changes:
        values["players_min"] = room.players_min if data.players_min is None else data.players_min
        values["players_max"] = room.players_max if data.players_max is None else data.players_max
        _validate_capacity(values["players_min"], values["players_max"])

    for field, value in values.items():
        setattr(room, field, value)

    session.add(room)
    await session.commit()
    await session.refresh(room)
    logger.info("Room %s updated (%s)", room_id, ", ".join(sorted(changes)) or "no changes")
    return room


async def deactivate_room(session: AsyncSession, company_id: int, room_id: int) -> Room:
    """Rooms are never deleted while bookings may reference them."""
    room = await guard_company_owns_room(session, company_id, room_id)
    room.is_active = False
    session.add(room)
    await session.commit()
    await session.refresh(room)
    logger.info("Room %s deactivated", room_id)
    return room


# --- Per-date slots ---

async def _save_override(session: AsyncSession, room_id: int, on_date: date, slots: List[dict]) -> DateSlotOverride:
    """Replace the whole slot list of one (room, date) in a single commit."""
    override = await load_override(session, room_id, on_date)
    if override is None:
        override = DateSlotOverride(room_id=room_id, slot_date=on_date, slots=slots)
    else:
        override.slots = slots
        override.updated_at = utcnow()
    session.add(override)

    try:
        await session.commit()
    except IntegrityError:
        # Another writer created the row first; overwrite theirs
        await session.rollback()
        override = await load_override(session, room_id, on_date)
        override.slots = slots
        override.updated_at = utcnow()
        session.add(override)
        await session.commit()

    await session.refresh(override)
    return override


async def set_slots(
    session: AsyncSession,
    company_id: int,
    room_id: int,
    on_date: date,
    slots: List[SlotInput],
) -> DateSlotOverride:
    room = await guard_company_owns_room(session, company_id, room_id)
    normalized = [slot.model_dump() for slot in normalize_slots(room, slots)]
    override = await _save_override(session, room_id, on_date, normalized)
    logger.info("Set %d slots for room %s on %s", len(normalized), room_id, on_date)
    return override


async def copy_to_range(
    session: AsyncSession,
    company_id: int,
    room_id: int,
    from_date: date,
    slots: List[SlotInput],
    days: int = COPY_RANGE_DAYS,
) -> CopyResult:
    """
    Write the same slot list to each of the ``days`` dates after ``from_date``.

    Each date is its own commit. A failure on one date is logged and
    reported in the result; dates already written stay written.
    """
    if days < 1:
        raise InvalidConfiguration("days must be at least 1", details={"days": days})

    room = await guard_company_owns_room(session, company_id, room_id)
    normalized = [slot.model_dump() for slot in normalize_slots(room, slots)]

    updated, failed = [], []
    for offset in range(1, days + 1):
        target = from_date + timedelta(days=offset)
        try:
            await _save_override(session, room_id, target, normalized)
        except (DomainException, SQLAlchemyError) as exc:
            await session.rollback()
            logger.warning("Copying slots for room %s to %s failed: %s", room_id, target, exc)
            failed.append(target)
        else:
            updated.append(target)

    logger.info("Copied slots for room %s to %d of %d days", room_id, len(updated), days)
    return CopyResult(requested=days, updated=len(updated), updated_dates=updated, failed_dates=failed)


# --- Overflow rule ---

async def set_overflow(session: AsyncSession, company_id: int, room_id: int, rule: OverflowRule) -> Room:
    room = await guard_company_owns_room(session, company_id, room_id)
    room.overflow_slot = {
        "time": validate_time_label(rule.time),
        "price": validate_price(rule.price, "overflow price"),
        "price_per_group": validate_group_prices(rule.price_per_group),
        "days": validate_days(rule.days, "overflow days"),
    }
    session.add(room)
    await session.commit()
    await session.refresh(room)
    logger.info("Overflow slot %s set for room %s", rule.time, room_id)
    return room


async def clear_overflow(session: AsyncSession, company_id: int, room_id: int) -> Room:
    room = await guard_company_owns_room(session, company_id, room_id)
    room.overflow_slot = None
    session.add(room)
    await session.commit()
    await session.refresh(room)
    logger.info("Overflow slot cleared for room %s", room_id)
    return room

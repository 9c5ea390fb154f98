"""Slot alerts: players waiting for a taken slot to free up."""

import logging
from datetime import date
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from availability import get_room
from models import SlotAlert

logger = logging.getLogger(__name__)


async def toggle_alert(session: AsyncSession, user_id: int, room_id: int, on_date: date, time: str) -> bool:
    """Subscribe to a slot, or unsubscribe if already subscribed. Returns the new state."""
    await get_room(session, room_id)
    time = time.strip()

    statement = select(SlotAlert).where(
        SlotAlert.user_id == user_id,
        SlotAlert.room_id == room_id,
        SlotAlert.alert_date == on_date,
        SlotAlert.slot_time == time,
    )
    existing = (await session.execute(statement)).scalars().first()

    if existing is not None:
        await session.delete(existing)
        await session.commit()
        return False

    session.add(SlotAlert(user_id=user_id, room_id=room_id, alert_date=on_date, slot_time=time))
    try:
        await session.commit()
    except IntegrityError:
        # Double tap: the other request already subscribed
        await session.rollback()
    return True


async def release_slot(session: AsyncSession, room_id: int, on_date: date, time: str) -> List[int]:
    """
    Mark pending alerts for a freed slot as notified.

    Runs inside the caller's transaction; the caller commits. Returns the
    ids of the users to notify.
    """
    statement = select(SlotAlert).where(
        SlotAlert.room_id == room_id,
        SlotAlert.alert_date == on_date,
        SlotAlert.slot_time == time,
        col(SlotAlert.notified).is_(False),
    )
    alerts = (await session.execute(statement)).scalars().all()
    for alert in alerts:
        alert.notified = True
        session.add(alert)
    if alerts:
        logger.info("Slot %s %s %s freed; %d alerts to send", room_id, on_date, time, len(alerts))
    return [alert.user_id for alert in alerts]


async def user_alerts(session: AsyncSession, user_id: int, notified: bool = False) -> List[SlotAlert]:
    statement = (
        select(SlotAlert)
        .where(SlotAlert.user_id == user_id, SlotAlert.notified == notified)
        .order_by(SlotAlert.alert_date, SlotAlert.slot_time)
    )
    return list((await session.execute(statement)).scalars().all())

import logging
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

import alerts
import availability
import dashboard
import lifecycle
import orchestrator
import pricing
import slot_admin
from config import CORS_ORIGINS, COPY_RANGE_DAYS, LOG_LEVEL
from database import get_session, init_db
from errors import DomainException, InvalidRequest
from identity import Actor, get_actor, require_company, require_user
from models import BookingStatus
from schemas import (
    AlertRead,
    AlertToggle,
    AlertToggleResult,
    BookingRead,
    CompleteRequest,
    CopyResult,
    CustomerBookingCreate,
    DateSlotsUpdate,
    DayAvailability,
    DayStats,
    DateSlot,
    ExternalBlockCreate,
    GroupBreakdown,
    NotesUpdate,
    OverflowRule,
    Quote,
    RescheduleRequest,
    RoomCreate,
    RoomRead,
    RoomUpdate,
    VenueBookingCreate,
    VenueBookingRow,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Escape Room Booking Engine")


@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("Database ready")


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


# --- Rooms ---

@app.post("/rooms", response_model=RoomRead, status_code=status.HTTP_201_CREATED)
async def create_room(
    data: RoomCreate,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await slot_admin.create_room(session, require_company(actor), data)


@app.get("/rooms/{room_id}", response_model=RoomRead)
async def get_room(room_id: int, session: AsyncSession = Depends(get_session)):
    return await availability.get_room(session, room_id)


@app.patch("/rooms/{room_id}", response_model=RoomRead)
async def update_room(
    room_id: int,
    data: RoomUpdate,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await slot_admin.update_room(session, require_company(actor), room_id, data)


@app.delete("/rooms/{room_id}", response_model=RoomRead)
async def deactivate_room(
    room_id: int,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await slot_admin.deactivate_room(session, require_company(actor), room_id)


# --- Availability and pricing (read-only) ---

@app.get("/rooms/{room_id}/slots", response_model=DayAvailability)
async def get_slots(room_id: int, target_date: date, session: AsyncSession = Depends(get_session)):
    return await availability.get_slots(session, room_id, target_date)


@app.get("/rooms/{room_id}/booked-times", response_model=List[str])
async def get_booked_times(room_id: int, target_date: date, session: AsyncSession = Depends(get_session)):
    await availability.get_room(session, room_id)
    return sorted(await availability.booked_times(session, room_id, target_date))


@app.get("/rooms/{room_id}/quote", response_model=Quote)
async def quote_price(
    room_id: int,
    group_size: int = Query(...),
    slot_price: Optional[float] = None,
    session: AsyncSession = Depends(get_session),
):
    if group_size < 1:
        raise InvalidRequest("Group size must be at least 1", details={"group_size": group_size})
    room = await availability.get_room(session, room_id)
    return pricing.quote(room, group_size, slot_price)


@app.get("/rooms/{room_id}/group-breakdown", response_model=List[GroupBreakdown])
async def get_group_breakdown(
    room_id: int,
    discount: float = 0,
    session: AsyncSession = Depends(get_session),
):
    room = await availability.get_room(session, room_id)
    return pricing.group_breakdown(room, discount)


# --- Slot administration (venue only) ---

@app.put("/rooms/{room_id}/slots/{slot_date}", response_model=List[DateSlot])
async def set_date_slots(
    room_id: int,
    slot_date: date,
    data: DateSlotsUpdate,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    override = await slot_admin.set_slots(session, require_company(actor), room_id, slot_date, data.slots)
    return override.slots


@app.post("/rooms/{room_id}/slots/{slot_date}/copy", response_model=CopyResult)
async def copy_slots(
    room_id: int,
    slot_date: date,
    data: DateSlotsUpdate,
    days: int = COPY_RANGE_DAYS,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await slot_admin.copy_to_range(session, require_company(actor), room_id, slot_date, data.slots, days)


@app.put("/rooms/{room_id}/overflow", response_model=RoomRead)
async def set_overflow_rule(
    room_id: int,
    rule: OverflowRule,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await slot_admin.set_overflow(session, require_company(actor), room_id, rule)


@app.delete("/rooms/{room_id}/overflow", response_model=RoomRead)
async def clear_overflow_rule(
    room_id: int,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await slot_admin.clear_overflow(session, require_company(actor), room_id)


# --- Bookings ---

@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: CustomerBookingCreate,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await orchestrator.customer_book(session, require_user(actor), data)


@app.post("/venue/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_venue_booking(
    data: VenueBookingCreate,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await orchestrator.venue_manual_book(session, require_company(actor), data)


@app.post("/venue/blocks", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_external_block(
    data: ExternalBlockCreate,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await orchestrator.venue_external_block(session, require_company(actor), data)


@app.get("/bookings/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    booking = await lifecycle.get_booking(session, booking_id)
    await lifecycle.guard_can_manage(session, actor, booking)
    return booking


@app.post("/bookings/complete", response_model=BookingRead)
async def complete_by_code(
    data: CompleteRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await lifecycle.complete_by_code(session, require_company(actor), data.booking_code)


@app.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await lifecycle.cancel(session, actor, booking_id)


@app.post("/bookings/{booking_id}/reschedule", response_model=BookingRead)
async def reschedule_booking(
    booking_id: int,
    data: RescheduleRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await lifecycle.reschedule(session, actor, booking_id, data.new_date, data.new_time)


@app.patch("/venue/bookings/{booking_id}/notes", response_model=BookingRead)
async def update_booking_notes(
    booking_id: int,
    data: NotesUpdate,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await lifecycle.update_notes(session, require_company(actor), booking_id, data.notes)


# --- Listings ---

@app.get("/me/bookings", response_model=List[BookingRead])
async def my_bookings(
    booking_status: Optional[BookingStatus] = Query(default=None, alias="status"),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await dashboard.user_bookings(session, require_user(actor), booking_status)


@app.get("/venue/bookings", response_model=List[VenueBookingRow])
async def venue_bookings(
    target_date: date,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await dashboard.venue_bookings(session, require_company(actor), target_date)


@app.get("/venue/stats", response_model=DayStats)
async def venue_stats(
    target_date: date,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await dashboard.day_stats(session, require_company(actor), target_date)


# --- Slot alerts ---

@app.post("/alerts/toggle", response_model=AlertToggleResult)
async def toggle_alert(
    data: AlertToggle,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    subscribed = await alerts.toggle_alert(session, require_user(actor), data.room_id, data.alert_date, data.time)
    return AlertToggleResult(subscribed=subscribed)


@app.get("/me/alerts", response_model=List[AlertRead])
async def my_alerts(
    notified: bool = False,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    return await alerts.user_alerts(session, require_user(actor), notified)


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

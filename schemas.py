from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import BookingSource, BookingStatus, PaymentStatus, PaymentTerms


# --- Slot and pricing value objects (the shapes stored in JSON columns) ---

class GroupPrice(BaseModel):
    players: int
    price: float


class SlotTemplate(BaseModel):
    """A room default slot: time label and per-person price."""

    time: str
    price: float


class DateSlot(BaseModel):
    """One slot inside a per-date override."""

    time: str
    price: float
    available: bool = True
    price_per_group: Optional[List[GroupPrice]] = None


class OverflowRule(BaseModel):
    time: str
    price: float
    price_per_group: Optional[List[GroupPrice]] = None
    # 0=Sun .. 6=Sat; empty means every day
    days: List[int] = Field(default_factory=list)


class ResolvedSlot(BaseModel):
    time: str
    price: float
    available: bool
    overflow: bool = False
    price_per_group: Optional[List[GroupPrice]] = None


class DayAvailability(BaseModel):
    room_id: int
    slot_date: date
    slots: List[ResolvedSlot]
    overflow_slot: Optional[ResolvedSlot] = None


class Quote(BaseModel):
    amount: float
    standard_price: float
    discount_pct: int


class GroupBreakdown(BaseModel):
    players: int
    original: float
    discounted: float
    saved: float


# --- Venue administration ---

class SlotInput(BaseModel):
    """Venue-authored slot; a discount, when given, derives the price."""

    time: str
    price: Optional[float] = None
    discount: Optional[int] = None
    available: bool = True
    price_per_group: Optional[List[GroupPrice]] = None


class DateSlotsUpdate(BaseModel):
    slots: List[SlotInput]


class CopyResult(BaseModel):
    requested: int
    updated: int
    updated_dates: List[date]
    failed_dates: List[date]


class RoomCreate(BaseModel):
    title: str
    base_price: float = 0
    price_per_group: Optional[List[GroupPrice]] = None
    default_time_slots: Optional[List[SlotTemplate]] = None
    operating_days: Optional[List[int]] = None
    players_min: int = 1
    players_max: int = 10


class RoomUpdate(BaseModel):
    title: Optional[str] = None
    base_price: Optional[float] = None
    price_per_group: Optional[List[GroupPrice]] = None
    default_time_slots: Optional[List[SlotTemplate]] = None
    operating_days: Optional[List[int]] = None
    players_min: Optional[int] = None
    players_max: Optional[int] = None


class RoomRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: Optional[int]
    title: str
    base_price: float
    price_per_group: Optional[List[GroupPrice]]
    default_time_slots: Optional[List[SlotTemplate]]
    overflow_slot: Optional[OverflowRule]
    operating_days: Optional[List[int]]
    players_min: int
    players_max: int
    is_active: bool


# --- Bookings ---

class CustomerBookingCreate(BaseModel):
    room_id: int
    booking_date: date
    time: str
    players: int
    payment_terms: PaymentTerms = PaymentTerms.full


class VenueBookingCreate(BaseModel):
    room_id: int
    booking_date: date
    time: str
    players: int
    player_name: str
    player_contact: Optional[str] = None
    notes: Optional[str] = None
    # Operator-agreed total; quoted from the room's pricing when absent
    total: Optional[float] = None
    payment_terms: PaymentTerms = PaymentTerms.pay_on_arrival


class ExternalBlockCreate(BaseModel):
    room_id: int
    booking_date: date
    time: str
    external_source: str
    player_name: Optional[str] = None
    players: Optional[int] = None
    notes: Optional[str] = None


class RescheduleRequest(BaseModel):
    new_date: date
    new_time: str


class CompleteRequest(BaseModel):
    booking_code: str


class NotesUpdate(BaseModel):
    notes: str


class BookingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    company_id: Optional[int]
    user_id: Optional[int]
    booking_date: date
    slot_time: str
    players: int
    total: float
    deposit_paid: Optional[float]
    status: BookingStatus
    source: BookingSource
    external_source: Optional[str]
    payment_terms: Optional[PaymentTerms]
    payment_status: PaymentStatus
    booking_code: str
    player_name: Optional[str]
    player_contact: Optional[str]
    notes: Optional[str]
    created_at: datetime


class VenueBookingRow(BookingRead):
    room_title: str
    display_name: str


class DayStats(BaseModel):
    total_bookings: int
    unlocked_bookings: int
    external_bookings: int
    revenue: float
    total_slots: int
    available_slots: int
    active_rooms: int


# --- Slot alerts ---

class AlertToggle(BaseModel):
    room_id: int
    alert_date: date
    time: str


class AlertToggleResult(BaseModel):
    subscribed: bool


class AlertRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    alert_date: date
    slot_time: str
    notified: bool

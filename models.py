import enum
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column, DateTime, Index, UniqueConstraint, text


class BookingStatus(str, enum.Enum):
    upcoming = "upcoming"
    completed = "completed"
    cancelled = "cancelled"


# Statuses that hold a (room, date, time) slot
ACTIVE_STATUSES = (BookingStatus.upcoming, BookingStatus.completed)


class BookingSource(str, enum.Enum):
    unlocked = "unlocked"  # app-originated
    external = "external"  # phone, walk-in, partner platform


class PaymentTerms(str, enum.Enum):
    full = "full"
    deposit_20 = "deposit_20"
    pay_on_arrival = "pay_on_arrival"


class PaymentStatus(str, enum.Enum):
    paid = "paid"
    deposit = "deposit"
    unpaid = "unpaid"
    na = "na"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_column() -> Column:
    return Column(DateTime(timezone=True), nullable=False)


class Room(SQLModel, table=True):
    __tablename__ = "rooms"

    id: Optional[int] = Field(default=None, primary_key=True)
    company_id: Optional[int] = Field(default=None, index=True)
    title: str
    base_price: float = 0
    # [{"players": 2, "price": 60}, ...] -- sparse, need not cover every size
    price_per_group: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    # [{"time": "19:00", "price": 42}, ...]
    default_time_slots: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    # {"time", "price", "price_per_group", "days"}
    overflow_slot: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    # 0=Sun .. 6=Sat
    operating_days: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))
    players_min: int = 1
    players_max: int = 10
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())


class DateSlotOverride(SQLModel, table=True):
    __tablename__ = "date_slot_overrides"
    __table_args__ = (
        UniqueConstraint("room_id", "slot_date", name="unique_room_date_override"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    room_id: int = Field(foreign_key="rooms.id", index=True)
    slot_date: date
    # [{"time", "price", "available", "price_per_group"}, ...]; [] means closed
    slots: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # Database-level protection against double booking. Cancelled rows
        # stay in the table for history but no longer hold the slot.
        Index(
            "unique_active_booking_slot",
            "room_id",
            "booking_date",
            "slot_time",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    room_id: int = Field(foreign_key="rooms.id", index=True)
    company_id: Optional[int] = Field(default=None, index=True)
    user_id: Optional[int] = Field(default=None, index=True)
    booking_date: date = Field(index=True)
    slot_time: str
    players: int = 0
    total: float = 0
    deposit_paid: Optional[float] = None
    status: BookingStatus = Field(default=BookingStatus.upcoming)
    source: BookingSource = Field(default=BookingSource.unlocked)
    external_source: Optional[str] = None
    payment_terms: Optional[PaymentTerms] = None
    payment_status: PaymentStatus = Field(default=PaymentStatus.na)
    booking_code: str = Field(unique=True, index=True)
    player_name: Optional[str] = None
    player_contact: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class SlotAlert(SQLModel, table=True):
    __tablename__ = "slot_alerts"
    __table_args__ = (
        UniqueConstraint("user_id", "room_id", "alert_date", "slot_time", name="unique_user_slot_alert"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    room_id: int = Field(foreign_key="rooms.id")
    alert_date: date
    slot_time: str
    notified: bool = False
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

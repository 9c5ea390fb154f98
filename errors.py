"""
Domain errors for the availability and booking engine.

Every rejected operation is reported as one of these typed errors. They are
recoverable: the HTTP layer renders them as structured JSON bodies with a
status code per class, and nothing is written when one is raised.
"""

from typing import Any, Dict, Optional

from fastapi import status


class DomainException(Exception):
    """Base class for all engine errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


class SlotConflict(DomainException):
    """The (room, date, time) slot is already held by an active booking."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        room_id: int,
        booking_date: Any,
        slot_time: str,
        existing_booking_id: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        self.room_id = room_id
        self.booking_date = booking_date
        self.slot_time = slot_time
        self.existing_booking_id = existing_booking_id
        super().__init__(
            message or f"Slot {slot_time} on {booking_date} is no longer available",
            details={
                "room_id": room_id,
                "date": str(booking_date),
                "time": slot_time,
                "existing_booking_id": existing_booking_id,
            },
        )


class InvalidConfiguration(DomainException):
    """Malformed slot, pricing or weekday configuration."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRequest(DomainException):
    """Malformed booking input, e.g. a group size outside the room's bounds."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(DomainException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Any) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} not found",
            details={"resource": resource, "id": str(identifier)},
        )


class InvalidTransition(DomainException):
    """A lifecycle operation on a booking that is no longer upcoming."""

    status_code = status.HTTP_409_CONFLICT

    # Distinct reasons the scanner UI renders differently
    REASONS = {"completed": "already-used", "cancelled": "cancelled"}

    def __init__(self, booking_id: Optional[int], current_status: Any, action: str) -> None:
        self.booking_id = booking_id
        self.current_status = getattr(current_status, "value", current_status)
        self.action = action
        self.reason = self.REASONS.get(self.current_status, "invalid-state")
        super().__init__(
            f"Cannot {action} a booking that is {self.current_status}",
            details={
                "booking_id": booking_id,
                "current_status": self.current_status,
                "reason": self.reason,
                "action": action,
            },
        )


class AuthorizationFailure(DomainException):
    """The acting venue or user does not own the resource."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access denied") -> None:
        # No resource details: a foreign venue must not learn anything about it
        super().__init__(message)

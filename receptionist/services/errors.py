from __future__ import annotations


class BookingError(Exception):
    """Base class for recoverable booking-core failures."""


class NotFound(BookingError):
    """Unknown tenant, provider or booking."""


class Conflict(BookingError):
    """The requested resource is already taken."""


class SlotTaken(Conflict):
    def __init__(self, provider_id: str, when: str) -> None:
        super().__init__(f"Slot {when} is already booked for provider {provider_id}")
        self.provider_id = provider_id
        self.when = when


class InvalidArgument(BookingError, ValueError):
    """Malformed date/time strings or blank identifiers."""


ACCESS_DENIED_MESSAGE = (
    "Access denied: we could not verify that this appointment belongs to you. "
    "Please provide your identification document or confirmation code."
)


class AccessDenied(BookingError):
    def __init__(self, message: str = ACCESS_DENIED_MESSAGE) -> None:
        super().__init__(message)

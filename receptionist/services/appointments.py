from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional

from receptionist.schemas.audit import AuditEventType
from receptionist.schemas.booking import CLIENT_ID_FIELD, BookingRecord, BookingStatus
from receptionist.schemas.tenant import ServiceProvider
from receptionist.security.audit import AuditTrail
from receptionist.services.booking import BookingService, parse_date, parse_time
from receptionist.services.errors import (
    AccessDenied,
    Conflict,
    InvalidArgument,
    NotFound,
)
from receptionist.services.session import SessionOwnershipGuard

logger = logging.getLogger(__name__)

ANY_PROVIDER = {"any", "all", "cualquiera", "todos"}
PLACEHOLDER_TERMS = (
    "no email",
    "no-email",
    "unknown",
    "no name",
    "no nombre",
    "string",
    "user",
    "no phone",
    "no-id",
    "no id",
    "n/a",
)


def _is_placeholder(value: Optional[str]) -> bool:
    if not value or not value.strip():
        return True
    lowered = value.lower()
    return any(term in lowered for term in PLACEHOLDER_TERMS)


def _hhmm(value) -> str:
    return value.strftime("%H:%M")


class AppointmentDesk:
    """Booking operations exposed to the conversational loop.

    Each method returns text meant for the agent; domain failures are turned
    into messages instead of exceptions. Reads and cancellations are gated by
    the session's ownership guard.
    """

    def __init__(
        self,
        booking_service: BookingService,
        session: SessionOwnershipGuard,
        audit: Optional[AuditTrail] = None,
        context: Optional[Dict[str, str]] = None,
        search_days: int = 30,
    ) -> None:
        self._bookings = booking_service
        self._session = session
        self._audit = audit
        self._context = dict(context or {})
        self._search_days = search_days

    # Availability

    def find_available_slots(self, provider_query: str, on: str) -> str:
        try:
            day = parse_date(on)
        except InvalidArgument:
            return "Please use the YYYY-MM-DD date format."

        providers = self._match_providers(provider_query)
        if not providers:
            names = ", ".join(provider.name for provider in self._bookings.list_providers())
            return f"No provider matches '{provider_query}'. Available: {names}"

        lines = []
        for provider in providers:
            free = [_hhmm(slot.time) for slot in self._bookings.list_available_slots(provider.id, day) if slot.is_available]
            if free:
                lines.append(f"• {provider.name} ({provider.role}): {', '.join(free)}")

        if not lines:
            return f"There are no available times on {day.isoformat()}."
        return f"Available times on {day.isoformat()}:\n" + "\n".join(lines)

    def first_available_appointment(self, days_to_search: Optional[int] = None, today: Optional[date] = None) -> str:
        days_to_search = days_to_search or self._search_days
        start = today or date.today()
        found = self._bookings.first_available(start, days_to_search)
        if found is None:
            return f"There is no availability in the next {days_to_search} days."
        return (
            "First available appointment:\n"
            f"Provider: {found.provider.name} ({found.provider.role})\n"
            f"Date: {found.date.isoformat()} ({found.date.strftime('%A')})\n"
            f"Times: {', '.join(_hhmm(at) for at in found.times)}"
        )

    # Booking

    def book_appointment(
        self,
        client_name: str,
        client_id: str,
        phone: str,
        email: str,
        provider: str,
        on: str,
        at: str,
        reason: str = "",
    ) -> str:
        if _is_placeholder(client_name):
            return "VALIDATION FAILED: the client's NAME is missing. Do not invent values; ask the user for their name."
        if _is_placeholder(client_id):
            return "VALIDATION FAILED: the client's IDENTIFICATION DOCUMENT is missing. Ask the user for it."
        if _is_placeholder(email) or "@" not in email:
            return "VALIDATION FAILED: a valid EMAIL is missing. Ask the user for their email address."
        if _is_placeholder(phone):
            return "VALIDATION FAILED: the PHONE number is missing. Ask the user for it."

        try:
            day = parse_date(on)
            slot_time = parse_time(at)
        except InvalidArgument as exc:
            return f"FAILED: {exc}."

        matches = self._bookings.search_providers(provider)
        if not matches:
            names = ", ".join(p.name for p in self._bookings.list_providers())
            return f"FAILED: no provider found for '{provider}'. Available: {names}"
        if len(matches) > 1:
            names = ", ".join(p.name for p in matches)
            return f"FAILED: several providers match '{provider}': {names}. Please be more specific."
        chosen = matches[0]

        custom_fields = {
            CLIENT_ID_FIELD: client_id.strip(),
            "phone": phone.strip(),
            "email": email.strip(),
            "reason": reason.strip(),
        }
        try:
            booking = self._bookings.create_booking(client_name.strip(), chosen.id, day, slot_time, custom_fields)
        except Conflict:
            return "FAILED: the selected time is no longer available. Check availability again and choose another time."
        except (InvalidArgument, NotFound) as exc:
            return f"FAILED: {exc}."

        # Whoever just booked owns the booking for the rest of the session.
        self._session.grant(booking, client_id)
        self._record(
            AuditEventType.BOOKING_CREATED,
            "Booking created",
            {"confirmation_code": booking.confirmation_code, "provider_id": chosen.id},
        )
        return (
            "SUCCESS: appointment confirmed.\n"
            f"Confirmation code: {booking.confirmation_code}\n"
            f"Client: {booking.client_name}\n"
            f"Provider: {chosen.name} ({chosen.role})\n"
            f"Date: {day.isoformat()} at {_hhmm(slot_time)}\n"
            "Remind the client of the confirmation code and to arrive 15 minutes early."
        )

    # Ownership-gated reads and cancellation

    def lookup_booking(self, code: str = "", client_id: str = "") -> BookingRecord:
        if code and code.strip():
            booking = self._bookings.get_booking(code)
            if self._session.can_access(booking):
                return booking
            stored = booking.client_id
            if client_id and client_id.strip() and stored and client_id.strip().lower() == stored.strip().lower():
                self._session.grant(booking, client_id.strip())
                return booking
            self._deny("lookup", code)
            raise AccessDenied()

        if client_id and client_id.strip():
            booking = self._bookings.get_booking_by_client_id(client_id.strip())
            if booking is None:
                raise NotFound("No appointments found for that identification document")
            # Presenting the stored identifier is itself proof of ownership.
            self._session.grant(booking, client_id.strip())
            return booking

        raise InvalidArgument("Provide a confirmation code or an identification document")

    def get_appointment_info(self, code: str = "", client_id: str = "") -> str:
        try:
            booking = self.lookup_booking(code, client_id)
        except (AccessDenied, NotFound) as exc:
            return str(exc)
        except InvalidArgument:
            return "VALIDATION FAILED: provide a confirmation code OR an identification document."
        return (
            f"Appointment {booking.confirmation_code}:\n"
            f"Client: {booking.client_name}\n"
            f"Provider: {booking.provider_name}\n"
            f"Date: {booking.scheduled_date.isoformat()}\n"
            f"Time: {_hhmm(booking.scheduled_time)}\n"
            f"Status: {booking.status.value}"
        )

    def cancel_appointment(self, code: str) -> str:
        try:
            booking = self._bookings.get_booking(code)
        except (NotFound, InvalidArgument):
            return f"The appointment with code {code} was not found, please try again."

        if not self._session.can_access(booking):
            self._deny("cancel", code)
            return str(AccessDenied())

        if booking.status == BookingStatus.CANCELLED:
            return f"Appointment {booking.confirmation_code} is already cancelled."

        try:
            cancelled = self._bookings.cancel_booking(booking.confirmation_code)
        except NotFound:
            return "The appointment could not be cancelled."
        self._record(
            AuditEventType.BOOKING_CANCELLED,
            "Booking cancelled",
            {"confirmation_code": cancelled.confirmation_code, "provider_id": cancelled.provider_id},
        )
        return (
            f"Appointment cancelled: {cancelled.confirmation_code}, "
            f"{cancelled.scheduled_date.isoformat()} {_hhmm(cancelled.scheduled_time)}"
        )

    def occupancy(self, on: Optional[str] = None, today: Optional[date] = None) -> str:
        if on:
            try:
                day = parse_date(on)
            except InvalidArgument:
                return "Please use the YYYY-MM-DD date format."
        else:
            day = today or date.today()
        entries = self._bookings.occupancy_for(day)
        if not entries:
            return f"There are no appointments on {day.isoformat()}."
        # Client names stay out of this view.
        lines = [f"- {_hhmm(entry.time)} with {entry.provider_name} ({entry.status.value})" for entry in entries]
        return f"Appointments on {day.isoformat()} ({len(entries)} total):\n" + "\n".join(lines)

    # Helpers

    def _match_providers(self, query: str) -> List[ServiceProvider]:
        if not query or query.strip().lower() in ANY_PROVIDER:
            return self._bookings.list_providers()
        return self._bookings.search_providers(query)

    def _deny(self, operation: str, code: str) -> None:
        logger.warning("Booking access denied", extra={"operation": operation})
        self._record(AuditEventType.ACCESS_DENIED, "Ownership check failed", {"operation": operation, "code": code})

    def _record(self, event_type: AuditEventType, content: str, metadata: Dict[str, str]) -> None:
        if self._audit is None:
            return
        self._audit.log(
            tenant_id=self._context.get("tenant_id", ""),
            session_id=self._context.get("session_id", ""),
            event_type=event_type,
            content=content,
            metadata=metadata,
        )

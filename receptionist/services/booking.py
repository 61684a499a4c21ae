from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from receptionist.adapters.base import ClientDataAdapter
from receptionist.schemas.booking import BookingRecord, BookingStatus, OccupancyEntry, TimeSlot
from receptionist.schemas.tenant import ServiceProvider
from receptionist.services.errors import InvalidArgument, NotFound

logger = logging.getLogger(__name__)


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError) as exc:
        raise InvalidArgument(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def parse_time(value: str) -> time:
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError) as exc:
        raise InvalidArgument(f"Invalid time '{value}', expected HH:MM (24h)") from exc


@dataclass
class FirstAvailable:
    provider: ServiceProvider
    date: date
    times: List[time]


class BookingService:
    """Slot availability and booking ledger for one tenant."""

    def __init__(self, adapter: ClientDataAdapter, tenant_id: str = "") -> None:
        self._adapter = adapter
        self._tenant_id = tenant_id

    # Providers

    def list_providers(self) -> List[ServiceProvider]:
        return self._adapter.list_providers()

    def search_providers(self, query: str) -> List[ServiceProvider]:
        return self._adapter.search_providers(query)

    def find_provider(self, provider_id: str) -> ServiceProvider:
        for provider in self._adapter.list_providers():
            if provider.id == provider_id:
                return provider
        raise NotFound(f"Provider '{provider_id}' not found")

    # Availability

    def list_available_slots(self, provider_id: str, on: date) -> List[TimeSlot]:
        provider = self.find_provider(provider_id)
        if not provider.works_on(on.weekday()):
            return []

        occupied = {
            booking.scheduled_time: booking.confirmation_code
            for booking in self._adapter.get_bookings_by_date(on)
            if booking.is_active and booking.provider_id == provider.id
        }
        slots: List[TimeSlot] = []
        step = timedelta(minutes=provider.slot_duration_minutes)
        current = datetime.combine(on, provider.start_time)
        end = datetime.combine(on, provider.end_time)
        while current < end:
            at = current.time()
            slots.append(
                TimeSlot(
                    date=on,
                    time=at,
                    is_available=at not in occupied,
                    booking_code=occupied.get(at),
                )
            )
            current += step
        return slots

    def exists(self, on: date, at: time, provider_id: str) -> bool:
        return self._adapter.exists(on, at, provider_id)

    def first_available(self, start: date, days_to_search: int = 30) -> Optional[FirstAvailable]:
        providers = self.list_providers()
        for offset in range(max(days_to_search, 0)):
            on = start + timedelta(days=offset)
            for provider in providers:
                free = [slot.time for slot in self.list_available_slots(provider.id, on) if slot.is_available]
                if free:
                    return FirstAvailable(provider=provider, date=on, times=free[:5])
        return None

    # Ledger

    def create_booking(
        self,
        client_name: str,
        provider_id: str,
        on: date,
        at: time,
        custom_fields: Optional[Dict[str, str]] = None,
    ) -> BookingRecord:
        provider = self.find_provider(provider_id)
        if not provider.works_on(on.weekday()):
            raise InvalidArgument(f"{provider.name} does not work on {on.isoformat()}")
        if at < provider.start_time or at > provider.end_time:
            raise InvalidArgument(f"{at.strftime('%H:%M')} is outside the working hours of {provider.name}")

        record = BookingRecord(
            tenant_id=self._tenant_id or provider.tenant_id,
            client_name=client_name,
            provider_id=provider.id,
            provider_name=provider.name,
            scheduled_date=on,
            scheduled_time=at,
            status=BookingStatus.CONFIRMED,
            custom_fields=dict(custom_fields or {}),
        )
        # The adapter re-checks occupancy atomically and raises SlotTaken on conflict.
        created = self._adapter.create_booking(record)
        logger.info(
            "Booking created",
            extra={"tenant_id": created.tenant_id, "provider_id": provider.id, "code": created.confirmation_code},
        )
        return created

    def cancel_booking(self, code: str) -> BookingRecord:
        booking = self.get_booking(code)
        cancelled = booking.model_copy(update={"status": BookingStatus.CANCELLED})
        if not self._adapter.update_booking(cancelled):
            raise NotFound(f"Booking '{code}' not found")
        logger.info("Booking cancelled", extra={"tenant_id": booking.tenant_id, "code": booking.confirmation_code})
        return cancelled

    def update_status(self, code: str, status: BookingStatus) -> BookingRecord:
        booking = self.get_booking(code)
        updated = booking.model_copy(update={"status": status})
        if not self._adapter.update_booking(updated):
            raise NotFound(f"Booking '{code}' not found")
        return updated

    def get_booking(self, code: str) -> BookingRecord:
        if not code or not code.strip():
            raise InvalidArgument("Confirmation code must not be empty")
        booking = self._adapter.get_booking_by_code(code)
        if booking is None:
            raise NotFound(f"Booking '{code}' not found")
        return booking

    def get_bookings_by_date(self, on: date) -> List[BookingRecord]:
        return self._adapter.get_bookings_by_date(on)

    def get_booking_by_client_id(self, client_id: str) -> Optional[BookingRecord]:
        return self._adapter.get_booking_by_client_id(client_id)

    def get_bookings_by_client_id(self, client_id: str) -> List[BookingRecord]:
        return self._adapter.get_bookings_by_client_id(client_id)

    def delete_booking(self, booking_id: str) -> bool:
        """Hard delete for data-management tooling only."""
        return self._adapter.delete_booking(booking_id)

    def occupancy_for(self, on: date) -> List[OccupancyEntry]:
        entries = [
            OccupancyEntry(provider_name=booking.provider_name, time=booking.scheduled_time, status=booking.status)
            for booking in self.get_bookings_by_date(on)
            if booking.is_active
        ]
        return sorted(entries, key=lambda entry: (entry.time, entry.provider_name))

from __future__ import annotations

import logging
import threading
from datetime import date, time
from typing import Dict, List, Optional

from receptionist.adapters.base import new_booking_identity, search_providers
from receptionist.schemas.booking import BookingRecord, utcnow
from receptionist.schemas.tenant import ServiceProvider
from receptionist.services.errors import SlotTaken

logger = logging.getLogger(__name__)


class InMemoryClientAdapter:
    """Process-local booking store for one tenant.

    Every write goes through one lock, so the slot-occupancy check in
    ``create_booking`` and the insert form a single compare-and-set. Records
    are copied on the way in and out; callers never hold a reference into the
    store.
    """

    def __init__(self, providers: List[ServiceProvider]) -> None:
        if providers is None:
            raise ValueError("providers must be provided")
        self._providers = list(providers)
        self._bookings: Dict[str, BookingRecord] = {}
        self._lock = threading.RLock()

    # Providers

    def list_providers(self) -> List[ServiceProvider]:
        return list(self._providers)

    def search_providers(self, query: str) -> List[ServiceProvider]:
        return search_providers(self._providers, query)

    # Bookings

    def exists(self, on: date, at: time, provider_id: str) -> bool:
        return any(booking.occupies(on, at, provider_id) for booking in self._snapshot())

    def create_booking(self, booking: BookingRecord) -> BookingRecord:
        with self._lock:
            if any(
                existing.occupies(booking.scheduled_date, booking.scheduled_time, booking.provider_id)
                for existing in self._bookings.values()
            ):
                raise SlotTaken(
                    booking.provider_id,
                    f"{booking.scheduled_date.isoformat()} {booking.scheduled_time.strftime('%H:%M')}",
                )
            taken_codes = {existing.confirmation_code for existing in self._bookings.values()}
            booking_id, code = new_booking_identity()
            while code in taken_codes:
                booking_id, code = new_booking_identity()
            stored = booking.model_copy(
                deep=True,
                update={"id": booking_id, "confirmation_code": code, "created_at": utcnow()},
            )
            self._bookings[booking_id] = stored
        logger.info(
            "Booking stored",
            extra={"booking_id": booking_id, "provider_id": booking.provider_id},
        )
        return stored.model_copy(deep=True)

    def get_booking_by_code(self, code: str) -> Optional[BookingRecord]:
        wanted = code.strip().upper()
        for booking in self._snapshot():
            if booking.confirmation_code.upper() == wanted:
                return booking
        return None

    def get_bookings_by_date(self, on: date) -> List[BookingRecord]:
        return [booking for booking in self._snapshot() if booking.scheduled_date == on]

    def get_all_bookings(self) -> List[BookingRecord]:
        return self._snapshot()

    def update_booking(self, booking: BookingRecord) -> bool:
        with self._lock:
            if booking.id not in self._bookings:
                return False
            if booking.is_active and any(
                existing.id != booking.id
                and existing.occupies(booking.scheduled_date, booking.scheduled_time, booking.provider_id)
                for existing in self._bookings.values()
            ):
                raise SlotTaken(
                    booking.provider_id,
                    f"{booking.scheduled_date.isoformat()} {booking.scheduled_time.strftime('%H:%M')}",
                )
            self._bookings[booking.id] = booking.model_copy(deep=True, update={"updated_at": utcnow()})
        return True

    def delete_booking(self, booking_id: str) -> bool:
        with self._lock:
            return self._bookings.pop(booking_id, None) is not None

    # Client lookups

    def get_booking_by_client_id(self, client_id: str) -> Optional[BookingRecord]:
        active = [booking for booking in self.get_bookings_by_client_id(client_id) if booking.is_active]
        return active[0] if active else None

    def get_bookings_by_client_id(self, client_id: str) -> List[BookingRecord]:
        wanted = client_id.strip().lower()
        matches = [
            booking
            for booking in self._snapshot()
            if booking.client_id is not None and booking.client_id.strip().lower() == wanted
        ]
        return sorted(
            matches,
            key=lambda booking: (booking.scheduled_date, booking.scheduled_time),
            reverse=True,
        )

    def _snapshot(self) -> List[BookingRecord]:
        with self._lock:
            return [booking.model_copy(deep=True) for booking in self._bookings.values()]

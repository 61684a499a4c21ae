from __future__ import annotations

import uuid
from datetime import date, time
from typing import List, Optional, Protocol, Sequence

from receptionist.schemas.booking import BookingRecord
from receptionist.schemas.tenant import ServiceProvider
from receptionist.utils.text import fold

CONFIRMATION_PREFIX = "CITA"


def new_booking_identity() -> tuple[str, str]:
    """Return a fresh booking id and the confirmation code derived from it."""
    booking_id = str(uuid.uuid4())
    return booking_id, f"{CONFIRMATION_PREFIX}-{booking_id[:4].upper()}"


def search_providers(providers: Sequence[ServiceProvider], query: str) -> List[ServiceProvider]:
    """Every query token must appear in the provider name or role, or equal its id."""
    if not query or not query.strip():
        return []
    tokens = fold(query).split()
    matches = []
    for provider in providers:
        name = fold(provider.name)
        role = fold(provider.role)
        provider_id = fold(provider.id)
        if all(token in name or token in role or token == provider_id for token in tokens):
            matches.append(provider)
    return matches


class ClientDataAdapter(Protocol):
    """Storage contract for one tenant's providers and bookings."""

    def list_providers(self) -> List[ServiceProvider]:  # pragma: no cover - interface
        ...

    def search_providers(self, query: str) -> List[ServiceProvider]:  # pragma: no cover - interface
        ...

    def exists(self, on: date, at: time, provider_id: str) -> bool:  # pragma: no cover - interface
        ...

    def create_booking(self, booking: BookingRecord) -> BookingRecord:  # pragma: no cover - interface
        """Insert atomically; raise SlotTaken when the slot is already occupied."""
        ...

    def get_booking_by_code(self, code: str) -> Optional[BookingRecord]:  # pragma: no cover - interface
        ...

    def get_bookings_by_date(self, on: date) -> List[BookingRecord]:  # pragma: no cover - interface
        ...

    def get_all_bookings(self) -> List[BookingRecord]:  # pragma: no cover - interface
        ...

    def update_booking(self, booking: BookingRecord) -> bool:  # pragma: no cover - interface
        ...

    def delete_booking(self, booking_id: str) -> bool:  # pragma: no cover - interface
        ...

    def get_booking_by_client_id(self, client_id: str) -> Optional[BookingRecord]:  # pragma: no cover
        ...

    def get_bookings_by_client_id(self, client_id: str) -> List[BookingRecord]:  # pragma: no cover
        ...

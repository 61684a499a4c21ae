from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError

from receptionist.adapters.base import new_booking_identity, search_providers
from receptionist.schemas.booking import BookingRecord, BookingStatus, utcnow
from receptionist.schemas.tenant import ServiceProvider
from receptionist.services.errors import SlotTaken

logger = logging.getLogger(__name__)

_MAX_CODE_ATTEMPTS = 5


@dataclass
class MongoClientFactory:
    uri: str
    db_name: str

    def get_collection(self, collection_name: str):
        client = MongoClient(self.uri)
        database = client[self.db_name]
        return database[collection_name]


def _slot_key(tenant_id: str, provider_id: str, on: date, at: time) -> str:
    return f"{tenant_id.lower()}|{provider_id}|{on.isoformat()}|{at.strftime('%H:%M')}"


class MongoClientAdapter:
    """MongoDB-backed booking store shared by tenants through one collection.

    Active bookings carry an ``active_slot`` key covered by a unique sparse
    index; cancelling drops the key. The database therefore rejects a second
    active booking for the same provider, date and time, which makes the
    occupancy check and the insert one atomic operation.
    """

    def __init__(self, collection, tenant_id: str, providers: List[ServiceProvider]) -> None:
        self._collection = collection
        self._tenant_id = tenant_id
        self._providers = list(providers)
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        self._collection.create_index([("active_slot", ASCENDING)], unique=True, sparse=True)
        self._collection.create_index(
            [("tenant_id", ASCENDING), ("confirmation_code", ASCENDING)], unique=True
        )
        self._collection.create_index([("tenant_id", ASCENDING), ("client_id_key", ASCENDING)])

    # Providers

    def list_providers(self) -> List[ServiceProvider]:
        return list(self._providers)

    def search_providers(self, query: str) -> List[ServiceProvider]:
        return search_providers(self._providers, query)

    # Bookings

    def exists(self, on: date, at: time, provider_id: str) -> bool:
        key = _slot_key(self._tenant_id, provider_id, on, at)
        return self._collection.count_documents({"active_slot": key}, limit=1) > 0

    def create_booking(self, booking: BookingRecord) -> BookingRecord:
        for _ in range(_MAX_CODE_ATTEMPTS):
            booking_id, code = new_booking_identity()
            stored = booking.model_copy(
                deep=True,
                update={
                    "id": booking_id,
                    "tenant_id": booking.tenant_id or self._tenant_id,
                    "confirmation_code": code,
                    "created_at": utcnow(),
                },
            )
            try:
                self._collection.insert_one(self._to_document(stored))
            except DuplicateKeyError as exc:
                key_pattern = (exc.details or {}).get("keyPattern", {})
                if "confirmation_code" in key_pattern:
                    continue
                raise SlotTaken(
                    booking.provider_id,
                    f"{booking.scheduled_date.isoformat()} {booking.scheduled_time.strftime('%H:%M')}",
                ) from exc
            logger.info("Booking stored", extra={"booking_id": booking_id, "provider_id": booking.provider_id})
            return stored
        raise RuntimeError("Could not allocate a unique confirmation code")

    def get_booking_by_code(self, code: str) -> Optional[BookingRecord]:
        document = self._collection.find_one(
            {"tenant_id": self._tenant_id, "confirmation_code": code.strip().upper()}
        )
        return self._to_record(document) if document else None

    def get_bookings_by_date(self, on: date) -> List[BookingRecord]:
        cursor = self._collection.find({"tenant_id": self._tenant_id, "scheduled_date": on.isoformat()})
        return [self._to_record(document) for document in cursor]

    def get_all_bookings(self) -> List[BookingRecord]:
        return [self._to_record(document) for document in self._collection.find({"tenant_id": self._tenant_id})]

    def update_booking(self, booking: BookingRecord) -> bool:
        updated = booking.model_copy(update={"updated_at": utcnow()})
        try:
            result = self._collection.replace_one(
                {"_id": booking.id, "tenant_id": self._tenant_id},
                self._to_document(updated),
            )
        except DuplicateKeyError as exc:
            raise SlotTaken(
                booking.provider_id,
                f"{booking.scheduled_date.isoformat()} {booking.scheduled_time.strftime('%H:%M')}",
            ) from exc
        return result.matched_count > 0

    def delete_booking(self, booking_id: str) -> bool:
        result = self._collection.delete_one({"_id": booking_id, "tenant_id": self._tenant_id})
        return result.deleted_count > 0

    # Client lookups

    def get_booking_by_client_id(self, client_id: str) -> Optional[BookingRecord]:
        active = [booking for booking in self.get_bookings_by_client_id(client_id) if booking.is_active]
        return active[0] if active else None

    def get_bookings_by_client_id(self, client_id: str) -> List[BookingRecord]:
        cursor = self._collection.find(
            {"tenant_id": self._tenant_id, "client_id_key": client_id.strip().lower()}
        ).sort([("scheduled_date", DESCENDING), ("scheduled_time", DESCENDING)])
        return [self._to_record(document) for document in cursor]

    # Mapping

    def _to_document(self, booking: BookingRecord) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "_id": booking.id,
            "tenant_id": booking.tenant_id or self._tenant_id,
            "confirmation_code": booking.confirmation_code.upper(),
            "client_name": booking.client_name,
            "provider_id": booking.provider_id,
            "provider_name": booking.provider_name,
            "scheduled_date": booking.scheduled_date.isoformat(),
            "scheduled_time": booking.scheduled_time.strftime("%H:%M"),
            "status": booking.status.value,
            "custom_fields": dict(booking.custom_fields),
            "client_id_key": (booking.client_id or "").strip().lower() or None,
            "created_at": booking.created_at,
            "updated_at": booking.updated_at,
        }
        if booking.is_active:
            document["active_slot"] = _slot_key(
                self._tenant_id, booking.provider_id, booking.scheduled_date, booking.scheduled_time
            )
        return document

    @staticmethod
    def _to_record(document: Dict[str, Any]) -> BookingRecord:
        return BookingRecord(
            id=str(document["_id"]),
            tenant_id=document.get("tenant_id", ""),
            confirmation_code=document.get("confirmation_code", ""),
            client_name=document.get("client_name", ""),
            provider_id=document.get("provider_id", ""),
            provider_name=document.get("provider_name", ""),
            scheduled_date=date.fromisoformat(document["scheduled_date"]),
            scheduled_time=datetime.strptime(document["scheduled_time"], "%H:%M").time(),
            status=BookingStatus.from_label(document.get("status", "")),
            custom_fields={str(k): str(v) for k, v in (document.get("custom_fields") or {}).items()},
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )

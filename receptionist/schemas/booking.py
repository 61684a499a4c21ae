from __future__ import annotations

import datetime as dt
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field

CLIENT_ID_FIELD = "client_id"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingStatus(str, Enum):
    SCHEDULED = "Scheduled"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    NO_SHOW = "NoShow"

    @classmethod
    def from_label(cls, label: str) -> "BookingStatus":
        for status in cls:
            if status.value.lower() == label.lower():
                return status
        return cls.SCHEDULED


class TimeSlot(BaseModel):
    date: dt.date
    time: dt.time
    is_available: bool
    booking_code: Optional[str] = None


class BookingRecord(BaseModel):
    id: str = ""
    tenant_id: str = ""
    confirmation_code: str = ""
    client_name: str
    provider_id: str
    provider_name: str = ""
    scheduled_date: date
    scheduled_time: time
    status: BookingStatus = BookingStatus.SCHEDULED
    custom_fields: Dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def client_id(self) -> Optional[str]:
        return self.custom_fields.get(CLIENT_ID_FIELD) or None

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED

    def occupies(self, on: date, at: time, provider_id: str) -> bool:
        return (
            self.is_active
            and self.scheduled_date == on
            and self.scheduled_time == at
            and self.provider_id == provider_id
        )


class OccupancyEntry(BaseModel):
    """By-date view of a booking that carries no client data."""

    provider_name: str
    time: dt.time
    status: BookingStatus

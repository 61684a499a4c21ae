from __future__ import annotations

from datetime import datetime, time
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from receptionist.utils.text import fold

WEEKDAY_NAMES: Dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
    "lunes": 0,
    "martes": 1,
    "miercoles": 2,
    "jueves": 3,
    "viernes": 4,
    "sabado": 5,
    "domingo": 6,
}

DEFAULT_START = time(9, 0)
DEFAULT_END = time(18, 0)
CLOCK_FORMATS = ("%H:%M", "%H:%M:%S")


def parse_weekday(name: str) -> Optional[int]:
    return WEEKDAY_NAMES.get(fold(name))


def parse_clock(value: str) -> time:
    text = value.strip()
    for fmt in CLOCK_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day '{value}', expected HH:MM")


class ServiceProvider(BaseModel):
    """A bookable provider of one tenant."""

    model_config = ConfigDict(frozen=True)

    id: str
    tenant_id: str
    name: str
    role: str = ""
    working_days: FrozenSet[int] = Field(default_factory=frozenset)
    start_time: time = DEFAULT_START
    end_time: time = DEFAULT_END
    slot_duration_minutes: int = 30

    @model_validator(mode="after")
    def _check_schedule(self) -> "ServiceProvider":
        if self.start_time >= self.end_time:
            raise ValueError(f"Provider {self.id}: start_time must be before end_time")
        if self.slot_duration_minutes <= 0:
            raise ValueError(f"Provider {self.id}: slot_duration_minutes must be positive")
        if any(day not in range(7) for day in self.working_days):
            raise ValueError(f"Provider {self.id}: working_days must be weekdays 0-6")
        return self

    def works_on(self, weekday: int) -> bool:
        return weekday in self.working_days


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: str = ""
    working_days: List[str] = Field(default_factory=list, description="Weekday names, e.g. Monday or lunes")
    start_time: str = "09:00"
    end_time: str = "18:00"
    slot_duration_minutes: int = 30

    @field_validator("working_days")
    @classmethod
    def _check_days(cls, value: List[str]) -> List[str]:
        unknown = [day for day in value if parse_weekday(day) is None]
        if unknown:
            raise ValueError(f"Unknown weekday names: {', '.join(unknown)}")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_clock(cls, value: str) -> str:
        parse_clock(value)
        return value.strip()

    def to_service_provider(self, tenant_id: str) -> ServiceProvider:
        return ServiceProvider(
            id=self.id,
            tenant_id=tenant_id,
            name=self.name,
            role=self.role,
            working_days=frozenset(parse_weekday(day) for day in self.working_days),
            start_time=parse_clock(self.start_time),
            end_time=parse_clock(self.end_time),
            slot_duration_minutes=self.slot_duration_minutes,
        )


class TenantConfiguration(BaseModel):
    """Everything the core needs to know about one business account."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    business_name: str = ""
    business_type: str = Field(default="", description="clinic, salon, workshop, ...")
    address: str = ""
    phone: str = ""
    working_hours: str = ""
    timezone_id: str = "UTC"
    services: List[str] = Field(default_factory=list)
    accepted_insurance: List[str] = Field(default_factory=list)
    pricing: Dict[str, str] = Field(default_factory=dict)
    providers: List[ProviderConfig] = Field(default_factory=list)
    db_type: str = Field(default="in_memory", description="in_memory or mongo")
    custom_settings: Dict[str, str] = Field(default_factory=dict)

    def service_providers(self) -> List[ServiceProvider]:
        return [provider.to_service_provider(self.tenant_id) for provider in self.providers]

from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ThreatLevel(IntEnum):
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class AuditEventType(str, Enum):
    USER_MESSAGE = "user_message"
    AGENT_RESPONSE = "agent_response"
    SECURITY_BLOCK = "security_block"
    OUTPUT_FILTERED = "output_filtered"
    TOOL_CALL = "tool_call"
    BOOKING_CREATED = "booking_created"
    BOOKING_CANCELLED = "booking_cancelled"
    ACCESS_DENIED = "access_denied"


SECURITY_EVENTS = frozenset(
    {
        AuditEventType.SECURITY_BLOCK,
        AuditEventType.OUTPUT_FILTERED,
        AuditEventType.ACCESS_DENIED,
    }
)


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    tenant_id: str
    session_id: str
    timestamp: Optional[datetime] = None
    event_type: AuditEventType
    content: str = ""
    threat_level: Optional[ThreatLevel] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_security_event(self) -> bool:
        return self.event_type in SECURITY_EVENTS

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from receptionist.schemas.audit import AuditEntry
from receptionist.schemas.context import TenantContext


class ChatMessage(BaseModel):
    role: str = Field(..., description="Message role such as user, assistant, system")
    content: str = Field(..., description="Plain text content")


class ChatRequest(BaseModel):
    context: TenantContext
    message: ChatMessage
    history: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    reply: str
    session_id: str
    blocked: bool = False
    threat_level: str = "NONE"
    redacted_items: List[str] = Field(default_factory=list)


class AuditPage(BaseModel):
    tenant_id: str = "all"
    total: int
    entries: List[AuditEntry]
    period: Optional[Dict[str, datetime]] = None

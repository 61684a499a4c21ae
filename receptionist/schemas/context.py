from __future__ import annotations

from pydantic import BaseModel, Field


class TenantContext(BaseModel):
    tenant_id: str = Field(..., description="Tenant (business account) identifier")
    session_id: str | None = Field(
        default=None,
        description="Conversation session identifier; a new one is issued when omitted",
    )
    phone: str | None = Field(
        default=None,
        description="Caller phone number for messaging channels; used to derive the session key",
    )

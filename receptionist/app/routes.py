from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from receptionist.app.config import Settings, get_settings
from receptionist.app.dependencies import get_audit_trail, get_orchestrator
from receptionist.orchestrator.graph import TurnOrchestrator
from receptionist.schemas.chat import AuditPage, ChatRequest, ChatResponse
from receptionist.security.audit import AuditTrail
from receptionist.services.errors import InvalidArgument, NotFound
from receptionist.services.session import session_key_for_phone

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_key(payload: ChatRequest) -> str:
    if payload.context.session_id:
        return payload.context.session_id
    if payload.context.phone:
        return session_key_for_phone(payload.context.phone)
    return str(uuid.uuid4())


@router.get("/health", status_code=status.HTTP_200_OK)
def health(settings: Settings = Depends(get_settings)) -> dict:
    return {"app": settings.app_name, "status": "ok"}


@router.post("/api/v1/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    if not payload.message.content.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required.")
    try:
        session_id = _session_key(payload)
        final_state = orchestrator.run(
            tenant_id=payload.context.tenant_id,
            session_id=session_id,
            message=payload.message.content,
            history=[message.model_dump() for message in payload.history],
        )
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidArgument as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    logger.info(
        "Chat turn handled",
        extra={"tenant_id": final_state.tenant_id, "blocked": final_state.blocked},
    )
    return ChatResponse(
        reply=final_state.reply,
        session_id=session_id,
        blocked=final_state.blocked,
        threat_level=final_state.threat_level.name,
        redacted_items=final_state.redacted_items,
    )


@router.get("/api/v1/audit/session/{session_id}", response_model=AuditPage)
def session_audit(session_id: str, audit: AuditTrail = Depends(get_audit_trail)) -> AuditPage:
    entries = audit.query_session(session_id)
    if not entries:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No audit records for this session.")
    return AuditPage(total=len(entries), entries=entries)


@router.get("/api/v1/audit/security", response_model=AuditPage)
def security_events(
    tenant_id: Optional[str] = None,
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    settings: Settings = Depends(get_settings),
    audit: AuditTrail = Depends(get_audit_trail),
) -> AuditPage:
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=settings.audit_security_window_days)
    entries = audit.query_security(tenant_id, start, end)
    return AuditPage(
        tenant_id=tenant_id or "all",
        total=len(entries),
        entries=entries,
        period={"from": start, "to": end},
    )


@router.get("/api/v1/audit/recent", response_model=AuditPage)
def recent_events(
    tenant_id: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    settings: Settings = Depends(get_settings),
    audit: AuditTrail = Depends(get_audit_trail),
) -> AuditPage:
    entries = audit.query_recent(tenant_id, limit or settings.audit_recent_limit)
    return AuditPage(tenant_id=tenant_id or "all", total=len(entries), entries=entries)

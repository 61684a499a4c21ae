from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from receptionist.schemas.audit import AuditEntry, AuditEventType, ThreatLevel
from receptionist.schemas.booking import utcnow

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class AuditTrail:
    """Append-only, in-process audit log shared by all tenants."""

    def __init__(self) -> None:
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> AuditEntry:
        # Id and timestamp always come from the trail, never from the caller.
        stored = entry.model_copy(
            update={
                "id": uuid.uuid4().hex,
                "timestamp": utcnow(),
                "metadata": dict(entry.metadata),
            }
        )
        with self._lock:
            self._entries.append(stored)
        logger.debug(
            "Audit entry appended",
            extra={"event_type": stored.event_type.value, "tenant_id": stored.tenant_id},
        )
        return stored

    def log(
        self,
        tenant_id: str,
        session_id: str,
        event_type: AuditEventType,
        content: str = "",
        threat_level: Optional[ThreatLevel] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> AuditEntry:
        return self.append(
            AuditEntry(
                tenant_id=tenant_id,
                session_id=session_id,
                event_type=event_type,
                content=content,
                threat_level=threat_level,
                metadata=metadata or {},
            )
        )

    def query_session(self, session_id: str) -> List[AuditEntry]:
        entries = [entry for entry in self._snapshot() if entry.session_id == session_id]
        return sorted(entries, key=lambda entry: entry.timestamp)

    def query_security(
        self,
        tenant_id: Optional[str],
        start: datetime,
        end: datetime,
    ) -> List[AuditEntry]:
        entries = [
            entry
            for entry in self._for_tenant(tenant_id)
            if entry.is_security_event and _as_utc(start) <= entry.timestamp <= _as_utc(end)
        ]
        return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)

    def query_recent(self, tenant_id: Optional[str] = None, limit: int = 100) -> List[AuditEntry]:
        entries = sorted(self._for_tenant(tenant_id), key=lambda entry: entry.timestamp, reverse=True)
        return entries[: max(limit, 0)]

    def _for_tenant(self, tenant_id: Optional[str]) -> List[AuditEntry]:
        entries = self._snapshot()
        if not tenant_id or not tenant_id.strip():
            return entries
        wanted = tenant_id.strip().lower()
        return [entry for entry in entries if entry.tenant_id.lower() == wanted]

    def _snapshot(self) -> List[AuditEntry]:
        with self._lock:
            return list(self._entries)

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from receptionist.schemas.audit import AuditEntry, AuditEventType, ThreatLevel
from receptionist.security import audit as audit_module
from receptionist.security.audit import AuditTrail

START = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def trail(monkeypatch) -> AuditTrail:
    ticks = iter(START + timedelta(minutes=minute) for minute in range(1000))
    monkeypatch.setattr(audit_module, "utcnow", lambda: next(ticks))
    return AuditTrail()


def _seed(trail: AuditTrail) -> None:
    trail.log("clinic", "s1", AuditEventType.USER_MESSAGE, "hola", ThreatLevel.NONE)  # 12:00
    trail.log("clinic", "s1", AuditEventType.SECURITY_BLOCK, "blocked", ThreatLevel.HIGH)  # 12:01
    trail.log("salon", "s2", AuditEventType.OUTPUT_FILTERED, "filtered")  # 12:02
    trail.log("Clinic", "s3", AuditEventType.ACCESS_DENIED, "denied")  # 12:03
    trail.log("clinic", "s1", AuditEventType.AGENT_RESPONSE, "reply")  # 12:04


def test_append_assigns_identity_and_timestamp(trail: AuditTrail):
    entry = AuditEntry(
        id="caller-id",
        tenant_id="clinic",
        session_id="s1",
        timestamp=datetime(2000, 1, 1, tzinfo=timezone.utc),
        event_type=AuditEventType.TOOL_CALL,
        metadata={"tool": "find_available_slots"},
    )

    stored = trail.append(entry)

    assert stored.id != "caller-id"
    assert len(stored.id) == 32
    assert stored.timestamp == START
    assert stored.metadata == {"tool": "find_available_slots"}
    assert stored.metadata is not entry.metadata


def test_entries_are_immutable(trail: AuditTrail):
    stored = trail.log("clinic", "s1", AuditEventType.USER_MESSAGE, "hola")

    with pytest.raises(ValidationError):
        stored.content = "changed"


def test_query_session_is_chronological(trail: AuditTrail):
    _seed(trail)

    entries = trail.query_session("s1")

    assert [entry.event_type for entry in entries] == [
        AuditEventType.USER_MESSAGE,
        AuditEventType.SECURITY_BLOCK,
        AuditEventType.AGENT_RESPONSE,
    ]
    assert trail.query_session("unknown") == []


def test_query_security_filters_tenant_and_window(trail: AuditTrail):
    _seed(trail)

    entries = trail.query_security("CLINIC", START, START + timedelta(hours=1))

    assert [entry.event_type for entry in entries] == [
        AuditEventType.ACCESS_DENIED,
        AuditEventType.SECURITY_BLOCK,
    ]

    narrow = trail.query_security("clinic", START + timedelta(minutes=2), START + timedelta(minutes=10))
    assert [entry.session_id for entry in narrow] == ["s3"]


def test_query_security_accepts_naive_bounds_and_all_tenants(trail: AuditTrail):
    _seed(trail)

    entries = trail.query_security(None, datetime(2025, 3, 3, 11, 0), datetime(2025, 3, 3, 13, 0))

    assert len(entries) == 3
    assert {entry.tenant_id for entry in entries} == {"clinic", "salon", "Clinic"}


def test_query_recent_is_newest_first_and_limited(trail: AuditTrail):
    _seed(trail)

    recent = trail.query_recent("clinic", limit=2)

    assert [entry.event_type for entry in recent] == [
        AuditEventType.AGENT_RESPONSE,
        AuditEventType.ACCESS_DENIED,
    ]
    assert len(trail.query_recent()) == 5
    assert trail.query_recent(" ", limit=1)[0].event_type == AuditEventType.AGENT_RESPONSE

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from receptionist.schemas.audit import ThreatLevel


@dataclass
class TurnState:
    tenant_id: str = ""
    session_id: str = ""
    user_message: str = ""
    history: List[Dict[str, str]] = field(default_factory=list)
    threat_level: ThreatLevel = ThreatLevel.NONE
    blocked: bool = False
    guard_rule: Optional[str] = None
    raw_reply: str = ""
    reply: str = ""
    redacted_items: List[str] = field(default_factory=list)

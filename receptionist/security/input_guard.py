from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from receptionist.schemas.audit import ThreatLevel

logger = logging.getLogger(__name__)

GENERIC_REJECTION = (
    "I can only help with booking appointments and questions about our services. "
    "Would you like to schedule an appointment or do you have a question?"
)

_FLAGS = re.IGNORECASE


@dataclass(frozen=True)
class GuardResult:
    is_allowed: bool
    rejection_reason: Optional[str]
    level: ThreatLevel
    # Internal only; never returned to the end user.
    matched_rule: Optional[str] = None


@dataclass(frozen=True)
class ThreatRule:
    pattern: re.Pattern
    reason: str
    level: ThreatLevel

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(pattern: str, reason: str, level: ThreatLevel, flags: int = _FLAGS) -> ThreatRule:
    return ThreatRule(re.compile(pattern, flags), reason, level)


HIGH_THREAT_RULES: Tuple[ThreatRule, ...] = (
    # Role override
    _rule(
        r"ignor[ae]\s+(?:todas\s+)?(?:las\s+)?(?:tus\s+)?(?:instrucciones|reglas|restricciones)",
        "Attempt to override system instructions (es)",
        ThreatLevel.HIGH,
    ),
    _rule(
        r"ignore\s+(?:all\s+)?(?:(?:the|your)\s+)?(?:previous|prior|above|earlier)?\s*(?:instructions|rules|prompts)",
        "Attempt to override system instructions (en)",
        ThreatLevel.HIGH,
    ),
    _rule(
        r"(?:olvida|descarta)\s+(?:todas?\s+)?(?:los\s+|las\s+|tus\s+)?(?:instrucciones|reglas|directivas|indicaciones)",
        "Attempt to discard system directives (es)",
        ThreatLevel.HIGH,
    ),
    _rule(
        r"(?:forget|disregard)\s+(?:all\s+)?(?:(?:the|your)\s+)?(?:previous\s+|prior\s+)?(?:instructions|rules|directives)",
        "Attempt to discard system directives (en)",
        ThreatLevel.HIGH,
    ),
    _rule(
        r"(?:act[uú]a|comp[oó]rtate|finge|pretende)\s+(?:como|ser|que\s+eres)\s+",
        "Attempt to change the agent role (es)",
        ThreatLevel.HIGH,
    ),
    _rule(
        r"you\s+are\s+now|from\s+now\s+on\s+you\s+are|new\s+role|pretend\s+(?:to\s+be|you\s+are)|act\s+as\s+(?:an?\s+)?(?:unrestricted|different|new)",
        "Attempt to reassign the agent role (en)",
        ThreatLevel.HIGH,
    ),
    # System prompt extraction
    _rule(
        r"(?:mu[eé]strame|muestra|dime|revela|comparte|repite|copia)\s+(?:tu|tus|el|las?|los)\s+(?:prompt|instrucciones|system\s*prompt|configuraci[oó]n)",
        "Attempt to extract the system prompt (es)",
        ThreatLevel.HIGH,
    ),
    _rule(
        r"(?:show|reveal|display|print|repeat|share)\s+(?:me\s+)?(?:your\s+|the\s+)?(?:system\s*)?(?:prompt|instructions|config)",
        "Attempt to extract the system prompt (en)",
        ThreatLevel.HIGH,
    ),
    _rule(
        r"cu[aá]les\s+son\s+tus\s+(?:instrucciones|reglas|directivas)|what\s+are\s+your\s+(?:instructions|rules|directives)",
        "Attempt to enumerate instructions",
        ThreatLevel.HIGH,
    ),
    # Bulk data exfiltration
    _rule(
        r"(?:lista|muestra|dame|dime)(?:me)?\s+(?:tod[oa]s\s+(?:l[oa]s\s+)?(?:nombres|pacientes|clientes|citas|datos)|(?:l[oa]s\s+)?(?:pacientes|clientes)\b)",
        "Attempt to extract bulk data (es)",
        ThreatLevel.HIGH,
    ),
    _rule(
        r"(?:list|show|give|tell)\s+(?:me\s+)?(?:all\s+(?:of\s+)?(?:the\s+)?(?:patients|clients|customers|names|appointments|bookings|data)"
        r"|(?:the\s+|your\s+)?(?:patients|clients|customers)\b|every\s+(?:patient|client|customer|appointment|booking))",
        "Attempt to extract bulk data (en)",
        ThreatLevel.HIGH,
    ),
    # Known jailbreak tokens; "DAN" is matched case-sensitively so Spanish "dan" stays clean.
    _rule(r"\bDAN\b", "DAN jailbreak token", ThreatLevel.HIGH, flags=0),
    _rule(r"do\s+anything\s+now|jailbreak", "Jailbreak phrase", ThreatLevel.HIGH),
)

MEDIUM_THREAT_RULES: Tuple[ThreatRule, ...] = (
    _rule(
        r"qu[eé]\s+puedes\s+hacer\s+realmente|cu[aá]les\s+son\s+tus\s+l[ií]mites|what\s+can\s+you\s+really\s+do|what\s+are\s+your\s+limits",
        "Probing system limits",
        ThreatLevel.MEDIUM,
    ),
    _rule(
        r"(?:tienes\s+acceso|puedes\s+acceder)\s+a\s+(?:l[oa]s?\s+|tus\s+)?(?:base\s+de\s+datos|sistema|servidor|registros|archivos|expedientes|datos)"
        r"|(?:do\s+you\s+have\s+access\s+to|can\s+you\s+access)\s+(?:the\s+|your\s+|other\s+)?(?:database|system|server|records|files|data)",
        "Probing data access capabilities",
        ThreatLevel.MEDIUM,
    ),
    _rule(
        r"modo\s+(?:desarrollo|desarrollador|debug|administrador|prueba)|(?:developer|debug|test|admin|god)\s+mode",
        "Attempt to enable a special mode",
        ThreatLevel.MEDIUM,
    ),
    _rule(
        r"\bsim[uú]la\b|hypothetically|hipot[eé]ticamente|imagina\s+que|imagine\s+that",
        "Hypothetical framing",
        ThreatLevel.MEDIUM,
    ),
)

SEQUENCE_MARKERS: Tuple[re.Pattern, ...] = (
    re.compile(r"\bstep\s*\d+\b", _FLAGS),
    re.compile(r"\bpaso\s*\d+\b", _FLAGS),
    re.compile(r"\b(?:primero|segundo|tercero|luego|despu[eé]s)\b", _FLAGS),
    re.compile(r"\b(?:first|second|third|then|next|finally)\b", _FLAGS),
)


class InputThreatGuard:
    """Pattern-based screening of user messages before they reach the agent."""

    def __init__(
        self,
        length_threshold: int = 1000,
        marker_threshold: int = 3,
        rules: Sequence[ThreatRule] | None = None,
    ) -> None:
        self._length_threshold = length_threshold
        self._marker_threshold = marker_threshold
        if rules is None:
            rules = HIGH_THREAT_RULES + MEDIUM_THREAT_RULES
        # High rules are always evaluated before medium ones.
        self._rules = tuple(sorted(rules, key=lambda rule: -rule.level))

    def analyze(self, message: str) -> GuardResult:
        if not message or not message.strip():
            return GuardResult(True, None, ThreatLevel.NONE)

        text = message.strip()
        for rule in self._rules:
            if rule.matches(text):
                logger.warning("Input blocked", extra={"rule": rule.reason, "level": rule.level.name})
                return GuardResult(False, GENERIC_REJECTION, rule.level, matched_rule=rule.reason)

        if len(text) > self._length_threshold and self._count_markers(text) >= self._marker_threshold:
            reason = "Long multi-step instruction payload"
            logger.warning("Input blocked", extra={"rule": reason, "level": ThreatLevel.MEDIUM.name})
            return GuardResult(False, GENERIC_REJECTION, ThreatLevel.MEDIUM, matched_rule=reason)

        return GuardResult(True, None, ThreatLevel.NONE)

    def _count_markers(self, text: str) -> int:
        return sum(len(pattern.findall(text)) for pattern in SEQUENCE_MARKERS)

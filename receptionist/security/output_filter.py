from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import FrozenSet, Tuple

logger = logging.getLogger(__name__)

SAFE_REPLY = (
    "Sorry, can I help you with a question about our services, "
    "or would you like to book an appointment?"
)

_FLAGS = re.IGNORECASE


@dataclass(frozen=True)
class FilterResult:
    filtered_content: str
    was_modified: bool
    redacted_items: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class StructuralRule:
    """A rule whose match disqualifies the whole reply."""

    pattern: re.Pattern
    label: str


@dataclass(frozen=True)
class RedactionRule:
    pattern: re.Pattern
    replacement: str
    label: str


PROMPT_LEAK_RULES: Tuple[StructuralRule, ...] = tuple(
    StructuralRule(re.compile(pattern, _FLAGS), "prompt_leak")
    for pattern in (
        r"#\s*IDENTI(?:DAD|TY)\s+(?:Y|AND)\s+CONTEXT(?:O)?",
        r"RESTRICCI[OÓ]N\s+PROFESIONAL\s+ABSOLUTA|ABSOLUTE\s+PROFESSIONAL\s+RESTRICTION",
        r"PROTOCOLO\s+DE\s+SEGURIDAD|SECURITY\s+PROTOCOL",
        r"INSTRUCCIONES\s+DE\s+SEGURIDAD\s+INMUTABLES|IMMUTABLE\s+SECURITY\s+INSTRUCTIONS",
        r"\b(?:AppointmentDesk|BusinessInfoService)[.\-]\w+",
        r"\b(?:tool_calls?|function_call|ToolCallBehavior|KernelFunction)\b",
    )
)

ROLE_VIOLATION_RULES: Tuple[StructuralRule, ...] = tuple(
    StructuralRule(re.compile(pattern, _FLAGS), "role_violation")
    for pattern in (
        r"como\s+(?:un\s+)?(?:modelo|inteligencia\s+artificial|IA|AI)\b",
        r"\bas\s+an?\s+(?:AI|language\s+model)\b|\bI(?:'m|\s+am)\s+(?:just\s+)?an?\s+(?:AI|language\s+model)\b",
        r"seg[uú]n\s+mi\s+entrenamiento|(?:according\s+to|based\s+on)\s+my\s+training(?:\s+data)?",
    )
)

# Document numbers go first so context-tagged IDs are not reported as phones.
PII_RULES: Tuple[RedactionRule, ...] = (
    RedactionRule(
        re.compile(
            r"(\b(?:c[eé]dula|CC|documento|document|DNI|ID|identificaci[oó]n|identification|pasaporte|passport)"
            r"(?:\s+(?:number|n[uú]mero|no\.?))?[:\s#]*)\d{6,10}\b",
            _FLAGS,
        ),
        r"\1[DOCUMENT REDACTED]",
        "document_id",
    ),
    RedactionRule(
        re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", _FLAGS),
        "[EMAIL REDACTED]",
        "email",
    ),
    # International format with country code, e.g. +57 300 123 4567 or +1 (555) 222-3333
    RedactionRule(
        re.compile(r"\+\d{1,3}[\s.-]?\(?\d{1,4}\)?[\s.-]?\d{3,4}[\s.-]?\d{3,4}(?!\d)"),
        "[PHONE REDACTED]",
        "phone",
    ),
    # Local mobile and landline formats: 300 123 4567, 601-555-1234, (601) 555 1234
    RedactionRule(
        re.compile(r"(?<!\d)(?:\(\d{3}\)\s?|\d{3}[\s.-]?)\d{3}[\s.-]?\d{4}(?!\d)"),
        "[PHONE REDACTED]",
        "phone",
    ),
)


class OutputSafetyFilter:
    """Screens agent replies for prompt leaks, role breaks and PII."""

    def __init__(
        self,
        structural_rules: Tuple[StructuralRule, ...] = PROMPT_LEAK_RULES + ROLE_VIOLATION_RULES,
        pii_rules: Tuple[RedactionRule, ...] = PII_RULES,
        safe_reply: str = SAFE_REPLY,
    ) -> None:
        self._structural_rules = structural_rules
        self._pii_rules = pii_rules
        self._safe_reply = safe_reply

    def filter(self, agent_reply: str, tenant_id: str) -> FilterResult:
        if not agent_reply or not agent_reply.strip():
            return FilterResult(agent_reply, False, frozenset())

        for rule in self._structural_rules:
            if rule.pattern.search(agent_reply):
                logger.warning("Agent reply replaced", extra={"tenant_id": tenant_id, "label": rule.label})
                return FilterResult(
                    self._safe_reply,
                    self._safe_reply != agent_reply,
                    frozenset({rule.label}),
                )

        filtered = agent_reply
        labels = set()
        for rule in self._pii_rules:
            filtered, count = rule.pattern.subn(rule.replacement, filtered)
            if count:
                labels.add(rule.label)

        if labels:
            logger.info("PII masked in agent reply", extra={"tenant_id": tenant_id, "labels": sorted(labels)})
        return FilterResult(filtered, filtered != agent_reply, frozenset(labels))

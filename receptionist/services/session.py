from __future__ import annotations

import hashlib
import re
import threading
import time
import uuid
from typing import Callable, Dict, Set

from receptionist.schemas.booking import BookingRecord
from receptionist.services.errors import InvalidArgument


class SessionOwnershipGuard:
    """Identities proven during one conversation.

    Validation only ever grows within a session and all comparisons ignore
    case. One instance belongs to exactly one session.
    """

    def __init__(self, session_id: str = "") -> None:
        self.session_id = session_id
        self._client_ids: Set[str] = set()
        self._codes: Set[str] = set()

    def validate_client(self, client_id: str) -> None:
        if not client_id or not client_id.strip():
            raise InvalidArgument("Client id must not be empty")
        self._client_ids.add(_key(client_id))

    def validate_code(self, code: str) -> None:
        if not code or not code.strip():
            raise InvalidArgument("Confirmation code must not be empty")
        self._codes.add(_key(code))

    def is_client_validated(self, client_id: str) -> bool:
        return bool(client_id and client_id.strip()) and _key(client_id) in self._client_ids

    def is_code_validated(self, code: str) -> bool:
        return bool(code and code.strip()) and _key(code) in self._codes

    def can_access(self, booking: BookingRecord) -> bool:
        if self.is_code_validated(booking.confirmation_code):
            return True
        return booking.client_id is not None and self.is_client_validated(booking.client_id)

    def grant(self, booking: BookingRecord, client_id: str | None = None) -> None:
        self.validate_code(booking.confirmation_code)
        owner = client_id or booking.client_id
        if owner:
            self.validate_client(owner)


def _key(value: str) -> str:
    return value.strip().casefold()


def session_key_for_phone(phone: str) -> str:
    """Deterministic session key for messaging channels keyed by phone number."""
    digits = re.sub(r"[^\d+]", "", phone or "")
    if not digits:
        raise InvalidArgument("Phone number must contain digits")
    digest = hashlib.sha256(digits.encode("utf-8")).digest()
    return str(uuid.UUID(bytes=digest[:16]))


class SessionStore:
    """Keeps one ownership guard per live conversation.

    A session that has not been touched for `idle_timeout` seconds is over;
    its guard is discarded on the next access to the store.
    """

    def __init__(self, idle_timeout: float = 1800.0, clock: Callable[[], float] = time.monotonic) -> None:
        if idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: Dict[str, SessionOwnershipGuard] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> SessionOwnershipGuard:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            guard = self._sessions.get(session_id)
            if guard is None:
                guard = SessionOwnershipGuard(session_id)
                self._sessions[session_id] = guard
            self._last_seen[session_id] = now
            return guard

    def end(self, session_id: str) -> bool:
        with self._lock:
            self._last_seen.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            self._evict_idle(self._clock())
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            self._evict_idle(self._clock())
            return len(self._sessions)

    def _evict_idle(self, now: float) -> None:
        expired = [key for key, seen in self._last_seen.items() if now - seen >= self._idle_timeout]
        for key in expired:
            del self._last_seen[key]
            del self._sessions[key]

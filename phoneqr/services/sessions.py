# Phone verification session storage (creation, lookup, the verified flip,
# and expiry sweeping).


import secrets
import string
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Protocol

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class PhoneSession:
    session_id: str
    phone: str
    created_at: int  # epoch ms
    verified: bool = False
    verified_at: int | None = None

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.created_at


class MarkOutcome(str, Enum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"
    ALREADY_VERIFIED = "already_verified"


@dataclass
class MarkResult:
    outcome: MarkOutcome
    session: PhoneSession | None = None


class SessionStore(Protocol):
    ttl_seconds: int

    def now_ms(self) -> int:
        """Current time in epoch milliseconds, as seen by the store."""

    def create(self, phone: str) -> PhoneSession:
        """Create and hold a new unverified session for a normalized phone."""

    def get(self, s_id: str) -> PhoneSession | None:
        """Snapshot of a live session, None when unknown or expired."""

    def mark_verified(self, s_id: str) -> MarkResult:
        """Flip a live session to verified exactly once."""

    def sweep(self) -> int:
        """Physically remove expired sessions, returning how many went."""

    def live_sessions(self) -> list[PhoneSession]:
        """Snapshots of all live sessions, oldest first."""

    def __len__(self) -> int:
        """Number of sessions held, including expired ones not yet swept."""


def generate_session_id(now_ms: int) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"sess_{now_ms}_{suffix}"


class InMemorySessionStore:
    """
    Dict-backed SessionStore. Every operation is a single critical section
    under one lock, so a verification is never half visible and the sweep
    cannot drop a record in the middle of a mutation.
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, PhoneSession] = {}
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_live(self, session: PhoneSession, now_ms: int) -> bool:
        return session.age_ms(now_ms) < self.ttl_seconds * 1000

    def _live(self, s_id: str, now_ms: int) -> PhoneSession | None:
        session = self._sessions.get(s_id)
        if session is None or not self._is_live(session, now_ms):
            return None
        return session

    def create(self, phone: str) -> PhoneSession:
        now = self.now_ms()
        with self._lock:
            s_id = generate_session_id(now)
            while s_id in self._sessions:
                s_id = generate_session_id(now)
            session = PhoneSession(session_id=s_id, phone=phone, created_at=now)
            self._sessions[s_id] = session
            return replace(session)

    def get(self, s_id: str) -> PhoneSession | None:
        now = self.now_ms()
        with self._lock:
            session = self._live(s_id, now)
            return replace(session) if session else None

    def mark_verified(self, s_id: str) -> MarkResult:
        now = self.now_ms()
        with self._lock:
            session = self._live(s_id, now)
            if session is None:
                return MarkResult(MarkOutcome.NOT_FOUND)
            if session.verified:
                return MarkResult(MarkOutcome.ALREADY_VERIFIED, replace(session))
            session.verified = True
            session.verified_at = now
            return MarkResult(MarkOutcome.UPDATED, replace(session))

    def sweep(self) -> int:
        now = self.now_ms()
        with self._lock:
            expired = [s_id for s_id, s in self._sessions.items() if not self._is_live(s, now)]
            for s_id in expired:
                del self._sessions[s_id]
            return len(expired)

    def live_sessions(self) -> list[PhoneSession]:
        now = self.now_ms()
        with self._lock:
            live = [replace(s) for s in self._sessions.values() if self._is_live(s, now)]
        return sorted(live, key=lambda s: s.created_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

"""
Session registry: bearer tokens mapped to owners.

Sessions live in memory and are persisted through the RecordStore as the
process-wide ``sessions`` record. Validation slides the expiry window by
bumping ``last_activity`` in memory only; the periodic flush and the
shutdown flush make that durable. Issue and revoke persist immediately.

A session is expired once ``now - last_activity`` exceeds the TTL. The
boundary itself is not expired.
"""

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .records import SessionEntry, SessionSet, load_model, save_model
from .record_store import RecordStore
from .scheduler import PeriodicTask
from .types import format_utc, parse_utc_timestamp

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)
TOKEN_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """An authenticated session as seen by callers."""
    token: str
    owner: str
    email: str
    username: str
    created_at: datetime
    last_activity: datetime


class SessionRegistry:
    """
    In-memory session set with explicit persistence.

    Args:
        store: RecordStore holding the ``sessions`` record
        ttl: Inactivity period after which a session expires
        clock: Returns the current aware UTC datetime (injectable for tests)
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, SessionEntry] = {}
        self._dirty = False

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def load(self) -> int:
        """Replace the in-memory set with the persisted one. Returns its size."""
        persisted = load_model(self._store, None, SessionSet)
        with self._lock:
            self._sessions = dict(persisted.root)
            self._dirty = False
            count = len(self._sessions)
        logger.info("Loaded %d sessions", count)
        return count

    def issue(self, owner: str, *, email: str = "", username: str = "") -> str:
        """Create a session for ``owner`` and persist it. Returns the token."""
        now = format_utc(self._clock())
        with self._lock:
            token = secrets.token_hex(TOKEN_BYTES)
            while token in self._sessions:
                token = secrets.token_hex(TOKEN_BYTES)
            self._sessions[token] = SessionEntry(
                user_id=owner,
                email=email,
                username=username,
                created_at=now,
                last_activity=now,
            )
        self.flush()
        return token

    def validate(self, token: Optional[str]) -> Optional[Session]:
        """Look up a token, sliding its expiry. Returns None if unknown.

        An entry whose timestamps cannot be parsed is dropped and treated
        as unknown.
        """
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            try:
                self._to_session(token, entry)
            except ValueError as e:
                logger.warning("Dropping session with unreadable timestamps: %s", e)
                del self._sessions[token]
                self._dirty = True
                return None
            entry.last_activity = format_utc(self._clock())
            self._dirty = True
            return self._to_session(token, entry)

    def peek(self, token: str) -> Optional[Session]:
        """Look up a token without touching its activity time."""
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            try:
                return self._to_session(token, entry)
            except ValueError:
                return None

    def revoke(self, token: Optional[str]) -> bool:
        """Delete a session and persist immediately."""
        if not token:
            return False
        with self._lock:
            removed = self._sessions.pop(token, None) is not None
        if removed:
            self.flush()
        return removed

    def sweep_expired(self) -> int:
        """Remove expired sessions; persist if any were removed."""
        now = self._clock()
        with self._lock:
            expired = [
                token for token, entry in self._sessions.items()
                if self._is_expired(entry, now)
            ]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.info("Cleaned up %d expired sessions", len(expired))
            self.flush()
        return len(expired)

    def flush(self) -> None:
        """Persist the in-memory set. Raises StorageFailure."""
        with self._store.lock(None, SessionSet.RECORD_NAME):
            with self._lock:
                snapshot = SessionSet(dict(self._sessions))
                self._dirty = False
            save_model(self._store, None, snapshot)

    def flush_if_dirty(self) -> bool:
        with self._lock:
            dirty = self._dirty
        if dirty:
            self.flush()
        return dirty

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, token: str) -> bool:
        with self._lock:
            return token in self._sessions

    def _is_expired(self, entry: SessionEntry, now: datetime) -> bool:
        try:
            last = parse_utc_timestamp(entry.last_activity)
        except ValueError:
            return True
        return now - last > self._ttl

    @staticmethod
    def _to_session(token: str, entry: SessionEntry) -> Session:
        return Session(
            token=token,
            owner=entry.user_id,
            email=entry.email,
            username=entry.username,
            created_at=parse_utc_timestamp(entry.created_at),
            last_activity=parse_utc_timestamp(entry.last_activity),
        )


class SessionLifecycle:
    """
    Owns the periodic flush and expiry sweep for a SessionRegistry.

    ``start()`` launches both tasks; ``shutdown()`` cancels them and
    performs a final flush.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        flush_interval: float = 300.0,
        sweep_interval: float = 3600.0,
    ):
        self.registry = registry
        self.flush_task = PeriodicTask("session-flush", flush_interval, registry.flush_if_dirty)
        self.sweep_task = PeriodicTask("session-sweep", sweep_interval, registry.sweep_expired)
        self._started = False

    def start(self) -> None:
        self.flush_task.start()
        self.sweep_task.start()
        self._started = True

    def shutdown(self) -> None:
        if not self._started:
            return
        self._started = False
        self.flush_task.cancel()
        self.sweep_task.cancel()
        try:
            self.registry.flush()
        except Exception as e:
            logger.error("Final session flush failed: %s", e)

"""
Session Store for the WhatsApp Concierge bot.

Keeps one Session per sender with TTL expiry, a time-windowed set of
processed message ids, and a lock per sender so read-modify-write of a
session is serialized in delivery order.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from .states import ConversationState
from .tenants import TenantRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

PATCHABLE_FIELDS = ("state", "language", "collected_data")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """Conversation state for one sender."""
    sender_id: str
    tenant_id: str
    state: ConversationState
    language: Optional[str] = None
    collected_data: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    last_active_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender_id": self.sender_id,
            "tenant_id": self.tenant_id,
            "state": self.state.value,
            "language": self.language,
            "collected_data": dict(self.collected_data),
            "created_at": self.created_at.isoformat(),
            "last_active_at": self.last_active_at.isoformat(),
        }


@runtime_checkable
class SessionStore(Protocol):
    """Protocol for session storage."""

    async def get(self, sender_id: str, language_hint: Optional[str] = None) -> Session:
        """Return the sender's session, creating it if needed."""
        ...

    async def patch(self, sender_id: str, update: Dict[str, Any]) -> Session:
        """Merge a partial update into the sender's session."""
        ...

    async def reset(self, sender_id: str) -> Session:
        """Return the session to the main menu with no collected data."""
        ...

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Evict expired sessions and dedupe entries."""
        ...

    def mark_seen(self, message_id: str, now: Optional[datetime] = None) -> bool:
        """Record a message id; False if it was already seen."""
        ...

    def lock(self, sender_id: str) -> asyncio.Lock:
        """Per-sender lock serializing session updates."""
        ...


class InMemorySessionStore:
    """
    Process-wide in-memory session store.

    Sweeping is amortized: `get` calls `maybe_sweep`, which runs a full
    sweep at most once per `sweep_interval_seconds`.
    """

    def __init__(
        self,
        tenants: TenantRegistry,
        require_language_selection: bool = True,
        default_language: str = "en",
        ttl_seconds: int = 6 * 60 * 60,
        dedupe_window_seconds: int = 10 * 60,
        sweep_interval_seconds: int = 2 * 60,
        clock: Clock = utcnow,
    ):
        self.tenants = tenants
        self.require_language_selection = require_language_selection
        self.default_language = default_language
        self.ttl = timedelta(seconds=ttl_seconds)
        self.dedupe_window = timedelta(seconds=dedupe_window_seconds)
        self.sweep_interval = timedelta(seconds=sweep_interval_seconds)
        self._clock = clock

        self._sessions: Dict[str, Session] = {}
        self._seen: Dict[str, datetime] = {}  # message_id -> first seen
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_sweep: Optional[datetime] = None

    # ── Session lifecycle ─────────────────────────────────────────

    def _new_session(self, sender_id: str, language_hint: Optional[str], now: datetime) -> Session:
        if self.require_language_selection:
            state, language = ConversationState.LANGUAGE_SELECT, None
        else:
            state, language = ConversationState.MAIN_MENU, language_hint or self.default_language
        session = Session(
            sender_id=sender_id,
            tenant_id=self.tenants.resolve_id(sender_id),
            state=state,
            language=language,
            created_at=now,
            last_active_at=now,
        )
        logger.info(f"Session created: {sender_id} (tenant={session.tenant_id}, state={state.value})")
        return session

    def _is_expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_active_at > self.ttl

    async def get(self, sender_id: str, language_hint: Optional[str] = None) -> Session:
        now = self._clock()
        await self.maybe_sweep(now)

        session = self._sessions.get(sender_id)
        if session is not None and self._is_expired(session, now):
            logger.info(f"Session expired: {sender_id}")
            session = None
        if session is None:
            session = self._new_session(sender_id, language_hint, now)
            self._sessions[sender_id] = session
        return replace(session, collected_data=dict(session.collected_data))

    async def patch(self, sender_id: str, update: Dict[str, Any]) -> Session:
        unknown = set(update) - set(PATCHABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot patch session fields: {sorted(unknown)}")

        if sender_id not in self._sessions:
            await self.get(sender_id)
        current = self._sessions[sender_id]

        if "collected_data" in update:
            incoming = update["collected_data"]
            data = {} if incoming is None else {**current.collected_data, **incoming}
        else:
            data = dict(current.collected_data)

        updated = replace(
            current,
            state=update.get("state", current.state),
            language=update.get("language", current.language),
            collected_data=data,
            last_active_at=self._clock(),
        )
        self._sessions[sender_id] = updated
        return replace(updated, collected_data=dict(updated.collected_data))

    async def reset(self, sender_id: str) -> Session:
        return await self.patch(sender_id, {
            "state": ConversationState.MAIN_MENU,
            "collected_data": None,
        })

    def peek(self, sender_id: str) -> Optional[Session]:
        """Current session without creating or refreshing it."""
        session = self._sessions.get(sender_id)
        return replace(session, collected_data=dict(session.collected_data)) if session else None

    def count(self) -> int:
        return len(self._sessions)

    # ── Deduplication ─────────────────────────────────────────────

    def mark_seen(self, message_id: str, now: Optional[datetime] = None) -> bool:
        """
        Record a message id. Returns False for a repeat within the window.

        No await between check and insert, so concurrent deliveries of
        the same id on one event loop see exactly one True.
        """
        now = now or self._clock()
        seen_at = self._seen.get(message_id)
        if seen_at is not None and now - seen_at <= self.dedupe_window:
            return False
        self._seen[message_id] = now
        return True

    # ── Locks ─────────────────────────────────────────────────────

    def lock(self, sender_id: str) -> asyncio.Lock:
        lock = self._locks.get(sender_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[sender_id] = lock
        return lock

    # ── Sweeping ──────────────────────────────────────────────────

    async def maybe_sweep(self, now: Optional[datetime] = None) -> bool:
        now = now or self._clock()
        if self._last_sweep is not None and now - self._last_sweep < self.sweep_interval:
            return False
        await self.sweep(now)
        return True

    async def sweep(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock()
        self._last_sweep = now

        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for sender_id in expired:
            del self._sessions[sender_id]

        stale_ids = [mid for mid, ts in self._seen.items() if now - ts > self.dedupe_window]
        for message_id in stale_ids:
            del self._seen[message_id]

        idle_locks = [
            sid for sid, lock in self._locks.items()
            if sid not in self._sessions and not lock.locked()
        ]
        for sender_id in idle_locks:
            del self._locks[sender_id]

        if expired or stale_ids:
            logger.info(
                f"Sweep removed {len(expired)} sessions and {len(stale_ids)} dedupe entries"
            )
        return len(expired)

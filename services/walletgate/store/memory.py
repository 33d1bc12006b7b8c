"""In-process store backends.

Suitable for development and single-process deployments: state is lost on
restart and not shared between workers.
"""

import asyncio
from dataclasses import replace

from walletgate.auth.sessions import Session
from walletgate.models import Identity, Profile
from walletgate.store.protocol import ProfileMutator


class MemoryProfileStore:
    """Dict-backed ProfileStore with one asyncio.Lock per identity key."""

    def __init__(self) -> None:
        self._profiles: dict[str, Profile] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, identity_key: str) -> asyncio.Lock:
        return self._locks.setdefault(identity_key, asyncio.Lock())

    async def get(self, identity_key: str) -> Profile | None:
        return self._profiles.get(identity_key)

    async def update(self, identity_key: str, mutate: ProfileMutator) -> Profile | None:
        async with self._lock_for(identity_key):
            current = await self.get(identity_key)
            updated = mutate(current)
            if updated is None:
                return current
            self._profiles[identity_key] = updated
            return updated

    async def close(self) -> None:
        self._profiles.clear()
        self._locks.clear()


class MemorySessionStore:
    """Dict-backed SessionStore.

    Expired sessions are dropped when read, and swept from the whole table
    whenever a new session is saved.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def _live(self, token: str) -> Session | None:
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.is_expired():
            del self._sessions[token]
            return None
        return session

    def _prune_expired(self) -> None:
        expired = [token for token, s in self._sessions.items() if s.is_expired()]
        for token in expired:
            del self._sessions[token]

    async def get(self, token: str) -> Session | None:
        session = self._live(token)
        # Hand out a copy so callers cannot mutate stored state without save()
        return replace(session) if session is not None else None

    async def save(self, session: Session) -> None:
        if session.token not in self._sessions:
            self._prune_expired()
        if session.is_expired():
            self._sessions.pop(session.token, None)
            return
        self._sessions[session.token] = replace(session)

    async def issue_state(self, token: str, state: str) -> Session | None:
        session = self._live(token)
        if session is None:
            return None
        session.csrf_state = state
        return replace(session)

    async def consume_state(self, token: str) -> str | None:
        session = self._live(token)
        if session is None or session.csrf_state is None:
            return None
        state = session.csrf_state
        session.csrf_state = None
        return state

    async def bind_identity(self, token: str, identity: Identity) -> Session | None:
        session = self._live(token)
        if session is None:
            return None
        session.identity = identity
        return replace(session)

    async def delete(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    async def close(self) -> None:
        self._sessions.clear()

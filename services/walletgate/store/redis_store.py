"""Redis store backends.

Profiles never expire. Sessions are stored with a TTL equal to their
remaining fixed lifetime, so Redis drops them at expiry. Read-modify-write
paths use WATCH/MULTI transactions (see ``watch_update``).
"""

import json

import redis.asyncio as aioredis

from walletgate.auth.sessions import Session
from walletgate.logging_config import get_logger
from walletgate.models import Identity, Profile
from walletgate.redis.client import watch_update
from walletgate.store.protocol import ProfileMutator

logger = get_logger(__name__)

PROFILE_PREFIX = "wg:profile:"
SESSION_PREFIX = "wg:session:"


class RedisProfileStore:
    """ProfileStore backed by one JSON document per identity key."""

    def __init__(self, redis: aioredis.Redis, max_update_retries: int = 10) -> None:
        self._redis = redis
        self._max_update_retries = max_update_retries

    async def get(self, identity_key: str) -> Profile | None:
        raw = await self._redis.get(PROFILE_PREFIX + identity_key)
        if raw is None:
            return None
        return Profile.from_dict(json.loads(raw))

    async def update(self, identity_key: str, mutate: ProfileMutator) -> Profile | None:
        def apply(doc):  # type: ignore[no-untyped-def]
            current = Profile.from_dict(doc) if doc is not None else None
            updated = mutate(current)
            return updated.to_dict() if updated is not None else None

        _, stored = await watch_update(
            self._redis,
            PROFILE_PREFIX + identity_key,
            apply,
            max_attempts=self._max_update_retries,
        )
        return Profile.from_dict(stored) if stored is not None else None

    async def close(self) -> None:
        """Connection pool is owned by walletgate.redis.client."""


class RedisSessionStore:
    """SessionStore backed by one JSON document per session token."""

    def __init__(self, redis: aioredis.Redis, max_update_retries: int = 10) -> None:
        self._redis = redis
        self._max_update_retries = max_update_retries

    async def get(self, token: str) -> Session | None:
        raw = await self._redis.get(SESSION_PREFIX + token)
        if raw is None:
            return None
        session = Session.from_dict(token, json.loads(raw))
        if session.is_expired():
            return None
        return session

    async def save(self, session: Session) -> None:
        ttl = session.remaining_ttl()
        if ttl <= 0:
            await self._redis.delete(SESSION_PREFIX + session.token)
            return
        await self._redis.set(
            SESSION_PREFIX + session.token, json.dumps(session.to_dict()), ex=ttl
        )

    async def issue_state(self, token: str, state: str) -> Session | None:
        def set_state(doc):  # type: ignore[no-untyped-def]
            if doc is None:
                return None
            return {**doc, "csrf_state": state}

        _, stored = await watch_update(
            self._redis,
            SESSION_PREFIX + token,
            set_state,
            keep_ttl=True,
            max_attempts=self._max_update_retries,
        )
        if stored is None:
            return None
        return Session.from_dict(token, stored)

    async def consume_state(self, token: str) -> str | None:
        def clear_state(doc):  # type: ignore[no-untyped-def]
            if doc is None or doc.get("csrf_state") is None:
                return None
            return {**doc, "csrf_state": None}

        previous, _ = await watch_update(
            self._redis,
            SESSION_PREFIX + token,
            clear_state,
            keep_ttl=True,
            max_attempts=self._max_update_retries,
        )
        if previous is None:
            return None
        return previous.get("csrf_state")

    async def bind_identity(self, token: str, identity: Identity) -> Session | None:
        def set_identity(doc):  # type: ignore[no-untyped-def]
            if doc is None:
                return None
            return {
                **doc,
                "identity": {
                    "provider_id": identity.provider_id,
                    "display_name": identity.display_name,
                },
            }

        _, stored = await watch_update(
            self._redis,
            SESSION_PREFIX + token,
            set_identity,
            keep_ttl=True,
            max_attempts=self._max_update_retries,
        )
        if stored is None:
            return None
        return Session.from_dict(token, stored)

    async def delete(self, token: str) -> bool:
        deleted = await self._redis.delete(SESSION_PREFIX + token)
        return deleted > 0

    async def close(self) -> None:
        """Connection pool is owned by walletgate.redis.client."""

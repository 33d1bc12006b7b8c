"""
Session and profile store layer for WalletGate.

Provides init_stores() / close_stores() for app lifespan and
get_profile_store() / get_session_store() as FastAPI dependencies.
"""

from __future__ import annotations

from walletgate.config import StoreBackend, settings
from walletgate.logging_config import get_logger
from walletgate.store.protocol import ProfileStore, SessionStore

logger = get_logger(__name__)

# Module-level store instances
_profile_store: ProfileStore | None = None
_session_store: SessionStore | None = None


async def init_stores() -> None:
    """Initialize the store backends based on configuration.

    Called during app startup (lifespan). The redis backend expects
    init_redis() to have run first.
    """
    global _profile_store, _session_store  # noqa: PLW0603
    cfg = settings.store

    match cfg.backend:
        case StoreBackend.MEMORY:
            from walletgate.store.memory import MemoryProfileStore, MemorySessionStore

            _profile_store = MemoryProfileStore()
            _session_store = MemorySessionStore()
            logger.info("Stores initialized", backend="memory")

        case StoreBackend.REDIS:
            from walletgate.redis.client import get_redis_client
            from walletgate.store.redis_store import RedisProfileStore, RedisSessionStore

            redis = get_redis_client()
            _profile_store = RedisProfileStore(redis, cfg.max_update_retries)
            _session_store = RedisSessionStore(redis, cfg.max_update_retries)
            logger.info("Stores initialized", backend="redis")


async def close_stores() -> None:
    """Close the store backends and release resources.

    Called during app shutdown (lifespan).
    """
    global _profile_store, _session_store  # noqa: PLW0603
    if _profile_store is not None:
        await _profile_store.close()
        _profile_store = None
    if _session_store is not None:
        await _session_store.close()
        _session_store = None
    logger.info("Stores closed")


def get_profile_store() -> ProfileStore:
    """FastAPI dependency that returns the profile store.

    Raises RuntimeError if stores have not been initialized.
    """
    if _profile_store is None:
        raise RuntimeError("Stores not initialized; call init_stores() first")
    return _profile_store


def get_session_store() -> SessionStore:
    """FastAPI dependency that returns the session store."""
    if _session_store is None:
        raise RuntimeError("Stores not initialized; call init_stores() first")
    return _session_store


def stores_ready() -> bool:
    """Whether both stores are initialized (readiness check)."""
    return _profile_store is not None and _session_store is not None

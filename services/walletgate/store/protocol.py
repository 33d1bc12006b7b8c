"""
Store protocols for WalletGate.

Defines the ProfileStore and SessionStore Protocols that every backend must
satisfy. Both are key-value abstractions; neither knows about HTTP or OAuth.
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from walletgate.auth.sessions import Session
from walletgate.models import Identity, Profile

ProfileMutator = Callable[[Profile | None], Profile | None]


@runtime_checkable
class ProfileStore(Protocol):
    """Identity key -> profile record.

    All methods are async. Implementations must satisfy this interface
    structurally (duck typing); no inheritance required.
    """

    async def get(self, identity_key: str) -> Profile | None:
        """Return the stored profile, or None if none exists."""
        ...

    async def update(self, identity_key: str, mutate: ProfileMutator) -> Profile | None:
        """Atomically read-modify-write the profile for ``identity_key``.

        ``mutate`` receives the current record (None if absent) and returns the
        record to store, or None to leave the store untouched. Writes for the
        same key are serialized: no concurrent update is lost. Writes for
        different keys do not block each other.

        Returns:
            The stored record after the call.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...


@runtime_checkable
class SessionStore(Protocol):
    """Session token -> server-side session state."""

    async def get(self, token: str) -> Session | None:
        """Look up a session. Returns None if not found or expired."""
        ...

    async def save(self, session: Session) -> None:
        """Persist a session until its fixed expiry."""
        ...

    async def issue_state(self, token: str, state: str) -> Session | None:
        """Atomically set the session's pending CSRF state, leaving other fields as stored.

        Returns the updated session, or None if it no longer exists.
        """
        ...

    async def consume_state(self, token: str) -> str | None:
        """Atomically clear the session's pending CSRF state and return it.

        Returns None when the session is missing or no state was pending.
        Two concurrent callers can never both receive the same state.
        """
        ...

    async def bind_identity(self, token: str, identity: Identity) -> Session | None:
        """Atomically set the session's identity, leaving other fields as stored.

        Returns the updated session, or None if it no longer exists.
        """
        ...

    async def delete(self, token: str) -> bool:
        """Delete a session. Returns True if it existed."""
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...

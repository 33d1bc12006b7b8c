"""Server-side browser session state.

The browser only ever holds an opaque session token in an HttpOnly cookie.
The pending CSRF state and the bound identity live in
the session store, looked up by that token on each request.

Sessions have a fixed lifetime from creation; activity does not extend it.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from walletgate.config import settings
from walletgate.models import Identity, utc_now


def _session_ttl() -> int:
    """Session TTL in seconds from config."""
    return settings.session.ttl_hours * 3600


@dataclass
class Session:
    """Server-side session state."""

    created_at: str  # ISO 8601
    expires_at: str  # ISO 8601
    # Set by begin_auth, consumed by the provider callback
    csrf_state: str | None = field(default=None, repr=False)
    identity: Identity | None = None

    # Token is the key, not part of the stored value
    token: str = field(default="", repr=False)

    def remaining_ttl(self, now: datetime | None = None) -> int:
        """Whole seconds until expiry (<= 0 once expired)."""
        expires_at = datetime.fromisoformat(self.expires_at)
        return int((expires_at - (now or utc_now())).total_seconds())

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.remaining_ttl(now) <= 0

    def to_dict(self) -> dict[str, Any]:
        """Storage representation (excludes the token)."""
        return {
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "csrf_state": self.csrf_state,
            "identity": (
                {
                    "provider_id": self.identity.provider_id,
                    "display_name": self.identity.display_name,
                }
                if self.identity is not None
                else None
            ),
        }

    @classmethod
    def from_dict(cls, token: str, data: dict[str, Any]) -> "Session":
        identity = data.get("identity")
        return cls(
            created_at=data["created_at"],
            expires_at=data["expires_at"],
            csrf_state=data.get("csrf_state"),
            identity=Identity(**identity) if identity else None,
            token=token,
        )


def generate_session_token() -> str:
    """Generate a cryptographically random session token."""
    return secrets.token_urlsafe(32)


def new_session(ttl: int | None = None) -> Session:
    """Build a fresh, unbound session. Not persisted until saved to a store."""
    now = utc_now()
    ttl = ttl if ttl is not None else _session_ttl()
    return Session(
        created_at=now.isoformat(),
        expires_at=(now + timedelta(seconds=ttl)).isoformat(),
        token=generate_session_token(),
    )

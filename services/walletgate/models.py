"""Core domain types: provider identity, wallets, and the stored profile."""

from dataclasses import asdict, dataclass, field, replace
from datetime import UTC, datetime
from typing import Any


def utc_now() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class Identity:
    """Authenticated provider identity, re-derived on every login."""

    provider_id: str
    display_name: str


@dataclass(frozen=True)
class Wallets:
    """Declared external-chain addresses. None means not provided."""

    evm: str | None = None
    btc: str | None = None
    ada: str | None = None

    def merged_with(self, incoming: "Wallets") -> "Wallets":
        """Overlay incoming addresses; empty or missing values keep what is stored."""
        return Wallets(
            evm=incoming.evm or self.evm,
            btc=incoming.btc or self.btc,
            ada=incoming.ada or self.ada,
        )


@dataclass(frozen=True)
class Profile:
    """Stored wallet profile keyed by provider id.

    ``updated_at`` is only set by an explicit save, so a profile created at
    login (``updated_at is None``) counts as never saved.
    """

    identity_key: str
    display_name: str
    wallets: Wallets = field(default_factory=Wallets)
    updated_at: datetime | None = None

    @classmethod
    def empty(cls, identity: Identity) -> "Profile":
        return cls(identity_key=identity.provider_id, display_name=identity.display_name)

    @property
    def has_been_saved(self) -> bool:
        return self.updated_at is not None

    def with_update(self, display_name: str, wallets: Wallets, at: datetime) -> "Profile":
        return replace(
            self,
            display_name=display_name,
            wallets=self.wallets.merged_with(wallets),
            updated_at=at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Storage representation."""
        return {
            "identity_key": self.identity_key,
            "display_name": self.display_name,
            "wallets": asdict(self.wallets),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        updated_at = data.get("updated_at")
        return cls(
            identity_key=data["identity_key"],
            display_name=data.get("display_name", ""),
            wallets=Wallets(**(data.get("wallets") or {})),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    def to_api(self) -> dict[str, Any]:
        """Client-facing representation (camelCase, null for absent wallets)."""
        return {
            "identityKey": self.identity_key,
            "displayName": self.display_name,
            "evmAddress": self.wallets.evm,
            "btcAddress": self.wallets.btc,
            "adaAddress": self.wallets.ada,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

"""Profile service: read and merge wallet profiles.

Merges are monotonic: an incoming wallet value replaces the stored one only
when it is a non-empty string, so a client that omits a field never erases
an address saved earlier. Each merge runs inside the store's per-key atomic
update, so concurrent saves for one identity cannot lose each other's fields.
"""

from collections.abc import Callable
from dataclasses import asdict
from datetime import datetime

from walletgate.logging_config import get_logger
from walletgate.models import Identity, Profile, Wallets, utc_now
from walletgate.store.protocol import ProfileStore

logger = get_logger(__name__)


def _clean(value: str | None) -> str | None:
    """Normalize an incoming address: blank or missing becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class ProfileService:
    """Profile reads and merges keyed by provider identity."""

    def __init__(
        self,
        store: ProfileStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    async def get(self, identity: Identity) -> Profile:
        """Stored profile, or an unsaved empty one. Never writes."""
        profile = await self._store.get(identity.provider_id)
        if profile is None:
            return Profile.empty(identity)
        return profile

    async def find(self, identity_key: str) -> Profile | None:
        """Stored profile or None; distinguishes absence from an empty profile."""
        return await self._store.get(identity_key)

    async def ensure(self, identity: Identity) -> Profile:
        """Create the empty profile on first login. Existing records are untouched."""

        def create_if_missing(current: Profile | None) -> Profile | None:
            if current is not None:
                return None
            return Profile.empty(identity)

        profile = await self._store.update(identity.provider_id, create_if_missing)
        assert profile is not None
        return profile

    async def save(
        self,
        identity_key: str,
        display_name: str,
        wallets: Wallets,
    ) -> Profile:
        """Merge incoming wallets into the stored record and stamp updated_at."""
        incoming = Wallets(
            evm=_clean(wallets.evm),
            btc=_clean(wallets.btc),
            ada=_clean(wallets.ada),
        )
        now = self._clock()

        def merge(current: Profile | None) -> Profile:
            base = current or Profile(identity_key=identity_key, display_name=display_name)
            return base.with_update(display_name, incoming, now)

        profile = await self._store.update(identity_key, merge)
        assert profile is not None

        logger.info(
            "Profile saved",
            identity_key=identity_key,
            wallets=[name for name, value in asdict(profile.wallets).items() if value],
        )
        return profile

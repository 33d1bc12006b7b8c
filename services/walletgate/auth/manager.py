"""Login flow: CSRF state issuance, callback validation, identity binding.

The state token ties a provider callback to the browser session that started
the login. It is stored on that session only, so a state issued to one
session is worthless in any other, and it is consumed by the first callback
that presents the session, before the provider exchange runs, so the same
callback can never be replayed, even after an upstream failure.
"""

import secrets

from walletgate.auth.discord import DiscordOAuthClient
from walletgate.auth.sessions import Session, new_session
from walletgate.errors import ProviderExchangeFailed, StateMismatch
from walletgate.logging_config import get_logger
from walletgate.models import Identity
from walletgate.store.protocol import SessionStore

logger = get_logger(__name__)


def generate_state() -> str:
    """Generate a cryptographically random state parameter."""
    return secrets.token_urlsafe(32)


class AuthSessionManager:
    """Owns the session lifecycle around the OAuth authorization-code flow."""

    def __init__(
        self,
        sessions: SessionStore,
        oauth: DiscordOAuthClient,
        session_ttl: int | None = None,
    ) -> None:
        self._sessions = sessions
        self._oauth = oauth
        self._session_ttl = session_ttl

    async def begin_auth(self, session: Session | None = None) -> tuple[str, Session]:
        """Issue a fresh state on the session and build the provider redirect.

        Creates a session when none (or an expired one) is supplied. Any state
        left over from an abandoned login on this session is replaced. On an
        existing session only the state field is written, so an identity bound
        by a concurrent callback survives.
        """
        state = generate_state()

        issued = None
        if session is not None and not session.is_expired():
            issued = await self._sessions.issue_state(session.token, state)

        if issued is None:
            issued = new_session(self._session_ttl)
            issued.csrf_state = state
            await self._sessions.save(issued)
            logger.info("Login started", new_session=True)
        else:
            logger.info("Login started", new_session=False)

        return self._oauth.authorization_url(state), issued

    async def complete_auth(
        self,
        session: Session | None,
        code: str | None,
        state: str | None,
    ) -> Identity:
        """Validate the callback, run the provider exchange, bind the identity."""
        if session is None:
            logger.warning("Callback without a session")
            raise StateMismatch("no session")

        pending = await self._sessions.consume_state(session.token)
        if pending is None:
            logger.warning("Callback with no pending state (replayed or expired)")
            raise StateMismatch("no pending state")
        # Bytes: compare_digest rejects non-ASCII str, and state is caller-supplied
        if not state or not secrets.compare_digest(pending.encode(), state.encode()):
            logger.warning("Callback state does not match session")
            raise StateMismatch("state mismatch")

        if not code:
            raise ProviderExchangeFailed("callback carried no authorization code")

        token = await self._oauth.exchange_code_for_token(code)
        identity = await self._oauth.fetch_identity(token)

        bound = await self._sessions.bind_identity(session.token, identity)
        if bound is None:
            # Session expired or was logged out while the exchange was in flight
            logger.warning("Session vanished during login", provider_id=identity.provider_id)
            raise StateMismatch("session ended during login")

        session.csrf_state = bound.csrf_state
        session.identity = identity
        logger.info("Login completed", provider_id=identity.provider_id)
        return identity

    @staticmethod
    def current_identity(session: Session | None) -> Identity | None:
        """Identity bound to the session, if any."""
        if session is None or session.is_expired():
            return None
        return session.identity

    async def logout(self, session: Session | None) -> bool:
        """Drop the server-side session. Returns True if one existed."""
        if session is None:
            return False
        deleted = await self._sessions.delete(session.token)
        if deleted:
            logger.info("Session revoked via logout")
        return deleted

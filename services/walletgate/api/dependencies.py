"""FastAPI dependencies for sessions, identity and the core services.

The browser presents an opaque session token in the session cookie. The
token is looked up in the session store on every request; the cookie
carries no other data and cannot be forged into an identity.
"""

from fastapi import Depends, Request

from walletgate.auth.discord import DiscordOAuthClient
from walletgate.auth.manager import AuthSessionManager
from walletgate.auth.sessions import Session
from walletgate.config import settings
from walletgate.errors import Unauthenticated
from walletgate.models import Identity
from walletgate.services.profile_service import ProfileService
from walletgate.services.role_assignment import RoleAssignmentGateway, build_role_assigner
from walletgate.store import get_profile_store, get_session_store
from walletgate.store.protocol import ProfileStore, SessionStore


def get_oauth_client() -> DiscordOAuthClient:
    return DiscordOAuthClient(settings.discord)


def get_auth_manager(
    sessions: SessionStore = Depends(get_session_store),
    oauth: DiscordOAuthClient = Depends(get_oauth_client),
) -> AuthSessionManager:
    return AuthSessionManager(
        sessions,
        oauth,
        session_ttl=settings.session.ttl_hours * 3600,
    )


def get_profile_service(
    store: ProfileStore = Depends(get_profile_store),
) -> ProfileService:
    return ProfileService(store)


def get_role_gateway() -> RoleAssignmentGateway:
    return RoleAssignmentGateway(build_role_assigner(settings.role_assignment))


async def get_current_session(
    request: Request,
    sessions: SessionStore = Depends(get_session_store),
) -> Session | None:
    """Session referenced by the cookie, or None if absent/unknown/expired."""
    token = request.cookies.get(settings.session.cookie_name)
    if not token:
        return None
    return await sessions.get(token)


async def get_current_identity(
    session: Session | None = Depends(get_current_session),
) -> Identity | None:
    """Identity bound to the current session, if any."""
    return AuthSessionManager.current_identity(session)


async def require_identity(
    identity: Identity | None = Depends(get_current_identity),
) -> Identity:
    """Dependency that rejects requests without an authenticated session."""
    if identity is None:
        raise Unauthenticated()
    return identity

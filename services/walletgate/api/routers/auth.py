"""Discord login router.

The login runs in a browser popup:
    GET  /auth/discord           - start login, 302 to Discord
    GET  /auth/discord/callback  - Discord redirects back here; on success the
                                   page notifies its opener and closes itself
    POST /auth/logout            - revoke the current session
"""

import json
from string import Template
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse

from walletgate.api.dependencies import (
    get_auth_manager,
    get_current_session,
    get_profile_service,
)
from walletgate.auth.manager import AuthSessionManager
from walletgate.auth.sessions import Session
from walletgate.config import settings
from walletgate.errors import WalletGateError
from walletgate.logging_config import get_logger
from walletgate.models import Identity
from walletgate.services.profile_service import ProfileService

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)

AUTH_SUCCESS_PAGE = Template(
    """<!doctype html>
<html><body><script>
  if (window.opener) {
    window.opener.postMessage($message, $target_origin);
  }
  window.close();
</script>Logged in. You can close this window.</body></html>
"""
)


@router.get("/discord")
async def begin_discord_login(
    session: Session | None = Depends(get_current_session),
    manager: AuthSessionManager = Depends(get_auth_manager),
) -> RedirectResponse:
    """Issue a CSRF state on the session and redirect to Discord."""
    authorization_url, session = await manager.begin_auth(session)

    response = RedirectResponse(url=authorization_url, status_code=302)
    _set_session_cookie(response, session)
    return response


@router.get("/discord/callback", response_model=None)
async def discord_callback(
    request: Request,
    code: str | None = Query(None, description="Authorization code from Discord"),
    state: str | None = Query(None, description="State parameter echoed by Discord"),
    error: str | None = Query(None, description="Error reported by Discord"),
    session: Session | None = Depends(get_current_session),
    manager: AuthSessionManager = Depends(get_auth_manager),
    profiles: ProfileService = Depends(get_profile_service),
) -> HTMLResponse | PlainTextResponse:
    """Complete the login and hand the identity back to the opener window."""
    if error:
        logger.info("Discord returned an authorization error", error=error)

    try:
        identity = await manager.complete_auth(session, code, state)
        await profiles.ensure(identity)
    except WalletGateError as e:
        logger.warning("Login callback rejected", code=e.code, detail=e.detail)
        return PlainTextResponse(e.public_message, status_code=e.status_code)
    except Exception:
        logger.exception("Login callback failed")
        return PlainTextResponse("Login failed due to a server error.", status_code=500)

    return HTMLResponse(render_auth_success(identity, opener_origin(request)))


@router.post("/logout")
async def logout(
    session: Session | None = Depends(get_current_session),
    manager: AuthSessionManager = Depends(get_auth_manager),
) -> JSONResponse:
    """Revoke the current session and clear the cookie."""
    await manager.logout(session)
    response = JSONResponse(content={"ok": True})
    response.delete_cookie(
        settings.session.cookie_name,
        httponly=True,
        samesite=settings.session.same_site,  # type: ignore[arg-type]
        secure=settings.session.cookie_secure,
    )
    return response


# --- Helpers ---


def opener_origin(request: Request) -> str:
    """Origin allowed to receive the auth-success message.

    Never "*": the message carries the user's identity.
    """
    if settings.opener_origin:
        return settings.opener_origin
    if settings.cors.allow_origins:
        return settings.cors.allow_origins[0]
    return f"{request.url.scheme}://{request.url.netloc}"


def render_auth_success(identity: Identity, target_origin: str) -> str:
    message = {
        "type": "auth-success",
        "payload": {"id": identity.provider_id, "displayName": identity.display_name},
    }
    return AUTH_SUCCESS_PAGE.substitute(
        message=_script_json(message),
        target_origin=_script_json(target_origin),
    )


def _script_json(value: Any) -> str:
    """JSON literal safe to embed inside a <script> element."""
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def _set_session_cookie(response: RedirectResponse, session: Session) -> None:
    response.set_cookie(
        settings.session.cookie_name,
        session.token,
        max_age=max(session.remaining_ttl(), 0),
        httponly=True,
        samesite=settings.session.same_site,  # type: ignore[arg-type]
        secure=settings.session.cookie_secure,
    )

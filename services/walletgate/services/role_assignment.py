"""Role assignment gateway.

The gateway is the only path from a saved profile to the external
role-assignment capability. The capability itself (a bot, a webhook, ...)
sits behind the narrow RoleAssigner protocol and its result is returned to
the caller unchanged. Failures never touch the stored profile.
"""

from typing import Any, Protocol, runtime_checkable

import httpx

from walletgate.config import RoleAssignmentConfig
from walletgate.errors import NoProfile, RoleAssignmentFailed
from walletgate.logging_config import get_logger
from walletgate.models import Profile

logger = get_logger(__name__)

RoleAssignmentResult = dict[str, Any]


@runtime_checkable
class RoleAssigner(Protocol):
    """External capability that assigns roles for a profile."""

    async def assign(self, profile: Profile) -> RoleAssignmentResult:
        """Assign roles for ``profile``. Raises on failure."""
        ...


class RoleAssignmentGateway:
    """Validates preconditions and forwards profiles to a RoleAssigner."""

    def __init__(self, assigner: RoleAssigner) -> None:
        self._assigner = assigner

    async def assign(self, profile: Profile | None) -> RoleAssignmentResult:
        """Forward a saved profile to the assigner and return its result.

        Raises:
            NoProfile: No profile exists, or it was created at login and never saved.
            RoleAssignmentFailed: The assigner raised; the cause is attached.
        """
        if profile is None or not profile.has_been_saved:
            raise NoProfile()

        try:
            result = await self._assigner.assign(profile)
        except Exception as e:
            logger.error(
                "Role assignment failed",
                identity_key=profile.identity_key,
                error=str(e),
                exc_info=True,
            )
            raise RoleAssignmentFailed(e) from e

        logger.info("Roles assigned", identity_key=profile.identity_key)
        return result


class RoleAssignerNotConfigured(Exception):
    """Raised when no role-assignment endpoint is configured."""


class RoleAssignerUnavailable(Exception):
    """Webhook call failed. The message names the failure, never the endpoint."""


class UnconfiguredRoleAssigner:
    """Placeholder assigner used when no endpoint is configured."""

    async def assign(self, profile: Profile) -> RoleAssignmentResult:
        raise RoleAssignerNotConfigured("role assignment endpoint is not configured")


class HTTPRoleAssigner:
    """Delivers the profile to a webhook that performs the assignment.

    The webhook receives the profile as JSON and answers with a JSON object,
    which becomes the assignment result. Non-2xx responses are failures.
    The endpoint URL may carry credentials, so it stays out of raised errors.
    """

    def __init__(self, config: RoleAssignmentConfig) -> None:
        self._config = config

    async def assign(self, profile: Profile) -> RoleAssignmentResult:
        headers = {"Accept": "application/json"}
        if self._config.secret:
            headers["Authorization"] = f"Bearer {self._config.secret}"

        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                resp = await client.post(
                    self._config.endpoint_url,
                    json={"profile": profile.to_api()},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            raise RoleAssignerUnavailable(f"webhook request failed ({type(e).__name__})") from e

        if not resp.is_success:
            raise RoleAssignerUnavailable(f"webhook returned {resp.status_code}")

        if not resp.content:
            return {}
        try:
            body = resp.json()
        except ValueError as e:
            raise RoleAssignerUnavailable("webhook returned a non-JSON body") from e
        if not isinstance(body, dict):
            return {"result": body}
        return body


def build_role_assigner(config: RoleAssignmentConfig) -> RoleAssigner:
    """Pick the assigner for the configured endpoint."""
    if not config.endpoint_url:
        return UnconfiguredRoleAssigner()
    return HTTPRoleAssigner(config)

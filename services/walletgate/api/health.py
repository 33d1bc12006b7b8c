"""
Liveness and readiness endpoints.

/ready fails when the stores are down or when the Discord client has no
credentials, since no login can succeed in either case. Role assignment is
optional and only reported.
"""

from fastapi import APIRouter, Response, status

from walletgate.config import StoreBackend, settings
from walletgate.logging_config import get_logger
from walletgate.redis.client import get_redis_health
from walletgate.store import stores_ready

router = APIRouter(tags=["health"])
logger = get_logger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


async def _readiness_checks() -> dict[str, str]:
    checks = {"stores": HEALTHY if stores_ready() else UNHEALTHY}
    if settings.store.backend == StoreBackend.REDIS:
        checks["redis"] = HEALTHY if await get_redis_health() else UNHEALTHY

    discord = settings.discord
    checks["discord"] = HEALTHY if discord.client_id and discord.client_secret else UNHEALTHY
    return checks


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Liveness: the process is serving requests."""
    return {"status": HEALTHY}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(response: Response) -> dict[str, str | dict[str, str]]:
    checks = await _readiness_checks()
    role_assignment = "enabled" if settings.role_assignment.endpoint_url else "disabled"

    if any(v != HEALTHY for v in checks.values()):
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks, "role_assignment": role_assignment}

    return {"status": "ready", "checks": checks, "role_assignment": role_assignment}

"""Profile and role-assignment endpoints.

Endpoints:
    GET  /api/me            - who am I, with the stored (or empty) profile
    POST /api/save          - merge wallet addresses into the profile
    POST /api/assign-roles  - hand the saved profile to role assignment
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from walletgate.api.dependencies import (
    get_current_identity,
    get_profile_service,
    get_role_gateway,
    require_identity,
)
from walletgate.logging_config import get_logger
from walletgate.models import Identity, Wallets
from walletgate.services.profile_service import ProfileService
from walletgate.services.role_assignment import RoleAssignmentGateway

router = APIRouter(prefix="/api", tags=["profile"])
logger = get_logger(__name__)

MAX_ADDRESS_LENGTH = 256


# --- Pydantic models ---


class SaveProfileRequest(BaseModel):
    """Wallet addresses reported by the browser (and the wallet widget).

    Addresses are unverified user input: only their shape is checked.
    """

    model_config = ConfigDict(populate_by_name=True)

    evm_address: str | None = Field(default=None, alias="evmAddress")
    btc_address: str | None = Field(default=None, alias="btcAddress")
    ada_address: str | None = Field(default=None, alias="adaAddress")

    @field_validator("evm_address", "btc_address", "ada_address")
    @classmethod
    def check_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if len(value) > MAX_ADDRESS_LENGTH:
            raise ValueError(f"address longer than {MAX_ADDRESS_LENGTH} characters")
        if any(c.isspace() or not c.isprintable() for c in value):
            raise ValueError("address contains whitespace or control characters")
        return value or None

    def to_wallets(self) -> Wallets:
        return Wallets(evm=self.evm_address, btc=self.btc_address, ada=self.ada_address)


# --- Endpoints ---


@router.get("/me")
async def who_am_i(
    identity: Identity | None = Depends(get_current_identity),
    profiles: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """Current identity and profile, or 401 {ok: false}."""
    if identity is None:
        return JSONResponse(status_code=401, content={"ok": False})

    profile = await profiles.get(identity)
    return JSONResponse(
        content={
            "ok": True,
            "identityKey": identity.provider_id,
            "displayName": identity.display_name,
            "profile": profile.to_api(),
        }
    )


@router.post("/save")
async def save_profile(
    body: SaveProfileRequest | None = None,
    identity: Identity = Depends(require_identity),
    profiles: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """Merge the submitted wallet addresses; omitted ones are kept."""
    body = body or SaveProfileRequest()
    profile = await profiles.save(
        identity.provider_id,
        identity.display_name,
        body.to_wallets(),
    )
    return JSONResponse(content={"ok": True, "profile": profile.to_api()})


@router.post("/assign-roles")
async def assign_roles(
    identity: Identity = Depends(require_identity),
    profiles: ProfileService = Depends(get_profile_service),
    gateway: RoleAssignmentGateway = Depends(get_role_gateway),
) -> JSONResponse:
    """Run role assignment for the caller's saved profile."""
    profile = await profiles.find(identity.provider_id)
    result = await gateway.assign(profile)
    return JSONResponse(content={"ok": True, "result": result})

"""
Error taxonomy for the login, profile and role-assignment flows.

Each error carries the HTTP status and the user-facing message it maps to.
Messages are safe to show to the browser; causes are kept for logging only.
"""


class WalletGateError(Exception):
    """Base exception for expected, user-facing failures."""

    code = "error"
    status_code = 400
    public_message = "Request failed"
    # Include detail in the response body
    expose_detail = False

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(detail or self.public_message)


class StateMismatch(WalletGateError):
    """Callback state absent, already used, or not issued to this session."""

    code = "state_mismatch"
    status_code = 400
    public_message = "Invalid or expired login attempt. Please start the login again."


class ProviderExchangeFailed(WalletGateError):
    """Token exchange or identity lookup against the provider failed."""

    code = "provider_exchange_failed"
    status_code = 401
    public_message = "Authentication with the provider failed. Please log in again."


class ProviderIdentityMissing(WalletGateError):
    """Provider returned a user object without a usable identifier."""

    code = "provider_identity_missing"
    status_code = 401
    public_message = "The provider did not return a user identity. Please log in again."


class Unauthenticated(WalletGateError):
    """No identity is bound to the current session."""

    code = "unauthenticated"
    status_code = 401
    public_message = "Not authenticated"


class NoProfile(WalletGateError):
    """Role assignment attempted before any profile save."""

    code = "no_profile"
    status_code = 400
    public_message = "No profile saved yet. Save your wallets before requesting roles."


class RoleAssignmentFailed(WalletGateError):
    """The external role-assignment capability raised or rejected the request."""

    code = "role_assignment_failed"
    status_code = 502
    public_message = "Role assignment failed"
    expose_detail = True

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"{type(cause).__name__}: {cause}")

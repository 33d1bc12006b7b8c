"""
Configuration management for the WalletGate API server.

Non-secret configuration loaded from YAML file, secrets from environment variables.
"""

from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path("/etc/walletgate/config.yaml")
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


# --- OAuth Provider Configuration ---


class DiscordOAuthConfig(BaseModel):
    """Discord OAuth2 application configuration."""

    client_id: str = Field(default="", description="OAuth2 client ID")
    client_secret: str = Field(default="", description="OAuth2 client secret (from env)")
    redirect_uri: str = Field(
        default="http://localhost:8888/auth/discord/callback",
        description="Callback URL registered with Discord. Sent verbatim on both legs "
        "of the exchange; Discord rejects the token request if it differs.",
    )
    scope: str = Field(default="identify", description="Space-separated OAuth2 scopes")
    prompt: str = Field(default="consent")
    authorize_url: str = Field(default="https://discord.com/api/oauth2/authorize")
    token_url: str = Field(default="https://discord.com/api/oauth2/token")
    user_url: str = Field(default="https://discord.com/api/users/@me")
    request_timeout_seconds: float = Field(default=10.0)


# --- Session Configuration ---


class SessionConfig(BaseModel):
    """Browser session cookie configuration."""

    cookie_name: str = Field(default="sid")
    ttl_hours: int = Field(default=24 * 30, description="Fixed session lifetime in hours")
    cookie_secure: bool = Field(default=False, description="Set the Secure cookie flag")
    same_site: str = Field(default="lax")


# --- Store Configuration ---


class StoreBackend(StrEnum):
    """Supported session/profile store backends."""

    MEMORY = "memory"
    REDIS = "redis"


class StoreConfig(BaseModel):
    """Session and profile store configuration."""

    backend: StoreBackend = Field(
        default=StoreBackend.MEMORY,
        description="Store backend: memory (single process) or redis",
    )
    max_update_retries: int = Field(
        default=10,
        description="Optimistic transaction retries for redis read-modify-write",
    )


# --- Role Assignment Configuration ---


class RoleAssignmentConfig(BaseModel):
    """External role-assignment capability configuration."""

    endpoint_url: str = Field(
        default="",
        description="Webhook receiving the saved profile. Empty disables role assignment.",
    )
    secret: str = Field(default="", description="Bearer secret sent to the webhook (from env)")
    timeout_seconds: float = Field(default=15.0)


# --- CORS Configuration ---


class CORSConfig(BaseModel):
    """CORS (Cross-Origin Resource Sharing) configuration."""

    allow_origins: list[str] = Field(
        default_factory=list,
        description="Allowed origins. Empty list means CORS middleware is disabled.",
    )
    allow_credentials: bool = Field(
        default=True, description="Allow credentials (cookies, auth headers)"
    )
    allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        description="Allowed HTTP methods",
    )
    allow_headers: list[str] = Field(
        default=["Content-Type", "X-Request-ID"],
        description="Allowed request headers",
    )


# --- Main Settings ---


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETGATE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="walletgate-api")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True, description="JSON logging in production")

    # Redis
    redis_url: RedisDsn = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (used when store.backend is redis)",
    )

    discord: DiscordOAuthConfig = Field(default_factory=DiscordOAuthConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    role_assignment: RoleAssignmentConfig = Field(default_factory=RoleAssignmentConfig)
    cors: CORSConfig = Field(default_factory=CORSConfig)

    opener_origin: str = Field(
        default="",
        description="Origin allowed to receive the auth-success message from the login "
        "popup. Falls back to the first CORS origin, then to the API's own origin.",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()

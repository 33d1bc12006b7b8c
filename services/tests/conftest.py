"""
Top-level test configuration for WalletGate.
"""

import os

# Ensure test-friendly defaults
os.environ.setdefault("WALLETGATE_STORE__BACKEND", "memory")
os.environ.setdefault("WALLETGATE_JSON_LOGS", "false")
os.environ.setdefault("WALLETGATE_LOG_LEVEL", "DEBUG")
os.environ.setdefault("WALLETGATE_DISCORD__CLIENT_ID", "test-client-id")
os.environ.setdefault("WALLETGATE_DISCORD__CLIENT_SECRET", "test-client-secret")
os.environ.setdefault(
    "WALLETGATE_DISCORD__REDIRECT_URI", "http://api.test/auth/discord/callback"
)

import pytest  # noqa: E402

from walletgate.config import DiscordOAuthConfig  # noqa: E402

DISCORD_TOKEN_URL = "https://discord.test/api/oauth2/token"
DISCORD_USER_URL = "https://discord.test/api/users/@me"
DISCORD_AUTHORIZE_URL = "https://discord.test/api/oauth2/authorize"


@pytest.fixture
def discord_config() -> DiscordOAuthConfig:
    """Discord config pointing at mockable test URLs."""
    return DiscordOAuthConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://api.test/auth/discord/callback",
        authorize_url=DISCORD_AUTHORIZE_URL,
        token_url=DISCORD_TOKEN_URL,
        user_url=DISCORD_USER_URL,
    )

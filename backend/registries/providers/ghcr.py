"""
GitHub Container Registry (ghcr.io) provider.

GHCR uses GitHub's token service. Public images can be accessed
anonymously, but still need a token.
"""

import logging
from typing import Optional, Tuple

from registries.base import ProviderSchema
from registries.strategies import TokenExchangeProvider, TokenExchangeStrategy, host_pattern
from registries.types import ProviderType, PullCredentials, RegistryConfiguration

logger = logging.getLogger(__name__)

GHCR_TOKEN_EXCHANGE = TokenExchangeStrategy(
    "https://ghcr.io/token?service=ghcr.io&scope=repository:{name}:pull"
)


def username_token_credentials(configuration: RegistryConfiguration) -> Optional[Tuple[str, str]]:
    """(username, token) when a token is configured, else None (anonymous)."""
    token = configuration.get("token")
    if not token:
        return None
    return configuration.get("username", ""), token


class GhcrConfiguration(ProviderSchema):
    username: Optional[str] = None
    token: Optional[str] = None


class GhcrProvider(TokenExchangeProvider):
    """GitHub Container Registry integration."""

    TYPE = ProviderType.GHCR
    CONFIGURATION_SCHEMA = GhcrConfiguration
    SECRET_FIELDS = ("token",)
    ALLOWS_ANONYMOUS = True
    HOSTNAME_PATTERN = host_pattern("ghcr.io")
    TOKEN_EXCHANGE = GHCR_TOKEN_EXCHANGE

    def get_token_credentials(self) -> Optional[Tuple[str, str]]:
        return username_token_credentials(self.configuration)

    def get_auth_pull(self) -> Optional[PullCredentials]:
        credentials = self.get_token_credentials()
        if credentials is None:
            return None
        return PullCredentials(*credentials)

"""
LinuxServer Container Registry (lscr.io) provider.

lscr.io is a mirror fronting GHCR: its WWW-Authenticate realm is
https://ghcr.io/token, so it composes GHCR's token exchange and only
differs in the hostname it matches.
"""

from typing import Optional, Tuple

from registries.base import ProviderSchema
from registries.providers.ghcr import GHCR_TOKEN_EXCHANGE, username_token_credentials
from registries.strategies import TokenExchangeProvider, host_pattern
from registries.types import ProviderType, PullCredentials


class LscrConfiguration(ProviderSchema):
    username: str
    token: str


class LscrProvider(TokenExchangeProvider):
    """LinuxServer Container Registry integration."""

    TYPE = ProviderType.LSCR
    CONFIGURATION_SCHEMA = LscrConfiguration
    SECRET_FIELDS = ("token",)
    HOSTNAME_PATTERN = host_pattern("lscr.io")
    TOKEN_EXCHANGE = GHCR_TOKEN_EXCHANGE

    def get_token_credentials(self) -> Optional[Tuple[str, str]]:
        return username_token_credentials(self.configuration)

    def get_auth_pull(self) -> Optional[PullCredentials]:
        return PullCredentials(*self.get_token_credentials())

"""
Quay.io provider.

Robot accounts ("<namespace>+<account>" with a token) exchange Basic
credentials for a bearer token at quay.io/v2/auth. Anonymous access to
public repositories needs no decoration.
"""

from typing import Optional, Tuple

from pydantic import model_validator

from registries.base import ProviderSchema
from registries.strategies import TokenExchangeProvider, TokenExchangeStrategy, host_pattern
from registries.types import ContainerImage, ProviderType, PullCredentials, RequestOptions

QUAY_TOKEN_EXCHANGE = TokenExchangeStrategy(
    "https://quay.io/v2/auth?service=quay.io&scope=repository:{name}:pull"
)


class QuayConfiguration(ProviderSchema):
    namespace: Optional[str] = None
    account: Optional[str] = None
    token: Optional[str] = None

    @model_validator(mode='after')
    def check_robot_account(self):
        if self.token:
            for field in ("namespace", "account"):
                if not getattr(self, field):
                    raise ValueError(f'"{field}" is required')
        return self


class QuayProvider(TokenExchangeProvider):
    """Quay.io integration."""

    TYPE = ProviderType.QUAY
    CONFIGURATION_SCHEMA = QuayConfiguration
    SECRET_FIELDS = ("token",)
    ALLOWS_ANONYMOUS = True
    HOSTNAME_PATTERN = host_pattern("quay.io")
    TOKEN_EXCHANGE = QUAY_TOKEN_EXCHANGE

    def get_token_credentials(self) -> Optional[Tuple[str, str]]:
        if not self.configuration.get("token"):
            return None
        username = f"{self.configuration['namespace']}+{self.configuration['account']}"
        return username, self.configuration["token"]

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        if self.get_token_credentials() is None:
            return request_options
        return await super().authenticate(image, request_options)

    def get_auth_pull(self) -> Optional[PullCredentials]:
        credentials = self.get_token_credentials()
        return PullCredentials(*credentials) if credentials else None

"""
Docker Hub provider.

Docker Hub requires a bearer token from auth.docker.io before accessing
the registry API, even for anonymous pulls. Official images live under
the "library/" namespace.
"""

import logging
from typing import Optional, Tuple

from pydantic import model_validator

from registries.base import BasicCredentialsSchema, basic_credentials, registry_host
from registries.strategies import TokenExchangeProvider, TokenExchangeStrategy, host_pattern
from registries.types import ContainerImage, ProviderType, PullCredentials, RequestOptions

logger = logging.getLogger(__name__)

DOCKER_HUB_REGISTRY_URL = "https://registry-1.docker.io/v2"
DOCKER_HUB_TOKEN_EXCHANGE = TokenExchangeStrategy(
    "https://auth.docker.io/token"
    "?service=registry.docker.io"
    "&scope=repository:{name}:pull"
    "&grant_type=password"
)


class HubConfiguration(BasicCredentialsSchema):
    # Access token, accepted in place of password
    token: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def token_as_password(cls, data):
        if isinstance(data, dict) and data.get("token") and not data.get("password"):
            data = {**data, "password": data["token"]}
        return data


class HubProvider(TokenExchangeProvider):
    """Docker Hub integration (also the built-in default for docker.io images)."""

    TYPE = ProviderType.HUB
    CONFIGURATION_SCHEMA = HubConfiguration
    SECRET_FIELDS = ("password", "token", "auth")
    ALLOWS_ANONYMOUS = True
    HOSTNAME_PATTERN = host_pattern("docker.io")
    TOKEN_EXCHANGE = DOCKER_HUB_TOKEN_EXCHANGE

    def match(self, image: ContainerImage) -> bool:
        # Images without a registry come from Docker Hub
        if not registry_host(image.registry.url):
            return True
        return super().match(image)

    def normalize_image(self, image: ContainerImage) -> ContainerImage:
        normalized = image
        if "/" not in normalized.name:
            normalized = normalized.with_name(f"library/{normalized.name}")
        if not normalized.registry.url.startswith(("https://", "http://")):
            normalized = normalized.with_registry_url(DOCKER_HUB_REGISTRY_URL)
        return normalized

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        # Token scope needs the library/ prefixed repository name
        return await super().authenticate(self.normalize_image(image), request_options)

    def get_token_credentials(self) -> Optional[Tuple[str, str]]:
        return basic_credentials(self.configuration)

    def get_auth_pull(self) -> Optional[PullCredentials]:
        credentials = self.get_token_credentials()
        return PullCredentials(*credentials) if credentials else None

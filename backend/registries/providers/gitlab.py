"""
Gitlab container registry provider (gitlab.com or self-hosted).

A personal access token is exchanged for a JWT at <authurl>/jwt/auth.
"""

import logging
from typing import Optional

from pydantic import field_validator

from registries.base import ProviderSchema, RegistryProvider, registry_host, validate_uri
from registries.strategies import TokenExchangeStrategy
from registries.types import ContainerImage, ProviderType, PullCredentials, RequestOptions

logger = logging.getLogger(__name__)

GITLAB_JWT_EXCHANGE = TokenExchangeStrategy(
    "{authurl}/jwt/auth?service=container_registry&scope=repository:{name}:pull"
)


class GitlabConfiguration(ProviderSchema):
    url: str = "https://registry.gitlab.com"
    authurl: str = "https://gitlab.com"
    token: str

    @field_validator("url", "authurl")
    @classmethod
    def check_uri(cls, v: str) -> str:
        return validate_uri(v)


class GitlabProvider(RegistryProvider):
    """Gitlab container registry integration."""

    TYPE = ProviderType.GITLAB
    CONFIGURATION_SCHEMA = GitlabConfiguration
    SECRET_FIELDS = ("token",)

    def match(self, image: ContainerImage) -> bool:
        host = registry_host(image.registry.url)
        return bool(host) and host in self.configuration.get("url", "")

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        return await GITLAB_JWT_EXCHANGE.authorize(
            image,
            request_options,
            credentials=("", self.configuration["token"]),
            provider=self.id,
            authurl=self.configuration["authurl"].rstrip("/"),
        )

    def get_auth_pull(self) -> Optional[PullCredentials]:
        """Empty username and personal access token."""
        return PullCredentials(username="", password=self.configuration["token"])

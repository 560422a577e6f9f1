"""
Azure Container Registry provider.

Service principal credentials are sent as a static Basic header.
"""

from typing import Optional

from registries.base import ProviderSchema, RegistryProvider
from registries.http import encode_basic_auth
from registries.strategies import host_pattern
from registries.types import ContainerImage, ProviderType, PullCredentials, RequestOptions


class AcrConfiguration(ProviderSchema):
    clientid: str
    clientsecret: str


class AcrProvider(RegistryProvider):
    """Azure Container Registry integration."""

    TYPE = ProviderType.ACR
    CONFIGURATION_SCHEMA = AcrConfiguration
    SECRET_FIELDS = ("clientsecret",)
    HOSTNAME_PATTERN = host_pattern("azurecr.io")

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        request_options.headers["Authorization"] = encode_basic_auth(
            self.configuration["clientid"],
            self.configuration["clientsecret"],
        )
        return request_options

    def get_auth_pull(self) -> Optional[PullCredentials]:
        return PullCredentials(
            username=self.configuration["clientid"],
            password=self.configuration["clientsecret"],
        )

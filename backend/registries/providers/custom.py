"""
Self-hosted Docker Registry v2 provider.

Matches images whose registry host is part of the configured URL and
authenticates with a static Basic header when credentials are set.
"""

from typing import Optional

from pydantic import field_validator

from registries.base import BasicCredentialsSchema, RegistryProvider, basic_credentials, registry_host, validate_uri
from registries.http import encode_basic_auth
from registries.types import ContainerImage, ProviderType, PullCredentials, RequestOptions


class CustomConfiguration(BasicCredentialsSchema):
    url: str

    @field_validator("url")
    @classmethod
    def check_uri(cls, v: str) -> str:
        return validate_uri(v).rstrip("/")


class CustomProvider(RegistryProvider):
    """Generic self-hosted registry integration."""

    TYPE = ProviderType.CUSTOM
    CONFIGURATION_SCHEMA = CustomConfiguration
    SECRET_FIELDS = ("password", "auth")

    def match(self, image: ContainerImage) -> bool:
        host = registry_host(image.registry.url)
        return bool(host) and host in self.configuration.get("url", "")

    def normalize_image(self, image: ContainerImage) -> ContainerImage:
        if image.registry.url.startswith(("https://", "http://")):
            return image
        return image.with_registry_url(f"{self.configuration['url']}/v2")

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        credentials = basic_credentials(self.configuration)
        if credentials is not None:
            request_options.headers["Authorization"] = encode_basic_auth(*credentials)
        return request_options

    def get_auth_pull(self) -> Optional[PullCredentials]:
        credentials = basic_credentials(self.configuration)
        return PullCredentials(*credentials) if credentials else None

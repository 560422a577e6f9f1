"""
Built-in fallback provider.

Matches every image, so the resolver always returns a provider. Talks to
the registry anonymously.
"""

from registries.base import RegistryProvider
from registries.types import ContainerImage, ProviderType, RequestOptions


class GenericProvider(RegistryProvider):
    """Anonymous Docker Registry v2 access for any host."""

    TYPE = ProviderType.GENERIC
    ALLOWS_ANONYMOUS = True

    def match(self, image: ContainerImage) -> bool:
        return True

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        return request_options

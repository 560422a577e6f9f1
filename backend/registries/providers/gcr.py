"""
Google Container Registry (gcr.io, <region>.gcr.io) provider.

Authenticates with a service account: the JSON key is sent as Basic
"_json_key:<json>" to the gcr.io token endpoint and exchanged for a
bearer token on every call (tokens are never cached).
"""

import json
import logging
from typing import Optional

from registries.base import ProviderSchema, RegistryProvider
from registries.strategies import TokenExchangeStrategy, host_pattern
from registries.types import ContainerImage, ProviderType, PullCredentials, RequestOptions

logger = logging.getLogger(__name__)

GCR_JSON_KEY_USERNAME = "_json_key"
GCR_TOKEN_EXCHANGE = TokenExchangeStrategy("https://gcr.io/v2/token?scope=repository:{name}:pull")


class GcrConfiguration(ProviderSchema):
    clientemail: str
    privatekey: str


class GcrProvider(RegistryProvider):
    """Google Container Registry integration."""

    TYPE = ProviderType.GCR
    CONFIGURATION_SCHEMA = GcrConfiguration
    SECRET_FIELDS = ("privatekey",)
    ALLOWS_ANONYMOUS = True
    HOSTNAME_PATTERN = host_pattern("gcr.io")

    def _service_account_json(self) -> str:
        return json.dumps({
            "client_email": self.configuration["clientemail"],
            "private_key": self.configuration["privatekey"],
        })

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        if not self.configuration.get("clientemail"):
            return request_options

        return await GCR_TOKEN_EXCHANGE.authorize(
            image,
            request_options,
            credentials=(GCR_JSON_KEY_USERNAME, self._service_account_json()),
            provider=self.id,
        )

    def get_auth_pull(self) -> Optional[PullCredentials]:
        if not self.configuration.get("clientemail"):
            return None
        return PullCredentials(username=GCR_JSON_KEY_USERNAME, password=self._service_account_json())

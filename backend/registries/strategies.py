"""
Bearer token exchange shared by registry providers.

Most registries follow the same Docker Registry v2 token flow:
1. GET a token endpoint scoped to repository:<name>:pull
2. Optionally authenticate that call with a Basic header
3. Send the returned token as "Bearer <token>" on registry calls

Providers compose a TokenExchangeStrategy instead of inheriting from
each other, so a mirror (e.g. lscr.io) reuses GHCR's flow by pointing
at the same endpoint with its own hostname pattern.
"""

import logging
import re
from typing import Optional, Tuple

from registries import http
from registries.base import RegistryProvider
from registries.types import ContainerImage, RequestOptions

logger = logging.getLogger(__name__)


def host_pattern(domain: str) -> re.Pattern:
    """
    Build a pattern matching a domain and any of its subdomains.

    Example:
        host_pattern("gcr.io") matches "gcr.io", "eu.gcr.io", not "grr.io"
    """
    return re.compile(rf"^(.*\.)?{re.escape(domain)}$")


class TokenExchangeStrategy:
    """
    Exchange (optional) Basic credentials for a scoped Bearer token.

    Args:
        endpoint_template: Token URL, formatted with {name} (repository name)
    """

    def __init__(self, endpoint_template: str):
        self.endpoint_template = endpoint_template

    def token_url(self, image: ContainerImage, **params) -> str:
        return self.endpoint_template.format(name=image.name, **params)

    async def fetch(
        self,
        image: ContainerImage,
        credentials: Optional[Tuple[str, str]] = None,
        provider: Optional[str] = None,
        **params,
    ) -> str:
        """Fetch a raw token for the image's repository."""
        headers = {}
        if credentials is not None:
            headers["Authorization"] = http.encode_basic_auth(*credentials)
        url = self.token_url(image, **params)
        logger.debug(f"Exchanging token for {image.name} at {url}")
        return await http.fetch_token(url, headers=headers, provider=provider)

    async def authorize(
        self,
        image: ContainerImage,
        request_options: RequestOptions,
        credentials: Optional[Tuple[str, str]] = None,
        provider: Optional[str] = None,
        **params,
    ) -> RequestOptions:
        """Decorate request_options with a freshly exchanged Bearer token."""
        token = await self.fetch(image, credentials=credentials, provider=provider, **params)
        request_options.headers["Authorization"] = f"Bearer {token}"
        return request_options


class TokenExchangeProvider(RegistryProvider):
    """
    Provider whose whole auth flow is a TokenExchangeStrategy.

    Subclasses set TOKEN_EXCHANGE and HOSTNAME_PATTERN, and override
    get_token_credentials() when the exchange call takes Basic credentials.
    """

    TOKEN_EXCHANGE: TokenExchangeStrategy

    def get_token_credentials(self) -> Optional[Tuple[str, str]]:
        return None

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        return await self.TOKEN_EXCHANGE.authorize(
            image,
            request_options,
            credentials=self.get_token_credentials(),
            provider=self.id,
        )

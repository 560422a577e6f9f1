"""
AWS Elastic Container Registry (ECR) provider.

Private registries authenticate through the IAM GetAuthorizationToken call
(boto3). The returned token is already base64("AWS:<password>") and is sent
as a Basic header; it is cached until the expiry reported by AWS.

The ECR Public gallery (public.ecr.aws) hands out anonymous bearer tokens
and is only matched when the configuration opts in with public=true.
"""

import asyncio
import logging
import re
from datetime import timezone
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import model_validator

from registries.base import ProviderSchema, RegistryProvider, registry_host
from registries.errors import AuthenticationError
from registries.strategies import TokenExchangeStrategy
from registries.token_cache import TokenCache
from registries.types import AuthToken, ContainerImage, ProviderType, PullCredentials, RequestOptions

logger = logging.getLogger(__name__)

ECR_PUBLIC_GALLERY_HOSTNAME = "public.ecr.aws"
ECR_PUBLIC_TOKEN_EXCHANGE = TokenExchangeStrategy("https://public.ecr.aws/token/")

ANY_ECR_HOSTNAME = re.compile(r"^.*\.dkr\.ecr\..*\.amazonaws\.com$")


class EcrConfiguration(ProviderSchema):
    accesskeyid: Optional[str] = None
    secretaccesskey: Optional[str] = None
    region: Optional[str] = None
    accountid: Optional[str] = None
    public: bool = False

    @model_validator(mode='after')
    def check_credentials(self):
        """Private access needs the full key pair and a region."""
        if self.accesskeyid or self.secretaccesskey:
            for field in ("accesskeyid", "secretaccesskey", "region"):
                if not getattr(self, field):
                    raise ValueError(f'"{field}" is required')
        elif not self.public:
            raise ValueError('"accesskeyid" is required')
        return self


class EcrProvider(RegistryProvider):
    """Elastic Container Registry integration (private + public gallery)."""

    TYPE = ProviderType.ECR
    CONFIGURATION_SCHEMA = EcrConfiguration
    SECRET_FIELDS = ("accesskeyid", "secretaccesskey")
    ALLOWS_ANONYMOUS = True

    def __init__(self, name=None, configuration=None, token_cache: Optional[TokenCache] = None):
        super().__init__(name, configuration)
        self.token_cache = token_cache or TokenCache()

    def match(self, image: ContainerImage) -> bool:
        host = registry_host(image.registry.url)
        logger.debug(f"Matching image registry URL: {host}")

        if self.configuration.get("public") and host == ECR_PUBLIC_GALLERY_HOSTNAME:
            return True

        # Without an account id every ECR registry is considered a match
        account_id = self.configuration.get("accountid")
        if account_id:
            pattern = rf"^{re.escape(account_id)}\.dkr\.ecr\..*\.amazonaws\.com$"
            return re.match(pattern, host) is not None
        return ANY_ECR_HOSTNAME.match(host) is not None

    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        if registry_host(image.registry.url) == ECR_PUBLIC_GALLERY_HOSTNAME:
            # Public gallery tokens are anonymous and not cached
            return await ECR_PUBLIC_TOKEN_EXCHANGE.authorize(image, request_options, provider=self.id)

        if not self.configuration.get("accesskeyid"):
            return request_options

        account_id = self._account_id(image)

        async def fetch() -> AuthToken:
            return await self._fetch_authorization_token(account_id)

        token = await self.token_cache.get_or_fetch(fetch)
        request_options.headers["Authorization"] = f"Basic {token.value}"
        return request_options

    def _account_id(self, image: ContainerImage) -> Optional[str]:
        """Configured account id, else the one in the registry host (<accountid>.dkr.ecr...)."""
        if self.configuration.get("accountid"):
            return self.configuration["accountid"]
        host = registry_host(image.registry.url)
        if ANY_ECR_HOSTNAME.match(host):
            return host.split(".", 1)[0]
        return None

    async def _fetch_authorization_token(self, account_id: Optional[str] = None) -> AuthToken:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._get_authorization_token, account_id)

    def _get_authorization_token(self, account_id: Optional[str] = None) -> AuthToken:
        """Call ECR GetAuthorizationToken with the configured key pair (blocking)."""
        region = self.configuration["region"]
        logger.info(f"Requesting ECR authorization token in region {region} for {self.id}")

        client_kwargs = {
            "region_name": region,
            "aws_access_key_id": self.configuration["accesskeyid"],
            "aws_secret_access_key": self.configuration["secretaccesskey"],
        }
        if account_id:
            client_kwargs["aws_account_id"] = account_id

        try:
            # boto3 sessions are not thread-safe, one per call
            client = boto3.session.Session().client("ecr", **client_kwargs)
            response = client.get_authorization_token()
        except (BotoCoreError, ClientError) as e:
            logger.error(f"ECR authorization failed for {self.id}: {e}")
            raise AuthenticationError(f"ECR authorization failed: {e}", provider=self.id) from e

        authorization_data = response.get("authorizationData") or []
        if not authorization_data:
            raise AuthenticationError("ECR returned no authorization data", provider=self.id)

        token_value = authorization_data[0].get("authorizationToken")
        expires_at = authorization_data[0].get("expiresAt")
        if not token_value or expires_at is None:
            raise AuthenticationError("ECR authorization data is missing token or expiry", provider=self.id)

        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        logger.debug(f"ECR token for {self.id} expires at {expires_at.isoformat()}")
        return AuthToken(value=token_value, expires_at=expires_at)

    def get_auth_pull(self) -> Optional[PullCredentials]:
        if not self.configuration.get("accesskeyid"):
            return None
        return PullCredentials(
            username=self.configuration["accesskeyid"],
            password=self.configuration["secretaccesskey"],
        )

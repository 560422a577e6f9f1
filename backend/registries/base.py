"""
Registry provider contract.

Every registry backend implements the same capability set:
- get_configuration_schema(): pydantic model describing its configuration
- validate_configuration(): apply the schema, fill defaults
- mask_configuration(): configuration with secrets redacted
- match(): does this provider handle the image's registry?
- normalize_image(): rewrite the registry URL to https://<host>/v2
- authenticate(): decorate outgoing request options with credentials
- get_auth_pull(): static credentials for engine-level pulls
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Optional, Tuple, Type
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from registries.errors import ConfigurationError
from registries.http import decode_basic_auth
from registries.types import (
    ContainerImage,
    ProviderDescriptor,
    ProviderType,
    PullCredentials,
    RegistryConfiguration,
    RequestOptions,
)
from utils.masking import mask

logger = logging.getLogger(__name__)


class ProviderSchema(BaseModel):
    """Base for provider configuration schemas (unknown keys are rejected)."""
    model_config = ConfigDict(extra='forbid')


class BasicCredentialsSchema(ProviderSchema):
    """login + password, or a preformatted base64 auth value."""
    login: Optional[str] = None
    password: Optional[str] = None
    auth: Optional[str] = None

    @field_validator("auth")
    @classmethod
    def check_auth(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            decode_basic_auth(v)
        return v

    @model_validator(mode='after')
    def check_pair(self):
        if self.auth and (self.login or self.password):
            raise ValueError('"auth" conflicts with "login"/"password"')
        if self.login and not self.password:
            raise ValueError('"password" is required')
        if self.password and not self.login:
            raise ValueError('"login" is required')
        return self


def basic_credentials(configuration: RegistryConfiguration) -> Optional[Tuple[str, str]]:
    """(username, password) from a BasicCredentialsSchema configuration."""
    if configuration.get("login"):
        return configuration["login"], configuration.get("password", "")
    if configuration.get("auth"):
        return decode_basic_auth(configuration["auth"])
    return None


def validate_uri(value: Optional[str]) -> Optional[str]:
    """Field validator helper: require an absolute http(s) URL."""
    if value is None:
        return value
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("must be a valid uri")
    return value


def registry_host(url: str) -> str:
    """
    Extract the host part of a registry URL.

    Examples:
        "eu.gcr.io/test/image" → "eu.gcr.io"
        "https://ghcr.io/v2" → "ghcr.io"
        "registry.local:5000" → "registry.local:5000"
    """
    if not url:
        return ""
    if "://" in url:
        url = url.split("://", 1)[1]
    return url.split("/", 1)[0].lower()


def normalize_registry_url(url: str) -> str:
    """
    Rewrite a bare registry hostname into its v2 API endpoint.

    URLs that already carry a scheme are returned untouched, which keeps
    normalization idempotent.
    """
    if url.startswith(("https://", "http://")):
        return url
    return f"https://{url}/v2"


def _format_validation_error(error: ValidationError) -> Tuple[str, Optional[str]]:
    """Turn a pydantic ValidationError into a field-level message."""
    messages = []
    first_field = None
    for detail in error.errors():
        field = ".".join(str(part) for part in detail.get("loc", ()))
        if first_field is None and field:
            first_field = field

        error_type = detail.get("type")
        text = detail.get("msg", "is invalid")
        if text.startswith("Value error, "):
            text = text[len("Value error, "):]

        if error_type == "missing":
            messages.append(f'"{field}" is required')
        elif error_type == "extra_forbidden":
            messages.append(f'"{field}" is not allowed')
        elif field:
            messages.append(f'"{field}" {text}')
        else:
            # Model-level validators name the field inside the message
            named = re.search(r'"(\w+)"', text)
            if first_field is None and named:
                first_field = named.group(1)
            messages.append(text)
    return "; ".join(messages), first_field


class RegistryProvider(ABC):
    """
    Base class for registry backends.

    Subclasses declare:
        TYPE: ProviderType of the backend
        CONFIGURATION_SCHEMA: pydantic model for the configuration
        SECRET_FIELDS: configuration keys masked by mask_configuration()
        ALLOWS_ANONYMOUS: accept an empty configuration ("" or None)
        HOSTNAME_PATTERN: regex used by the default match()
    """

    TYPE: ProviderType
    CONFIGURATION_SCHEMA: Type[ProviderSchema] = ProviderSchema
    SECRET_FIELDS: Tuple[str, ...] = ()
    ALLOWS_ANONYMOUS: bool = False
    HOSTNAME_PATTERN: Optional[re.Pattern] = None

    def __init__(self, name: Optional[str] = None, configuration: Optional[RegistryConfiguration] = None):
        self.name = (name or self.TYPE.value).lower()
        self.configuration: RegistryConfiguration = dict(configuration or {})

    @classmethod
    def create(cls, name: Optional[str], raw: Any) -> 'RegistryProvider':
        """Build a provider from a raw configuration entry (validated)."""
        provider = cls(name)
        provider.configuration = provider.validate_configuration(raw)
        return provider

    @property
    def type(self) -> str:
        return self.TYPE.value

    @property
    def id(self) -> str:
        return f"{self.type}.{self.name}"

    def get_configuration_schema(self) -> Type[ProviderSchema]:
        return self.CONFIGURATION_SCHEMA

    def validate_configuration(self, raw: Any) -> RegistryConfiguration:
        """
        Validate a raw configuration entry against the provider schema.

        Returns:
            Validated configuration with defaults filled in

        Raises:
            ConfigurationError: With a field-level message
        """
        if raw is None or raw == "":
            if self.ALLOWS_ANONYMOUS:
                return {}
            raise ConfigurationError(
                f"Registry {self.id} requires a configuration",
                provider=self.id,
            )

        if not isinstance(raw, Mapping):
            raise ConfigurationError(
                f"Registry {self.id} configuration must be an object",
                provider=self.id,
            )

        try:
            validated = self.get_configuration_schema().model_validate(dict(raw))
        except ValidationError as e:
            message, field = _format_validation_error(e)
            raise ConfigurationError(message, provider=self.id, field=field) from e

        return validated.model_dump(exclude_none=True)

    def mask_configuration(self) -> RegistryConfiguration:
        """Return the configuration with every secret field masked."""
        masked = dict(self.configuration)
        for key in self.SECRET_FIELDS:
            if key in masked:
                masked[key] = mask(masked[key])
        return masked

    def match(self, image: ContainerImage) -> bool:
        """Return True if this provider handles the image's registry."""
        if self.HOSTNAME_PATTERN is None:
            return False
        return bool(self.HOSTNAME_PATTERN.match(registry_host(image.registry.url)))

    def normalize_image(self, image: ContainerImage) -> ContainerImage:
        """Return a copy of the image with its registry URL rewritten to https://<host>/v2."""
        return image.with_registry_url(normalize_registry_url(image.registry.url))

    @abstractmethod
    async def authenticate(self, image: ContainerImage, request_options: RequestOptions) -> RequestOptions:
        """Decorate request_options with whatever this backend needs."""

    def get_auth_pull(self) -> Optional[PullCredentials]:
        return None

    def get_descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            id=self.id,
            type=self.type,
            name=self.name,
            configuration=self.mask_configuration(),
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id}>"

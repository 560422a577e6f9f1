"""
Registries Module

Registry resolution and authentication for image update checks.

Architecture:
- RegistryResolver: Picks the provider handling an image (declaration order, then defaults)
- RegistryProvider: Contract every backend implements (match, normalize, authenticate, ...)
- providers/: One provider per backend family (ECR, GCR, GHCR, Gitlab, Hub, ...)
- TokenCache: Single-slot cache for time-limited credentials
"""

from registries.base import RegistryProvider
from registries.errors import AuthenticationError, ConfigurationError, RegistryError
from registries.resolver import RegistryResolver
from registries.token_cache import TokenCache
from registries.types import (
    AuthToken,
    ContainerImage,
    ProviderDescriptor,
    ProviderType,
    PullCredentials,
    RegistryInfo,
    RequestOptions,
)

__all__ = [
    'RegistryResolver',
    'RegistryProvider',
    'TokenCache',
    'RegistryError',
    'ConfigurationError',
    'AuthenticationError',
    'AuthToken',
    'ContainerImage',
    'ProviderDescriptor',
    'ProviderType',
    'PullCredentials',
    'RegistryInfo',
    'RequestOptions',
]

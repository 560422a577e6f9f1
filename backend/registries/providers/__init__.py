"""
Registry providers, one per backend family.

PROVIDER_CLASSES is the closed set of provider types the resolver can
build from configuration.
"""

from typing import Dict, Type

from registries.base import RegistryProvider
from registries.providers.acr import AcrProvider
from registries.providers.custom import CustomProvider
from registries.providers.ecr import EcrProvider
from registries.providers.gcr import GcrProvider
from registries.providers.generic import GenericProvider
from registries.providers.ghcr import GhcrProvider
from registries.providers.gitlab import GitlabProvider
from registries.providers.hub import HubProvider
from registries.providers.lscr import LscrProvider
from registries.providers.quay import QuayProvider
from registries.types import ProviderType

PROVIDER_CLASSES: Dict[ProviderType, Type[RegistryProvider]] = {
    ProviderType.ACR: AcrProvider,
    ProviderType.CUSTOM: CustomProvider,
    ProviderType.ECR: EcrProvider,
    ProviderType.GCR: GcrProvider,
    ProviderType.GHCR: GhcrProvider,
    ProviderType.GITLAB: GitlabProvider,
    ProviderType.HUB: HubProvider,
    ProviderType.LSCR: LscrProvider,
    ProviderType.QUAY: QuayProvider,
}

__all__ = [
    'PROVIDER_CLASSES',
    'AcrProvider',
    'CustomProvider',
    'EcrProvider',
    'GcrProvider',
    'GenericProvider',
    'GhcrProvider',
    'GitlabProvider',
    'HubProvider',
    'LscrProvider',
    'QuayProvider',
]

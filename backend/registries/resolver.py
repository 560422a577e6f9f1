"""
Registry Resolver

Holds the configured provider instances and picks the one handling a
given image. Providers are tried in declaration order; images no explicit
provider matches fall through to the built-in defaults (anonymous Docker
Hub, then a generic provider matching any host).

Usage:
    resolver = RegistryResolver.from_settings()
    provider = resolver.resolve(image)
    image = provider.normalize_image(image)
    options = await provider.authenticate(image, RequestOptions())
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from config import settings
from registries.base import RegistryProvider
from registries.errors import ConfigurationError
from registries.providers import PROVIDER_CLASSES, GenericProvider, HubProvider
from registries.types import ContainerImage, ProviderDescriptor, ProviderType

logger = logging.getLogger(__name__)


def _is_named_instances(entry: Any) -> bool:
    """{"private": {...}, "public": {...}} declares several named instances."""
    return (
        isinstance(entry, Mapping)
        and len(entry) > 0
        and all(isinstance(value, Mapping) for value in entry.values())
    )


class RegistryResolver:
    """
    Ordered set of registry providers built from configuration.

    The provider list is replaced wholesale on reload(); callers holding a
    provider from a previous configuration can keep using it.
    """

    def __init__(self, configurations: Optional[Dict[str, Any]] = None):
        self._providers: List[RegistryProvider] = []
        self._defaults: List[RegistryProvider] = []
        self._watching_config = False
        self.reload(configurations or {})

    @classmethod
    def from_settings(cls) -> 'RegistryResolver':
        """
        Build a resolver from the application configuration (file + environment).

        The resolver rebuilds itself whenever the config file changes, until
        dispose() is called.
        """
        resolver = cls(settings.get_registry_configurations())
        settings.on_config_file_change(resolver._on_config_file_change)
        resolver._watching_config = True
        return resolver

    def _on_config_file_change(self):
        logger.info("Configuration changed, rebuilding registry providers")
        settings.reload_config()
        self.reload(settings.get_registry_configurations())

    @property
    def providers(self) -> List[RegistryProvider]:
        """Explicitly configured providers, in declaration order."""
        return list(self._providers)

    def reload(self, configurations: Dict[str, Any]):
        """
        Rebuild all providers from a configuration mapping.

        Args:
            configurations: { "<type>": config | "" | { "<name>": config } }
        """
        providers = self._build_providers(configurations)

        defaults: List[RegistryProvider] = []
        if not any(p.TYPE == ProviderType.HUB for p in providers):
            defaults.append(HubProvider())
        defaults.append(GenericProvider())

        self._providers = providers
        self._defaults = defaults

        logger.info(
            f"Registered {len(providers)} registry provider(s): "
            f"{', '.join(p.id for p in providers) or 'none'}"
        )

    def dispose(self):
        """Drop every provider (and their token caches) and stop following config changes."""
        if self._watching_config:
            settings.remove_config_file_callback(self._on_config_file_change)
            self._watching_config = False
        self._providers = []
        self._defaults = []

    def _build_providers(self, configurations: Dict[str, Any]) -> List[RegistryProvider]:
        providers: List[RegistryProvider] = []
        seen_ids = set()

        for raw_type, entry in configurations.items():
            type_name = str(raw_type).lower()
            try:
                provider_type = ProviderType(type_name)
                provider_class = PROVIDER_CLASSES[provider_type]
            except (ValueError, KeyError):
                logger.warning(f"Unknown registry type '{type_name}', ignoring its configuration")
                continue

            if _is_named_instances(entry):
                instances = list(entry.items())
            else:
                instances = [(type_name, entry)]

            for name, raw_configuration in instances:
                provider = self._create_provider(provider_class, str(name), raw_configuration)
                if provider is None:
                    continue

                if provider.id in seen_ids:
                    logger.warning(f"Duplicate registry {provider.id}, keeping the first declaration")
                    continue

                duplicate = next(
                    (p for p in providers
                     if p.TYPE == provider.TYPE and p.configuration == provider.configuration),
                    None,
                )
                if duplicate is not None:
                    logger.debug(f"Registry {provider.id} has the same configuration as {duplicate.id}, skipping")
                    continue

                seen_ids.add(provider.id)
                providers.append(provider)

        return providers

    @staticmethod
    def _create_provider(provider_class, name: str, raw_configuration: Any) -> Optional[RegistryProvider]:
        try:
            provider = provider_class.create(name, raw_configuration)
        except ConfigurationError as e:
            logger.warning(f"Registry {provider_class.TYPE.value}.{name.lower()} is misconfigured and will be ignored: {e}")
            return None

        logger.info(f"Registry {provider.id} configured: {provider.mask_configuration()}")
        return provider

    def resolve(self, image: ContainerImage) -> RegistryProvider:
        """
        Return the provider handling the image.

        Explicit providers win over built-in defaults; among explicit
        providers the first declared match wins.
        """
        for provider in self._providers + self._defaults:
            if provider.match(image):
                logger.debug(f"Image {image.name} on '{image.registry.url}' resolved to {provider.id}")
                return provider

        # Defaults end with GenericProvider, so this only happens after dispose()
        logger.debug(f"No provider left for '{image.registry.url}', using generic fallback")
        return GenericProvider()

    def get_provider(self, provider_id: str) -> Optional[RegistryProvider]:
        for provider in self._providers + self._defaults:
            if provider.id == provider_id:
                return provider
        return None

    def get_descriptors(self) -> List[ProviderDescriptor]:
        """Masked view of every active provider, for display."""
        return [provider.get_descriptor() for provider in self._providers + self._defaults]

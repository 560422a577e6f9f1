"""
Unit tests for RegistryResolver.

Tests verify:
- Declaration order decides which provider handles an image
- Misconfigured entries are excluded (with a warning), never fatal
- Built-in defaults: anonymous Docker Hub, then a generic fallback
- Named instances and deduplication
- Reload / dispose lifecycle
"""

import json
import logging
import os
import pytest

from config import settings

from registries.providers import (
    CustomProvider,
    GcrProvider,
    GenericProvider,
    GhcrProvider,
    HubProvider,
    LscrProvider,
)
from registries.resolver import RegistryResolver
from registries.types import ContainerImage, RequestOptions

GCR_CONFIGURATION = {"clientemail": "accesskeyid", "privatekey": "secretaccesskey"}


# =============================================================================
# Resolution
# =============================================================================

class TestResolve:
    """Test provider selection"""

    def test_first_declared_match_wins(self, make_image):
        resolver = RegistryResolver({
            "custom": {"url": "https://eu.gcr.io"},
            "gcr": GCR_CONFIGURATION,
        })

        assert resolver.resolve(make_image("eu.gcr.io")).id == "custom.custom"

    def test_gcr_selected_when_declared_first(self, make_image):
        resolver = RegistryResolver({
            "gcr": GCR_CONFIGURATION,
            "custom": {"url": "https://eu.gcr.io"},
        })

        for url in ("gcr.io", "us.gcr.io", "eu.gcr.io", "asia.gcr.io"):
            assert isinstance(resolver.resolve(make_image(url)), GcrProvider)

    def test_mirror_and_origin_resolve_separately(self, make_image):
        resolver = RegistryResolver({"lscr": {"username": "user", "token": "token"}, "ghcr": ""})

        assert isinstance(resolver.resolve(make_image("lscr.io")), LscrProvider)
        assert isinstance(resolver.resolve(make_image("ghcr.io")), GhcrProvider)

    def test_unmatched_image_falls_back_to_generic(self, make_image):
        resolver = RegistryResolver({"gcr": GCR_CONFIGURATION})

        provider = resolver.resolve(make_image("registry.example.com"))

        assert isinstance(provider, GenericProvider)
        assert provider.id == "generic.generic"

    def test_docker_hub_default_when_not_configured(self):
        resolver = RegistryResolver({})

        provider = resolver.resolve(ContainerImage.from_reference("nginx:latest"))

        assert isinstance(provider, HubProvider)
        assert provider.configuration == {}

    def test_configured_hub_replaces_default(self):
        resolver = RegistryResolver({"hub": {"login": "user", "password": "pass"}})

        provider = resolver.resolve(ContainerImage.from_reference("nginx"))

        assert provider.id == "hub.hub"
        assert provider.configuration["login"] == "user"
        assert [p.id for p in resolver.get_descriptors()] == ["hub.hub", "generic.generic"]

    def test_resolve_is_pure(self, make_image):
        resolver = RegistryResolver({"gcr": GCR_CONFIGURATION})
        image = make_image("eu.gcr.io")

        resolver.resolve(image)

        assert image.registry.url == "eu.gcr.io"


# =============================================================================
# Configuration handling
# =============================================================================

class TestBuildProviders:
    """Test construction from the configuration mapping"""

    def test_misconfigured_entry_excluded(self, make_image, caplog):
        with caplog.at_level(logging.WARNING, logger="registries.resolver"):
            resolver = RegistryResolver({
                "acr": {"clientid": "only-id"},
                "gcr": GCR_CONFIGURATION,
            })

        assert [p.id for p in resolver.providers] == ["gcr.gcr"]
        assert "acr.acr is misconfigured" in caplog.text
        assert isinstance(resolver.resolve(make_image("test.azurecr.io")), GenericProvider)

    def test_unknown_type_ignored(self, caplog):
        with caplog.at_level(logging.WARNING, logger="registries.resolver"):
            resolver = RegistryResolver({"nexus": {"url": "https://nexus"}, "generic": ""})

        assert resolver.providers == []
        assert "Unknown registry type 'nexus'" in caplog.text

    def test_type_is_case_insensitive(self):
        resolver = RegistryResolver({"GHCR": ""})

        assert [p.id for p in resolver.providers] == ["ghcr.ghcr"]

    def test_named_instances(self, make_image):
        resolver = RegistryResolver({
            "custom": {
                "private": {"url": "https://registry.private.example.com"},
                "Mirror": {"url": "https://mirror.example.com"},
            },
        })

        assert [p.id for p in resolver.providers] == ["custom.private", "custom.mirror"]
        assert resolver.resolve(make_image("mirror.example.com")).id == "custom.mirror"

    def test_duplicate_id_keeps_first(self, caplog):
        with caplog.at_level(logging.WARNING, logger="registries.resolver"):
            resolver = RegistryResolver({
                "ghcr": {"username": "first", "token": "t1"},
                "GHCR": {"username": "second", "token": "t2"},
            })

        assert len(resolver.providers) == 1
        assert resolver.providers[0].configuration["username"] == "first"
        assert "Duplicate registry ghcr.ghcr" in caplog.text

    def test_identical_configurations_deduplicated(self):
        resolver = RegistryResolver({
            "custom": {
                "a": {"url": "https://registry.example.com"},
                "b": {"url": "https://registry.example.com/"},
            },
        })

        assert [p.id for p in resolver.providers] == ["custom.a"]

    def test_configured_secrets_masked_in_logs(self, caplog):
        with caplog.at_level(logging.INFO, logger="registries.resolver"):
            RegistryResolver({"gcr": GCR_CONFIGURATION})

        assert "secretaccesskey" not in caplog.text
        assert "s*************y" in caplog.text

    def test_descriptors_are_masked(self):
        resolver = RegistryResolver({"gcr": GCR_CONFIGURATION})

        descriptor = resolver.get_descriptors()[0].to_dict()

        assert descriptor == {
            "id": "gcr.gcr",
            "type": "gcr",
            "name": "gcr",
            "configuration": {"clientemail": "accesskeyid", "privatekey": "s*************y"},
        }

    def test_get_provider(self):
        resolver = RegistryResolver({"ghcr": ""})

        assert isinstance(resolver.get_provider("ghcr.ghcr"), GhcrProvider)
        assert isinstance(resolver.get_provider("hub.hub"), HubProvider)
        assert resolver.get_provider("quay.quay") is None


# =============================================================================
# Lifecycle
# =============================================================================

class TestLifecycle:
    """Test reload and dispose"""

    def test_reload_replaces_providers(self, make_image):
        resolver = RegistryResolver({"gcr": GCR_CONFIGURATION})

        resolver.reload({"custom": {"url": "https://eu.gcr.io"}})

        assert isinstance(resolver.resolve(make_image("eu.gcr.io")), CustomProvider)
        assert resolver.get_provider("gcr.gcr") is None

    @pytest.mark.asyncio
    async def test_stale_provider_keeps_working_after_reload(self, make_image, mock_fetch_token):
        resolver = RegistryResolver({"gcr": GCR_CONFIGURATION})
        stale = resolver.resolve(make_image("gcr.io"))

        resolver.reload({})
        options = await stale.authenticate(make_image("gcr.io", name="project/app"), RequestOptions())

        assert options.headers == {"Authorization": "Bearer xxxxx"}

    def test_reload_does_not_share_instances(self, make_image):
        resolver = RegistryResolver({"ghcr": ""})
        before = resolver.resolve(make_image("ghcr.io"))

        resolver.reload({"ghcr": ""})

        assert resolver.resolve(make_image("ghcr.io")) is not before

    def test_dispose(self, make_image):
        resolver = RegistryResolver({"gcr": GCR_CONFIGURATION})

        resolver.dispose()

        assert resolver.providers == []
        assert resolver.get_descriptors() == []
        assert isinstance(resolver.resolve(make_image("gcr.io")), GenericProvider)


# =============================================================================
# Settings integration
# =============================================================================

class TestFromSettings:
    """Test building the resolver from file + environment"""

    def test_from_config_file(self, clean_config, make_image):
        clean_config.write_text(json.dumps({"registry": {"gcr": GCR_CONFIGURATION}}))

        resolver = RegistryResolver.from_settings()

        assert isinstance(resolver.resolve(make_image("eu.gcr.io")), GcrProvider)

    def test_from_environment(self, clean_config, monkeypatch, make_image):
        monkeypatch.setenv("REGWATCH_REGISTRY_GHCR_PRIVATE_USERNAME", "user")
        monkeypatch.setenv("REGWATCH_REGISTRY_GHCR_PRIVATE_TOKEN", "token")

        resolver = RegistryResolver.from_settings()

        provider = resolver.resolve(make_image("ghcr.io"))
        assert provider.id == "ghcr.private"
        assert provider.configuration == {"username": "user", "token": "token"}

    def test_rebuilt_when_config_file_changes(self, clean_config, make_image):
        clean_config.write_text(json.dumps({"registry": {}}))
        resolver = RegistryResolver.from_settings()
        assert isinstance(resolver.resolve(make_image("eu.gcr.io")), GenericProvider)

        clean_config.write_text(json.dumps({"registry": {"gcr": GCR_CONFIGURATION}}))
        bumped = os.stat(clean_config).st_mtime_ns + 2_000_000_000
        os.utime(clean_config, ns=(bumped, bumped))
        assert settings.check_config_file() is True

        assert resolver.resolve(make_image("eu.gcr.io")).id == "gcr.gcr"

    def test_dispose_stops_following_config_changes(self, clean_config, make_image):
        clean_config.write_text(json.dumps({"registry": {}}))
        resolver = RegistryResolver.from_settings()

        resolver.dispose()
        clean_config.write_text(json.dumps({"registry": {"gcr": GCR_CONFIGURATION}}))
        bumped = os.stat(clean_config).st_mtime_ns + 2_000_000_000
        os.utime(clean_config, ns=(bumped, bumped))
        settings.check_config_file()

        assert resolver.providers == []
        assert resolver.get_descriptors() == []

    def test_plain_resolver_ignores_config_changes(self, clean_config):
        clean_config.write_text(json.dumps({"registry": {}}))
        settings.get_config()
        resolver = RegistryResolver({"ghcr": ""})

        clean_config.write_text(json.dumps({"registry": {"gcr": GCR_CONFIGURATION}}))
        bumped = os.stat(clean_config).st_mtime_ns + 2_000_000_000
        os.utime(clean_config, ns=(bumped, bumped))
        settings.check_config_file()

        assert [p.id for p in resolver.providers] == ["ghcr.ghcr"]

"""
Shared types for registry providers.

This module contains the dataclasses exchanged between the resolver,
the providers and their callers (the update checker and the pull executor).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, Tuple

DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"

# Validated, provider-specific configuration (output of validate_configuration)
RegistryConfiguration = Dict[str, Any]


class ProviderType(str, Enum):
    """Closed set of supported registry backends."""
    ACR = "acr"
    CUSTOM = "custom"
    ECR = "ecr"
    GCR = "gcr"
    GHCR = "ghcr"
    GITLAB = "gitlab"
    HUB = "hub"
    LSCR = "lscr"
    QUAY = "quay"
    GENERIC = "generic"


@dataclass
class RegistryInfo:
    """Registry part of an image reference."""
    name: str = ""
    url: str = ""


@dataclass
class ContainerImage:
    """
    Image descriptor handed to the registry layer.

    registry.url starts as a bare hostname (possibly with a path) and is
    rewritten to https://<host>/v2 by a provider's normalize_image().
    """
    name: str
    tag: Optional[str] = None
    digest: Optional[str] = None
    registry: RegistryInfo = field(default_factory=RegistryInfo)

    def with_registry_url(self, url: str) -> 'ContainerImage':
        """Return a copy pointing to another registry URL."""
        return replace(self, registry=replace(self.registry, url=url))

    def with_name(self, name: str) -> 'ContainerImage':
        """Return a copy with another repository name."""
        return replace(self, name=name, registry=replace(self.registry))

    @classmethod
    def from_reference(cls, image_ref: str) -> 'ContainerImage':
        """
        Parse an image reference into a ContainerImage.

        Examples:
            nginx:1.25 → (docker.io, nginx, 1.25)
            ghcr.io/user/app:v1.0 → (ghcr.io, user/app, v1.0)
            myregistry.com:5000/app → (myregistry.com:5000, app, latest)
            eu.gcr.io/project/app@sha256:abc → (eu.gcr.io, project/app, digest)
        """
        if not image_ref:
            raise ValueError("Image reference cannot be empty")

        registry = DEFAULT_REGISTRY
        digest = None
        tag = None
        remainder = image_ref

        if "@" in remainder:
            remainder, digest = remainder.split("@", 1)

        # First segment is a registry if it looks like a host
        if "/" in remainder:
            first, rest = remainder.split("/", 1)
            if "." in first or ":" in first or first == "localhost":
                registry = first
                remainder = rest

        # A colon after the last slash separates the tag
        last_segment = remainder.rsplit("/", 1)[-1]
        if ":" in last_segment:
            remainder, tag = remainder.rsplit(":", 1)

        if tag is None and digest is None:
            tag = DEFAULT_TAG

        return cls(
            name=remainder,
            tag=tag,
            digest=digest,
            registry=RegistryInfo(name=registry, url=registry),
        )


@dataclass(frozen=True)
class AuthToken:
    """Time-bounded credential fetched from a registry auth endpoint."""
    value: str
    expires_at: datetime

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """A token is usable if and only if now < expires_at."""
        now = now or datetime.now(timezone.utc)
        return now < self.expires_at


@dataclass
class RequestOptions:
    """
    Outgoing HTTP request options decorated by authenticate().

    Consumed once per call; providers never keep a reference to it.
    """
    headers: Dict[str, str] = field(default_factory=dict)
    auth: Optional[Tuple[str, str]] = None

    @property
    def authorization(self) -> Optional[str]:
        return self.headers.get("Authorization")


@dataclass
class PullCredentials:
    """Static username/password pair for engine-level pulls."""
    username: str
    password: str

    def to_auth_config(self) -> Dict[str, str]:
        """Docker SDK auth_config dict (images.pull(..., auth_config=...))."""
        return {"username": self.username, "password": self.password}


@dataclass
class ProviderDescriptor:
    """Display-only view of a configured provider (configuration is masked)."""
    id: str
    type: str
    name: str
    configuration: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "configuration": dict(self.configuration),
        }

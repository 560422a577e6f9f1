"""
Error kinds raised by the registry layer.

ConfigurationError: a provider configuration failed schema validation.
    The resolver logs it and excludes the provider.
AuthenticationError: a token exchange failed or returned an unexpected shape.
    Propagates to the caller, which fails that single image check.
"""

from typing import Optional


class RegistryError(Exception):
    """Base class for registry layer errors."""


class ConfigurationError(RegistryError):
    """Invalid registry configuration."""

    def __init__(self, message: str, provider: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.field = field


class AuthenticationError(RegistryError):
    """Failed to obtain a registry credential."""

    def __init__(self, message: str, provider: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status

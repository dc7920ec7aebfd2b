"""Providers — tool bindings for brew, mas, defaults, dockutil and friends.

Public re-exports for convenient access.
"""

from macsetup.adapters.base import PrivilegeBackend, Provider, ProviderError
from macsetup.adapters.mock import MockPrivilegeBackend, MockProvider
from macsetup.adapters.registry import ProviderRegistry

__all__ = [
    "MockPrivilegeBackend",
    "MockProvider",
    "PrivilegeBackend",
    "Provider",
    "ProviderError",
    "ProviderRegistry",
]

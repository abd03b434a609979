"""Provider registry."""

from __future__ import annotations

from .base import ProviderRegistry
from .env import EnvProviderRegistry


def default_registry() -> ProviderRegistry:
    return EnvProviderRegistry()

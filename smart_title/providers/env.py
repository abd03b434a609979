"""Environment-key provider registry."""

from __future__ import annotations

import os
from typing import Mapping

from ..errors import ModelUnavailableError, ProviderNotAuthenticatedError
from ..models.registry import FALLBACK_MODELS
from .base import AuthenticatedProvider, ModelHandle, ProviderInfo

PROVIDER_ENV_KEYS: dict[str, tuple[str, ...]] = {
    "openai": ("OPENAI_API_KEY", "OPENAI_API_KEY_BACKUP"),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "google": ("GEMINI_API_KEY", "GOOGLE_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"),
    "deepseek": ("DEEPSEEK_API_KEY",),
    "xai": ("XAI_API_KEY",),
    "alibaba": ("DASHSCOPE_API_KEY",),
    "zai": ("ZHIPU_API_KEY", "ZAI_API_KEY"),
    "opencode": ("OPENCODE_API_KEY",),
}

PROVIDER_NAMES: dict[str, str] = {
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "google": "Google",
    "deepseek": "DeepSeek",
    "xai": "xAI",
    "alibaba": "Alibaba",
    "zai": "Z.AI",
    "opencode": "OpenCode Zen",
}


class EnvProviderRegistry:
    """Treats a provider as authenticated when one of its API-key variables is set.

    Keys are re-read on every call, so a snapshot can go stale between listing
    and construction.
    """

    def __init__(self, env_keys: Mapping[str, tuple[str, ...]] | None = None) -> None:
        self._env_keys = dict(env_keys) if env_keys is not None else dict(PROVIDER_ENV_KEYS)

    async def list_authenticated_providers(self) -> dict[str, AuthenticatedProvider]:
        providers: dict[str, AuthenticatedProvider] = {}
        for provider_id in self._env_keys:
            if self._credential_var(provider_id) is None:
                continue
            models = {FALLBACK_MODELS[provider_id]: {}} if provider_id in FALLBACK_MODELS else {}
            providers[provider_id] = AuthenticatedProvider(
                source="env",
                info=ProviderInfo(name=PROVIDER_NAMES.get(provider_id, provider_id), models=models),
            )
        return providers

    async def get_model_handle(self, provider_id: str, model_id: str) -> ModelHandle:
        if not model_id.strip():
            raise ModelUnavailableError(provider_id, model_id, "Model id must not be blank.")
        env_var = self._credential_var(provider_id)
        if env_var is None:
            keys = " or ".join(self._env_keys.get(provider_id, ())) or "an API key"
            raise ProviderNotAuthenticatedError(
                provider_id, f"Provider '{provider_id}' is not authenticated. Set {keys}."
            )
        return ModelHandle(provider_id=provider_id, model_id=model_id, credential_source=env_var)

    def _credential_var(self, provider_id: str) -> str | None:
        for key in self._env_keys.get(provider_id, ()):
            if (os.getenv(key) or "").strip():
                return key
        return None

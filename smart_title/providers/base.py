"""Provider registry interfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    models: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthenticatedProvider:
    source: str
    info: ProviderInfo


@dataclass(frozen=True)
class ModelHandle:
    """Opaque reference to a model on a provider, handed to the title generator."""

    provider_id: str
    model_id: str
    credential_source: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)


class ProviderRegistry(Protocol):
    async def list_authenticated_providers(self) -> Mapping[str, AuthenticatedProvider]:
        ...

    async def get_model_handle(self, provider_id: str, model_id: str) -> Any:
        ...


def describe_providers(providers: Mapping[str, Any], sample_size: int = 10) -> list[dict[str, Any]]:
    """Summarize a snapshot for logging; entries may be objects or plain mappings."""
    described: list[dict[str, Any]] = []
    for provider_id, provider in providers.items():
        try:
            described.append(_describe_provider(provider_id, provider, sample_size))
        except Exception:
            described.append({"id": provider_id})
    return described


def _describe_provider(provider_id: str, provider: Any, sample_size: int) -> dict[str, Any]:
    info = _field(provider, "info")
    models = _field(info, "models")
    if isinstance(models, Mapping):
        model_ids = [str(key) for key in models.keys()]
    elif isinstance(models, (list, tuple)):
        model_ids = [str(item) for item in models]
    else:
        model_ids = []
    return {
        "id": provider_id,
        "source": _field(provider, "source"),
        "name": _field(info, "name"),
        "model_count": len(model_ids),
        "sample_models": model_ids[:sample_size],
    }


def _field(value: Any, key: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(key)
    return getattr(value, key, None)

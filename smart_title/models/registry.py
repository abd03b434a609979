"""Fallback model table for title generation."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping


@dataclass(frozen=True)
class ModelRef:
    provider_id: str
    model_id: str

    def __str__(self) -> str:
        return f"{self.provider_id}/{self.model_id}"

    @classmethod
    def parse(cls, value: str) -> ModelRef | None:
        """Parse ``provider/model``; anything but two non-empty segments is malformed."""
        parts = value.split("/")
        if len(parts) != 2 or not all(parts):
            return None
        return cls(provider_id=parts[0], model_id=parts[1])


PROVIDER_PRIORITY: tuple[str, ...] = (
    "openai",
    "anthropic",
    "google",
    "deepseek",
    "xai",
    "alibaba",
    "zai",
    "opencode",
)

FALLBACK_MODELS: Mapping[str, str] = MappingProxyType(
    {
        "openai": "gpt-5-mini",
        "anthropic": "claude-haiku-4-5",
        "google": "gemini-2.5-flash",
        "deepseek": "deepseek-chat",
        "xai": "grok-4-fast",
        "alibaba": "qwen3-coder-flash",
        "zai": "glm-4.5-flash",
        "opencode": "big-pickle",
    }
)


class FallbackTable:
    def __init__(
        self,
        priority: tuple[str, ...] = PROVIDER_PRIORITY,
        models: Mapping[str, str] | None = None,
    ) -> None:
        self._priority = tuple(priority)
        self._models = MappingProxyType(dict(models if models is not None else FALLBACK_MODELS))

    @property
    def priority(self) -> tuple[str, ...]:
        return self._priority

    @property
    def models(self) -> Mapping[str, str]:
        return self._models

    def fallback_model(self, provider_id: str) -> str | None:
        return self._models.get(provider_id)

    def candidates(
        self,
        authenticated: Mapping[str, Any],
        on_unauthenticated: Callable[[str], None] | None = None,
    ) -> Iterator[tuple[str, str | None]]:
        """Yield authenticated providers in table order with their mapped model.

        The snapshot is only consulted for membership; its own key order never
        affects the traversal. Entries with a falsy value count as unauthenticated.
        """
        for provider_id in self._priority:
            if not authenticated.get(provider_id):
                if on_unauthenticated is not None:
                    on_unauthenticated(provider_id)
                continue
            yield provider_id, self._models.get(provider_id)


DEFAULT_FALLBACK_TABLE = FallbackTable()

"""Model selection and fallback logic.

Selection hierarchy:

1. The configured ``provider/model`` (if given and well-formed) is tried once.
2. Authenticated providers are tried in fallback-table priority order, each
   with its mapped model, until one constructs.

Per-candidate failures are logged and absorbed; only exhaustion is raised.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from ..errors import NoAvailableModelsError, normalize_error
from ..logger import Logger
from ..providers.base import AuthenticatedProvider, ProviderRegistry, describe_providers
from ..utils import monotonic_ms
from .registry import DEFAULT_FALLBACK_TABLE, FallbackTable, ModelRef

_COMPONENT = "model-selector"
_FAILED = object()

SelectionSource = Literal["config", "fallback"]


@dataclass(frozen=True)
class SelectionResult:
    handle: Any
    model_info: ModelRef
    source: SelectionSource
    reason: str
    failed_model: ModelRef | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.model_info.provider_id,
            "model_id": self.model_info.model_id,
            "source": self.source,
            "reason": self.reason,
            "failed_model": str(self.failed_model) if self.failed_model else None,
        }


class ModelSelector:
    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        logger: Logger | None = None,
        attempt_timeout_s: float | None = None,
        fallback_table: FallbackTable = DEFAULT_FALLBACK_TABLE,
    ) -> None:
        self.registry = registry
        self.logger = logger
        self.attempt_timeout_s = attempt_timeout_s
        self.fallback_table = fallback_table

    async def select(self, configured_model: str | None = None) -> SelectionResult:
        started_at = monotonic_ms()
        self._log("info", "Model selection started", {"configured_model": configured_model})
        registry = self._resolve_registry()

        failed_model: ModelRef | None = None

        if configured_model:
            ref = ModelRef.parse(configured_model)
            if ref is None:
                self._log(
                    "warn",
                    'Invalid configured model format, expected "provider/model"',
                    {"configured_model": configured_model},
                )
            else:
                self._log("debug", "Attempting configured model", {"provider_id": ref.provider_id, "model_id": ref.model_id})
                handle = await self._attempt(registry, ref)
                if handle is not _FAILED:
                    return SelectionResult(
                        handle=handle,
                        model_info=ref,
                        source="config",
                        reason=f"Using configured model {ref}",
                    )
                failed_model = ref

        providers = await self._discover(registry)

        self._log("debug", "Attempting fallback models", {"priority_order": list(self.fallback_table.priority)})
        candidates = self.fallback_table.candidates(
            providers,
            on_unauthenticated=lambda provider_id: self._log("debug", f"Skipping {provider_id} (not authenticated)"),
        )
        for provider_id, model_id in candidates:
            if not model_id:
                self._log("debug", f"Skipping {provider_id} (no fallback model configured)")
                continue
            ref = ModelRef(provider_id, model_id)
            self._log("debug", f"Attempting {ref}")
            handle = await self._attempt(registry, ref)
            if handle is not _FAILED:
                return SelectionResult(
                    handle=handle,
                    model_info=ref,
                    source="fallback",
                    reason=f"Using {ref}",
                    failed_model=failed_model,
                )

        self._log(
            "error",
            "Model selection failed after exhausting configured and fallback models",
            {
                "configured_model": configured_model,
                "provider_priority": list(self.fallback_table.priority),
                "fallback_models": dict(self.fallback_table.models),
                "total_duration_ms": monotonic_ms() - started_at,
                "failed_model": str(failed_model) if failed_model else None,
            },
        )
        raise NoAvailableModelsError()

    def _resolve_registry(self) -> ProviderRegistry:
        if self.registry is not None:
            return self.registry
        # Built per call so credentials are read fresh.
        from ..providers import default_registry

        return default_registry()

    async def _attempt(self, registry: ProviderRegistry, ref: ModelRef) -> Any:
        started_at = monotonic_ms()
        try:
            call = registry.get_model_handle(ref.provider_id, ref.model_id)
            if self.attempt_timeout_s is not None:
                handle = await asyncio.wait_for(call, timeout=self.attempt_timeout_s)
            else:
                handle = await call
        except Exception as exc:
            self._log(
                "warn",
                f"Failed to use {ref}",
                {
                    "provider_id": ref.provider_id,
                    "model_id": ref.model_id,
                    "duration_ms": monotonic_ms() - started_at,
                    "error": normalize_error(exc).to_dict(),
                },
            )
            return _FAILED
        self._log(
            "info",
            f"Successfully using {ref}",
            {"provider_id": ref.provider_id, "model_id": ref.model_id, "duration_ms": monotonic_ms() - started_at},
        )
        return handle

    async def _discover(self, registry: ProviderRegistry) -> Mapping[str, AuthenticatedProvider]:
        self._log("debug", "Fetching authenticated providers")
        started_at = monotonic_ms()
        try:
            providers = await registry.list_authenticated_providers()
        except Exception as exc:
            self._log(
                "error",
                "Failed to list authenticated providers; continuing with none",
                {"duration_ms": monotonic_ms() - started_at, "error": normalize_error(exc).to_dict()},
            )
            return {}
        providers = providers or {}
        self._log(
            "info",
            "Available authenticated providers",
            {
                "duration_ms": monotonic_ms() - started_at,
                "provider_count": len(providers),
                "provider_ids": list(providers.keys()),
                "providers": describe_providers(providers),
            },
        )
        return providers

    def _log(self, level: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        if self.logger is None:
            return
        # Logging must never interrupt selection.
        try:
            getattr(self.logger, level)(_COMPONENT, message, data)
        except Exception:
            return


async def select_model(
    configured_model: str | None = None,
    *,
    logger: Logger | None = None,
    registry: ProviderRegistry | None = None,
    attempt_timeout_s: float | None = None,
) -> SelectionResult:
    selector = ModelSelector(registry=registry, logger=logger, attempt_timeout_s=attempt_timeout_s)
    return await selector.select(configured_model)

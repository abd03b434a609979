"""Dry-run provider registry (offline)."""

from __future__ import annotations

import asyncio
from typing import Iterable

from ..errors import ModelUnavailableError, ProviderNotAuthenticatedError
from ..models.registry import FALLBACK_MODELS, ModelRef
from .base import AuthenticatedProvider, ModelHandle, ProviderInfo


class DryRunProviderRegistry:
    def __init__(
        self,
        providers: Iterable[str],
        failing: Iterable[ModelRef | str] = (),
        discovery_error: Exception | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self._providers = list(providers)
        self._failing = {str(ref) for ref in failing}
        self._discovery_error = discovery_error
        self.delay_s = delay_s
        self.calls: list[ModelRef] = []
        self.list_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_authenticated_providers(self) -> dict[str, AuthenticatedProvider]:
        self.list_calls += 1
        if self._discovery_error is not None:
            raise self._discovery_error
        return {
            provider_id: AuthenticatedProvider(
                source="dryrun",
                info=ProviderInfo(
                    name=provider_id,
                    models={FALLBACK_MODELS[provider_id]: {}} if provider_id in FALLBACK_MODELS else {},
                ),
            )
            for provider_id in self._providers
        }

    async def get_model_handle(self, provider_id: str, model_id: str) -> ModelHandle:
        ref = ModelRef(provider_id, model_id)
        self.calls.append(ref)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
        finally:
            self.in_flight -= 1
        if str(ref) in self._failing:
            raise ModelUnavailableError(provider_id, model_id, f"Dry-run failure for {ref}.")
        if provider_id not in self._providers:
            raise ProviderNotAuthenticatedError(provider_id)
        return ModelHandle(provider_id=provider_id, model_id=model_id, options={"dryrun": True})

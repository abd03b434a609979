from __future__ import annotations

import asyncio
from typing import Any

import pytest

from smart_title.errors import NoAvailableModelsError
from smart_title.models.registry import FallbackTable, ModelRef
from smart_title.models.selectors import ModelSelector, select_model
from smart_title.providers.base import AuthenticatedProvider, ModelHandle, ProviderInfo
from smart_title.providers.dryrun import DryRunProviderRegistry


class _RecordingLogger:
    def __init__(self) -> None:
        self.entries: list[tuple[str, str, str, Any]] = []

    def debug(self, component: str, message: str, data: Any = None) -> None:
        self.entries.append(("debug", component, message, data))

    def info(self, component: str, message: str, data: Any = None) -> None:
        self.entries.append(("info", component, message, data))

    def warn(self, component: str, message: str, data: Any = None) -> None:
        self.entries.append(("warn", component, message, data))

    def error(self, component: str, message: str, data: Any = None) -> None:
        self.entries.append(("error", component, message, data))

    def levels(self, level: str) -> list[str]:
        return [message for lvl, _, message, _ in self.entries if lvl == level]


class _ExplodingLogger(_RecordingLogger):
    def info(self, component: str, message: str, data: Any = None) -> None:
        raise RuntimeError("log sink down")


def _select(registry: Any, configured: str | None = None, **kwargs: Any):
    return asyncio.run(ModelSelector(registry, **kwargs).select(configured))


def test_configured_model_success_short_circuits() -> None:
    registry = DryRunProviderRegistry(["openai", "anthropic"])
    result = _select(registry, "anthropic/claude-sonnet-4")

    assert result.source == "config"
    assert result.model_info == ModelRef("anthropic", "claude-sonnet-4")
    assert result.failed_model is None
    assert isinstance(result.handle, ModelHandle)
    assert registry.calls == [ModelRef("anthropic", "claude-sonnet-4")]
    assert registry.list_calls == 0


def test_configured_failure_falls_through_in_table_order() -> None:
    registry = DryRunProviderRegistry(["xai", "anthropic"], failing=["openai/gpt-broken"])
    result = _select(registry, "openai/gpt-broken")

    assert result.source == "fallback"
    assert result.model_info == ModelRef("anthropic", "claude-haiku-4-5")
    assert result.failed_model == ModelRef("openai", "gpt-broken")
    assert result.reason == "Using anthropic/claude-haiku-4-5"
    assert registry.calls == [ModelRef("openai", "gpt-broken"), ModelRef("anthropic", "claude-haiku-4-5")]
    assert registry.list_calls == 1


def test_unauthenticated_providers_are_never_attempted() -> None:
    registry = DryRunProviderRegistry(["google"])
    result = _select(registry)

    assert result.model_info == ModelRef("google", "gemini-2.5-flash")
    assert ModelRef("openai", "gpt-5-mini") not in registry.calls
    assert ModelRef("anthropic", "claude-haiku-4-5") not in registry.calls
    assert registry.calls == [ModelRef("google", "gemini-2.5-flash")]


def test_exhaustion_raises_when_every_fallback_fails() -> None:
    registry = DryRunProviderRegistry(
        ["openai", "zai"],
        failing=["openai/gpt-5-mini", "zai/glm-4.5-flash"],
    )
    logger = _RecordingLogger()
    with pytest.raises(NoAvailableModelsError, match="authenticate with at least one provider"):
        _select(registry, logger=logger)

    assert registry.calls == [ModelRef("openai", "gpt-5-mini"), ModelRef("zai", "glm-4.5-flash")]
    assert logger.levels("error") == ["Model selection failed after exhausting configured and fallback models"]


def test_exhaustion_raises_with_no_authenticated_providers() -> None:
    registry = DryRunProviderRegistry([])
    with pytest.raises(NoAvailableModelsError):
        _select(registry, "openai/gpt-5-mini")
    assert registry.calls == [ModelRef("openai", "gpt-5-mini")]


def test_no_available_models_error_is_runtime_error() -> None:
    with pytest.raises(RuntimeError):
        _select(DryRunProviderRegistry([]))


@pytest.mark.parametrize("configured", ["not-a-valid-format", "a/b/c", "/gpt-5-mini", "openai/"])
def test_malformed_configured_model_is_not_attempted(configured: str) -> None:
    registry = DryRunProviderRegistry(["anthropic"])
    logger = _RecordingLogger()
    result = _select(registry, configured, logger=logger)

    assert result.source == "fallback"
    assert result.failed_model is None
    assert registry.calls == [ModelRef("anthropic", "claude-haiku-4-5")]
    assert any("Invalid configured model format" in message for message in logger.levels("warn"))


def test_first_success_wins_deterministically() -> None:
    for _ in range(5):
        registry = DryRunProviderRegistry(["anthropic", "openai"])
        result = _select(registry)
        assert result.model_info == ModelRef("openai", "gpt-5-mini")
        assert registry.calls == [ModelRef("openai", "gpt-5-mini")]


def test_fallback_failure_continues_to_next_provider() -> None:
    registry = DryRunProviderRegistry(["opencode", "deepseek", "openai"], failing=["openai/gpt-5-mini"])
    result = _select(registry)

    assert result.model_info == ModelRef("deepseek", "deepseek-chat")
    assert result.failed_model is None
    assert registry.calls == [ModelRef("openai", "gpt-5-mini"), ModelRef("deepseek", "deepseek-chat")]


def test_configured_provider_in_table_is_still_tried_first() -> None:
    registry = DryRunProviderRegistry(["openai"])
    result = _select(registry, "openai/gpt-5-mini")

    assert result.source == "config"
    assert registry.calls == [ModelRef("openai", "gpt-5-mini")]


def test_configured_pair_matching_fallback_is_walked_again() -> None:
    registry = DryRunProviderRegistry(["openai"], failing=["openai/gpt-5-mini"])
    with pytest.raises(NoAvailableModelsError):
        _select(registry, "openai/gpt-5-mini")
    # The configured attempt and the table walk are separate stages.
    assert registry.calls == [ModelRef("openai", "gpt-5-mini"), ModelRef("openai", "gpt-5-mini")]


def test_discovery_failure_is_treated_as_no_providers() -> None:
    registry = DryRunProviderRegistry(["openai"], discovery_error=ConnectionError("auth store offline"))
    logger = _RecordingLogger()
    with pytest.raises(NoAvailableModelsError):
        _select(registry, logger=logger)

    assert registry.calls == []
    assert "Failed to list authenticated providers; continuing with none" in logger.levels("error")


def test_provider_without_fallback_mapping_is_skipped() -> None:
    table = FallbackTable(priority=("custom", "anthropic"), models={"anthropic": "claude-haiku-4-5"})
    registry = DryRunProviderRegistry(["custom", "anthropic"])
    logger = _RecordingLogger()
    result = _select(registry, fallback_table=table, logger=logger)

    assert result.model_info == ModelRef("anthropic", "claude-haiku-4-5")
    assert registry.calls == [ModelRef("anthropic", "claude-haiku-4-5")]
    assert "Skipping custom (no fallback model configured)" in logger.levels("debug")


def test_attempt_timeout_counts_as_failure() -> None:
    registry = DryRunProviderRegistry(["openai"], delay_s=0.5)
    with pytest.raises(NoAvailableModelsError):
        _select(registry, "openai/slow-model", attempt_timeout_s=0.01)
    assert registry.calls == [ModelRef("openai", "slow-model"), ModelRef("openai", "gpt-5-mini")]


def test_failure_logs_include_normalized_error() -> None:
    registry = DryRunProviderRegistry(["anthropic"], failing=["anthropic/claude-haiku-4-5"])
    logger = _RecordingLogger()
    with pytest.raises(NoAvailableModelsError):
        _select(registry, logger=logger)

    warnings = [data for level, _, _, data in logger.entries if level == "warn"]
    assert warnings[0]["error"]["type_name"] == "ModelUnavailableError"
    assert warnings[0]["error"]["provider_id"] == "anthropic"
    assert warnings[0]["error"]["model_id"] == "claude-haiku-4-5"
    assert all(component == "model-selector" for _, component, _, _ in logger.entries)


def test_logger_failures_do_not_break_selection() -> None:
    registry = DryRunProviderRegistry(["openai"])
    result = _select(registry, logger=_ExplodingLogger())
    assert result.model_info == ModelRef("openai", "gpt-5-mini")


def test_select_model_reads_fresh_snapshot_each_call() -> None:
    registry = DryRunProviderRegistry(["anthropic"])
    asyncio.run(select_model(registry=registry))
    asyncio.run(select_model(registry=registry))
    assert registry.list_calls == 2


def test_selection_result_to_dict() -> None:
    registry = DryRunProviderRegistry(["xai"], failing=["openai/bad"])
    payload = _select(registry, "openai/bad").to_dict()
    assert payload == {
        "provider_id": "xai",
        "model_id": "grok-4-fast",
        "source": "fallback",
        "reason": "Using xai/grok-4-fast",
        "failed_model": "openai/bad",
    }


def test_default_registry_uses_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "OPENAI_API_KEY",
        "OPENAI_API_KEY_BACKUP",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "GOOGLE_GENERATIVE_AI_API_KEY",
        "DEEPSEEK_API_KEY",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    result = asyncio.run(select_model())
    assert result.model_info == ModelRef("anthropic", "claude-haiku-4-5")
    assert result.handle.credential_source == "ANTHROPIC_API_KEY"


class _SnapshotRegistry:
    """Registry returning a caller-supplied snapshot verbatim."""

    def __init__(self, snapshot: dict[str, Any]) -> None:
        self.snapshot = snapshot
        self.calls: list[ModelRef] = []

    async def list_authenticated_providers(self) -> dict[str, Any]:
        return self.snapshot

    async def get_model_handle(self, provider_id: str, model_id: str) -> ModelHandle:
        self.calls.append(ModelRef(provider_id, model_id))
        return ModelHandle(provider_id=provider_id, model_id=model_id)


def test_odd_snapshot_shapes_do_not_escape_select() -> None:
    registry = _SnapshotRegistry(
        {"openai": AuthenticatedProvider(source="api", info=ProviderInfo(name="OpenAI", models=["gpt-5-mini"]))}  # type: ignore[arg-type]
    )
    logger = _RecordingLogger()
    result = _select(registry, logger=logger)

    assert result.model_info == ModelRef("openai", "gpt-5-mini")
    described = [data for _, _, message, data in logger.entries if message == "Available authenticated providers"]
    assert described[0]["providers"][0]["sample_models"] == ["gpt-5-mini"]


def test_mapping_shaped_snapshot_is_logged() -> None:
    registry = _SnapshotRegistry(
        {"openai": {"source": "oauth", "info": {"name": "OpenAI", "models": {"gpt-5-mini": {}}}}}
    )
    logger = _RecordingLogger()
    _select(registry, logger=logger)

    described = [data for _, _, message, data in logger.entries if message == "Available authenticated providers"]
    assert described[0]["providers"] == [
        {"id": "openai", "source": "oauth", "name": "OpenAI", "model_count": 1, "sample_models": ["gpt-5-mini"]}
    ]


def test_falsy_snapshot_entries_count_as_unauthenticated() -> None:
    registry = _SnapshotRegistry({"openai": None, "anthropic": {"source": "api", "info": {"name": "Anthropic"}}})
    logger = _RecordingLogger()
    result = _select(registry, logger=logger)

    assert result.model_info == ModelRef("anthropic", "claude-haiku-4-5")
    assert registry.calls == [ModelRef("anthropic", "claude-haiku-4-5")]
    assert "Skipping openai (not authenticated)" in logger.levels("debug")


def test_concurrent_selections_are_independent() -> None:
    failing = ["openai/gpt-5-mini", "anthropic/claude-haiku-4-5"]
    registries = [
        DryRunProviderRegistry(["openai", "anthropic", "google"], failing=failing, delay_s=0.01) for _ in range(4)
    ]

    async def run_all():
        return await asyncio.gather(*(ModelSelector(registry).select() for registry in registries))

    results = asyncio.run(run_all())

    for registry, result in zip(registries, results):
        assert result.model_info == ModelRef("google", "gemini-2.5-flash")
        assert registry.list_calls == 1
        assert registry.max_in_flight == 1
        assert len(registry.calls) == 3


def test_concurrent_selections_fetch_their_own_snapshot() -> None:
    registry = DryRunProviderRegistry(["xai"], delay_s=0.01)

    async def run_all():
        return await asyncio.gather(*(select_model(registry=registry) for _ in range(3)))

    results = asyncio.run(run_all())

    assert [result.model_info for result in results] == [ModelRef("xai", "grok-4-fast")] * 3
    assert registry.list_calls == 3
    # The three selections overlap with each other.
    assert registry.max_in_flight == 3

"""Smart-title settings record."""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass, replace
from typing import Any, Mapping

from .utils import getenv_flag

_ENV_PREFIX = "SMART_TITLE_"


@dataclass(frozen=True)
class TitleConfig:
    enabled: bool = True
    debug: bool = False
    model: str | None = None
    prompt: str | None = None
    update_threshold: int = 1
    exclude_directories: tuple[str, ...] | None = None
    model_timeout_s: float | None = None

    def merged(self, overlay: Mapping[str, Any]) -> TitleConfig:
        """Return a copy with ``overlay`` applied; invalid values keep the current setting."""
        model = _optional_string(_pick(overlay, "model"))
        prompt = _optional_string(_pick(overlay, "prompt"))
        excludes = _exclude_directories(_pick(overlay, "excludeDirectories", "exclude_directories"))
        timeout = _positive_float(_pick(overlay, "modelTimeoutS", "model_timeout_s"))
        return TitleConfig(
            enabled=_boolean(_pick(overlay, "enabled"), self.enabled),
            debug=_boolean(_pick(overlay, "debug"), self.debug),
            model=model if model is not None else self.model,
            prompt=prompt if prompt is not None else self.prompt,
            update_threshold=_positive_int(
                _pick(overlay, "updateThreshold", "update_threshold"), self.update_threshold
            ),
            exclude_directories=excludes if excludes is not None else self.exclude_directories,
            model_timeout_s=timeout if timeout is not None else self.model_timeout_s,
        )

    @classmethod
    def from_env(cls, base: TitleConfig | None = None) -> TitleConfig:
        config = base or cls()
        overlay: dict[str, Any] = {}
        for key in ("ENABLED", "DEBUG"):
            if os.getenv(_ENV_PREFIX + key) is not None:
                overlay[key.lower()] = getenv_flag(_ENV_PREFIX + key)
        for key in ("MODEL", "PROMPT"):
            if os.getenv(_ENV_PREFIX + key) is not None:
                overlay[key.lower()] = os.getenv(_ENV_PREFIX + key)
        threshold = _number(os.getenv(_ENV_PREFIX + "UPDATE_THRESHOLD"))
        if threshold is not None:
            overlay["update_threshold"] = threshold
        timeout = _number(os.getenv(_ENV_PREFIX + "MODEL_TIMEOUT_S"))
        if timeout is not None:
            overlay["model_timeout_s"] = timeout
        excludes = os.getenv(_ENV_PREFIX + "EXCLUDE_DIRECTORIES")
        if excludes is not None:
            overlay["exclude_directories"] = re.split(r"[,:]", excludes)
        return config.merged(overlay)

    def with_model(self, model: str | None) -> TitleConfig:
        normalized = _optional_string(model)
        return replace(self, model=normalized) if normalized is not None else self

    def is_excluded(self, directory: str) -> bool:
        if not self.exclude_directories:
            return False
        for prefix in self.exclude_directories:
            if prefix == "/" or directory == prefix or directory.startswith(prefix + "/"):
                return True
        return False


def _pick(overlay: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in overlay:
            return overlay[key]
    return None


def _boolean(value: Any, fallback: bool) -> bool:
    return value if isinstance(value, bool) else fallback


def _optional_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


def _positive_int(value: Any, fallback: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return fallback
    normalized = math.floor(value)
    return normalized if normalized > 0 else fallback


def _positive_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return float(value) if value > 0 else None


def _exclude_directories(value: Any) -> tuple[str, ...] | None:
    if not isinstance(value, (list, tuple)):
        return None
    normalized: list[str] = []
    for entry in value:
        if not isinstance(entry, str):
            continue
        trimmed = entry.strip()
        if trimmed != "/":
            trimmed = trimmed.rstrip("/")
        if trimmed:
            normalized.append(trimmed)
    return tuple(normalized)


def _number(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw.strip())
    except ValueError:
        return None

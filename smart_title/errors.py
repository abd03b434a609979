"""Error types and failure normalization for logging."""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field, fields
from typing import Any, Mapping

_MAX_TEXT = 500
_PRIMITIVES = (str, bytes, int, float, bool)


class SmartTitleError(Exception):
    """Base class for smart-title errors."""


class NoAvailableModelsError(SmartTitleError, RuntimeError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No available models for title generation. Please authenticate with at least one provider."
        )


class ProviderNotAuthenticatedError(SmartTitleError, RuntimeError):
    def __init__(self, provider_id: str, message: str | None = None) -> None:
        self.provider_id = provider_id
        super().__init__(message or f"Provider '{provider_id}' is not authenticated.")


class ModelUnavailableError(SmartTitleError, RuntimeError):
    def __init__(self, provider_id: str, model_id: str, message: str | None = None) -> None:
        self.provider_id = provider_id
        self.model_id = model_id
        super().__init__(message or f"Model '{provider_id}/{model_id}' is unavailable.")


@dataclass(frozen=True)
class NormalizedError:
    name: str | None
    message: str | None
    type_name: str | None = None
    code: Any = None
    provider_id: str | None = None
    model_id: str | None = None
    status: Any = None
    stack: str | None = None
    field_names: tuple[str, ...] = field(default=())
    cause: NormalizedError | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None or value == ():
                continue
            if isinstance(value, NormalizedError):
                value = value.to_dict()
            elif isinstance(value, tuple):
                value = list(value)
            payload[item.name] = value
        return payload


def trim_text(value: Any, max_len: int = _MAX_TEXT) -> str | None:
    if not isinstance(value, str):
        return None
    return f"{value[:max_len]}..." if len(value) > max_len else value


def normalize_error(error: Any) -> NormalizedError:
    """Summarize an arbitrary failure value into a bounded, loggable record.

    Never raises. Causes are summarized one level deep only.
    """
    if error is None or isinstance(error, _PRIMITIVES):
        return NormalizedError(name=type(error).__name__, message=_safe_str(error))
    return _normalize_object(error, include_cause=True)


def _normalize_object(error: Any, include_cause: bool) -> NormalizedError:
    cause = None
    if include_cause:
        raw_cause = _lookup(error, "__cause__") or _lookup(error, "cause") or _lookup(error, "__context__")
        if raw_cause is not None and not isinstance(raw_cause, _PRIMITIVES):
            cause = _normalize_object(raw_cause, include_cause=False)
    status = _lookup(error, "status")
    if status is None:
        status = _lookup(error, "status_code")
    return NormalizedError(
        name=_as_text(_lookup(error, "name")) or type(error).__name__,
        message=trim_text(_message_of(error)),
        type_name=type(error).__name__,
        code=_scalar(_lookup(error, "code")),
        provider_id=_as_text(_lookup(error, "provider_id") or _lookup(error, "providerID")),
        model_id=_as_text(_lookup(error, "model_id") or _lookup(error, "modelID")),
        status=_scalar(status),
        stack=trim_text(_stack_of(error)),
        field_names=_field_names(error) if include_cause else (),
        cause=cause,
    )


def _lookup(error: Any, key: str) -> Any:
    if isinstance(error, Mapping):
        try:
            return error.get(key)
        except Exception:
            return None
    try:
        return getattr(error, key, None)
    except Exception:
        return None


def _message_of(error: Any) -> str | None:
    message = _lookup(error, "message")
    if isinstance(message, str):
        return message
    if isinstance(error, BaseException):
        return _safe_str(error)
    return None


def _stack_of(error: Any) -> str | None:
    stack = _lookup(error, "stack")
    if isinstance(stack, str):
        return stack
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        try:
            return "".join(traceback.format_exception(type(error), error, error.__traceback__))
        except Exception:
            return None
    return None


def _field_names(error: Any) -> tuple[str, ...]:
    try:
        if isinstance(error, Mapping):
            return tuple(sorted(str(key) for key in error.keys()))
        return tuple(sorted(vars(error).keys()))
    except Exception:
        return ()


def _as_text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _scalar(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return _safe_str(value)


def _safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"

"""Append-only structured debug log."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Protocol

from .utils import now_utc_iso, serialize

DEFAULT_LOG_DIR = Path.home() / ".config" / "opencode" / "logs" / "smart-title"


class Logger(Protocol):
    def debug(self, component: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        ...

    def info(self, component: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        ...

    def warn(self, component: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        ...

    def error(self, component: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        ...


@dataclass
class TitleLogger:
    """Writes one JSON object per line to ``<log_dir>/YYYY-MM-DD.log`` when enabled."""

    log_dir: Path = DEFAULT_LOG_DIR
    enabled: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, init=False)

    def debug(self, component: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._write("debug", component, message, data)

    def info(self, component: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._write("info", component, message, data)

    def warn(self, component: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._write("warn", component, message, data)

    def error(self, component: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._write("error", component, message, data)

    def current_path(self) -> Path:
        return self.log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"

    def _write(self, level: str, component: str, message: str, data: Mapping[str, Any] | None) -> None:
        if not self.enabled:
            return
        entry: dict[str, Any] = {
            "ts": now_utc_iso(),
            "level": level,
            "component": component,
            "message": message,
        }
        if data:
            entry["data"] = serialize(data)
        line = f"{json.dumps(entry)}\n"
        path = self.current_path()
        # Log write failures are dropped; they must never reach the caller.
        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open("a", encoding="utf-8") as handle:
                    handle.write(line)
        except OSError:
            return

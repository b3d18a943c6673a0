# EventSink port
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Optional, Protocol


class EventSink(Protocol):
    def emit_event(self, event: dict[str, Any]) -> None: ...


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonlEventSink:
    """
    Appends one JSON object per line. An empty path disables the sink.
    Safe to call from write/delete worker threads.
    """

    def __init__(
        self,
        *,
        events_path: Optional[str] = None,
        lock: Optional[Lock] = None,
    ):
        self._events_path = (events_path or "").strip() or None
        self._lock = lock or Lock()

    @property
    def enabled(self) -> bool:
        return self._events_path is not None

    def emit_event(self, event: dict[str, Any]) -> None:
        if not self._events_path:
            return
        path = Path(self._events_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"timestamp": utc_timestamp(), **event}
        line = json.dumps(payload, ensure_ascii=False, default=str) + "\n"
        with self._lock:
            with open(path, "a", encoding="utf-8") as handle:
                handle.write(line)


__all__ = [
    "EventSink",
    "JsonlEventSink",
    "utc_timestamp",
]

from __future__ import annotations

import json
import sys
import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, TextIO

_SECRET_MARKERS = ("password", "token", "secret")


@dataclass
class AuditEvent:
    ts: float
    tool: str
    ok: bool
    duration_ms: float
    args: Dict[str, Any]
    error: Optional[str] = None
    host: Optional[str] = None


class Auditor:
    """Writes one JSON line per tool call to a file or stdout."""

    def __init__(self, path: Optional[str] = None, sink: Optional[TextIO] = None):
        self._sink = sink or (open(path, "a", buffering=1) if path else sys.stdout)
        self._lock = threading.Lock()

    def log(self, event: AuditEvent) -> None:
        data = asdict(event)
        data["args"] = {
            k: ("***" if any(m in k.lower() for m in _SECRET_MARKERS) else v)
            for k, v in (data.get("args") or {}).items()
        }
        line = json.dumps(data, default=str)
        with self._lock:
            self._sink.write(line + "\n")

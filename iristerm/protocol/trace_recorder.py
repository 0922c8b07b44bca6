import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

__all__ = [
    "TraceEvent",
    "TraceRecorder",
]


@dataclass
class TraceEvent:
    ts: float
    kind: str
    details: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"ts": self.ts, "kind": self.kind, **self.details}


class TraceRecorder:
    """Ordered recorder for transport negotiation events.

    Intended for diagnostics and tests. The negotiator skips recording when no
    recorder is given. Timestamps are relative to recorder creation.
    """

    def __init__(self) -> None:
        self._events: List[TraceEvent] = []
        self._start = time.monotonic()

    def _now(self) -> float:
        return time.monotonic() - self._start

    def record(self, kind: str, **details: Any) -> None:
        self._events.append(TraceEvent(ts=self._now(), kind=kind, details=details))

    # Public API ---------------------------------------------------------------
    def events(self) -> List[TraceEvent]:
        return list(self._events)

    def kinds(self) -> List[str]:
        return [e.kind for e in self._events]

    def to_json(self, *, indent: Optional[int] = None) -> str:
        return json.dumps(
            [e.to_dict() for e in self._events], indent=indent, sort_keys=True
        )

    # Convenience wrappers -----------------------------------------------------
    def attempt(self, transport: str, host: str, port: int) -> None:
        self.record("attempt", transport=transport, host=host, port=port)

    def state(self, old: str, new: str) -> None:
        self.record("state", old=old, new=new)

    def fallback(self, reason: str) -> None:
        self.record("fallback", reason=reason)

    def decision(self, requested: str, chosen: str, fallback_used: bool) -> None:
        self.record(
            "decision", requested=requested, chosen=chosen, fallback_used=fallback_used
        )

    def error(self, message: str) -> None:
        self.record("error", message=message)

"""Deterministic debug collectors for structured JSON events.

Every analysis stage reports a small summary payload through a collector so a
run can be audited after the fact without re-deriving numbers.
"""
from __future__ import annotations

import json
import datetime as _dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol


class DebugCollector(Protocol):
    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, device: Optional[str] = None, window: Optional[str] = None) -> None:
        ...


def _json_safe_scalar(val: Any) -> Any:
    """Convert dates/timestamps to ISO strings, leave everything else alone."""
    if isinstance(val, (_dt.datetime, _dt.date, _dt.time)) or hasattr(val, "isoformat"):
        try:
            return val.isoformat()
        except (TypeError, ValueError):
            return str(val)
    return val


def _ordered(obj: Any) -> Any:
    """Recursively order mappings for deterministic JSON dumps."""
    if isinstance(obj, dict):
        return {k: _ordered(obj[k]) for k in sorted(obj)}
    if isinstance(obj, (list, tuple)):
        return [_ordered(v) for v in obj]
    return _json_safe_scalar(obj)


def _event(stage: str, payload: Dict[str, Any], ts: Any, device: Optional[str], window: Optional[str]) -> Dict[str, Any]:
    return {
        "stage": stage,
        "ts": _json_safe_scalar(ts),
        "device": device,
        "window": window,
        "payload": _ordered(payload),
    }


class NullDebugCollector:
    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, device: Optional[str] = None, window: Optional[str] = None) -> None:  # noqa: D401
        """Discard events (no-op)."""
        return


@dataclass
class ListDebugCollector:
    events: List[Dict[str, Any]] = field(default_factory=list)

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, device: Optional[str] = None, window: Optional[str] = None) -> None:
        self.events.append(_event(stage, payload, ts, device, window))

    def stages(self) -> List[str]:
        return [event["stage"] for event in self.events]

    def last(self, stage: str) -> Optional[Dict[str, Any]]:
        for event in reversed(self.events):
            if event["stage"] == stage:
                return event
        return None


class JsonlDebugWriter:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, device: Optional[str] = None, window: Optional[str] = None) -> None:
        json.dump(_event(stage, payload, ts, device, window), self._fh, sort_keys=True)
        self._fh.write("\n")
        self._fh.flush()

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __del__(self):  # pragma: no cover - best effort cleanup
        try:
            self.close()
        except Exception:
            pass


class JsonDebugWriter:
    """Collect all events in memory then write a single JSON array.

    Used when callers pass a ``--debug`` path ending with ``.json`` so one
    file holds every stage payload of the run.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._events: List[Dict[str, Any]] = []

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, device: Optional[str] = None, window: Optional[str] = None) -> None:
        self._events.append(_event(stage, payload, ts, device, window))

    def finalize(self) -> None:
        """Write collected events as a single JSON document."""
        self.path.write_text(json.dumps(_ordered(self._events), indent=2))

    def close(self) -> None:
        self.finalize()


def build_debug_collector(path: str | Path | None) -> DebugCollector:
    """Factory: None → no-op, .json → JsonDebugWriter, otherwise JsonlDebugWriter."""
    if path is None:
        return NullDebugCollector()
    if str(path).lower().endswith(".json"):
        return JsonDebugWriter(path)
    return JsonlDebugWriter(path)


class ScopedDebugCollector:
    """Wrapper that injects fixed device/window context into every emit."""

    def __init__(self, inner: DebugCollector, *, device: Optional[str] = None, window: Optional[str] = None):
        self.inner = inner
        self.device = device
        self.window = window

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, device: Optional[str] = None, window: Optional[str] = None) -> None:
        # explicit overrides win over scoped defaults
        eff_device = device if device is not None else self.device
        eff_window = window if window is not None else self.window
        self.inner.emit(stage, payload, ts=ts, device=eff_device, window=eff_window)


__all__ = [
    "DebugCollector",
    "NullDebugCollector",
    "ListDebugCollector",
    "JsonlDebugWriter",
    "JsonDebugWriter",
    "ScopedDebugCollector",
    "build_debug_collector",
]

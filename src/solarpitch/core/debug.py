"""Structured calculation trace.

Every stage of a calculation (balance, projection, optimizer, audit, schema)
reports a small JSON payload through a ``DebugCollector``. Events carry the
scenario label and panel count they belong to plus a running sequence number,
so a written trace can be replayed in order.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol


class DebugCollector(Protocol):
    def emit(self, stage: str, payload: Dict[str, Any], *, scenario: Optional[str] = None, panels: Optional[int] = None) -> None:
        ...


def _plain(val: Any) -> Any:
    """numpy scalars to Python, NaN/inf to ``None``."""
    if isinstance(val, (bool, int, str)) or val is None:
        return val
    if hasattr(val, "item"):
        try:
            val = val.item()
        except (TypeError, ValueError):
            return str(val)
    if isinstance(val, float) and not math.isfinite(val):
        return None
    return val


def _normalize(obj: Any) -> Any:
    """Key-sorted, JSON-safe copy of ``obj``."""
    if isinstance(obj, dict):
        return {key: _normalize(obj[key]) for key in sorted(obj)}
    if isinstance(obj, (list, tuple)):
        return [_normalize(item) for item in obj]
    return _plain(obj)


class _Sequenced:
    """Numbers events in emission order."""

    def __init__(self) -> None:
        self._seq = 0

    def _build(self, stage: str, payload: Dict[str, Any], scenario: Optional[str], panels: Optional[int]) -> Dict[str, Any]:
        self._seq += 1
        return {
            "seq": self._seq,
            "stage": stage,
            "scenario": scenario,
            "panels": panels,
            "payload": _normalize(payload),
        }


class NullDebugCollector:
    def emit(self, stage: str, payload: Dict[str, Any], *, scenario: Optional[str] = None, panels: Optional[int] = None) -> None:
        return None

    def __enter__(self) -> "NullDebugCollector":
        return self

    def __exit__(self, *exc) -> None:
        return None


@dataclass
class ListDebugCollector(_Sequenced):
    """In-memory trace, mostly for tests and embedding callers."""

    events: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        _Sequenced.__init__(self)

    def emit(self, stage: str, payload: Dict[str, Any], *, scenario: Optional[str] = None, panels: Optional[int] = None) -> None:
        self.events.append(self._build(stage, payload, scenario, panels))

    def stages(self) -> List[str]:
        return [e["stage"] for e in self.events]

    def of_stage(self, stage: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["stage"] == stage]


class JsonlDebugWriter(_Sequenced):
    """Append one JSON line per event, flushed immediately."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")

    def emit(self, stage: str, payload: Dict[str, Any], *, scenario: Optional[str] = None, panels: Optional[int] = None) -> None:
        self._fh.write(json.dumps(self._build(stage, payload, scenario, panels), sort_keys=True) + "\n")
        self._fh.flush()

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self) -> "JsonlDebugWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class JsonDebugWriter(_Sequenced):
    """Buffer the whole trace and write it as one JSON array on ``close``."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._events: List[Dict[str, Any]] = []

    def emit(self, stage: str, payload: Dict[str, Any], *, scenario: Optional[str] = None, panels: Optional[int] = None) -> None:
        self._events.append(self._build(stage, payload, scenario, panels))

    def close(self) -> None:
        self.path.write_text(json.dumps(self._events, indent=2))

    def __enter__(self) -> "JsonDebugWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def build_debug_collector(path: str | Path) -> DebugCollector:
    """``.json`` paths get a single document, anything else JSON lines."""
    if str(path).lower().endswith(".json"):
        return JsonDebugWriter(path)
    return JsonlDebugWriter(path)


class ScopedDebugCollector:
    """Tags every event with a default scenario label and panel count."""

    def __init__(self, inner: DebugCollector, *, scenario: Optional[str] = None, panels: Optional[int] = None):
        self.inner = inner
        self.scenario = scenario
        self.panels = panels

    def emit(self, stage: str, payload: Dict[str, Any], *, scenario: Optional[str] = None, panels: Optional[int] = None) -> None:
        self.inner.emit(
            stage,
            payload,
            scenario=self.scenario if scenario is None else scenario,
            panels=self.panels if panels is None else panels,
        )


__all__ = [
    "DebugCollector",
    "NullDebugCollector",
    "ListDebugCollector",
    "JsonlDebugWriter",
    "JsonDebugWriter",
    "ScopedDebugCollector",
    "build_debug_collector",
]

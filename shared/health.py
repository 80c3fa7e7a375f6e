"""In-memory health component registry for readiness and diagnostics."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Optional

__all__ = [
    "ComponentState",
    "components_snapshot",
    "overall_ready",
    "required_components",
    "reset",
    "set_component",
]


@dataclass(frozen=True)
class ComponentState:
    ok: bool
    ts: float
    detail: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"ok": self.ok, "ts": self.ts}
        if self.detail:
            payload["detail"] = self.detail
        return payload


_components: Dict[str, ComponentState] = {}
# runtime: web server up; discord: gateway ready; intake: controller configured.
_required_components = frozenset({"runtime", "discord", "intake"})


def required_components() -> frozenset[str]:
    return _required_components


def set_component(name: str, ok: bool, detail: Optional[str] = None) -> None:
    """Record the health of a component, with an optional reason."""

    _components[name] = ComponentState(ok=bool(ok), ts=time.time(), detail=detail)


def components_snapshot(include_required: bool = True) -> dict[str, dict[str, object]]:
    """Return component states keyed by name; missing required ones read as down."""

    snapshot = {name: state.to_dict() for name, state in _components.items()}
    if include_required:
        for name in _required_components:
            snapshot.setdefault(name, {"ok": False, "ts": 0.0})
    return snapshot


def overall_ready() -> bool:
    return all(
        _components.get(name, ComponentState(False, 0.0)).ok for name in _required_components
    )


def reset() -> None:
    _components.clear()

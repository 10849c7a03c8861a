from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from midifx.events import FxParam, NoteEvent
from midifx.rng import Lcg64

logger = logging.getLogger(__name__)

ParamSpec = Tuple[str, float, float, float]


class MidiFx:
    """Processing contract shared by every MIDI effect.

    - `process` is the only entry point hosts call; it short-circuits when
      bypassed and otherwise forwards to the subclass `_process`.
    - Parameters are created from PARAMS (name, default, min, max) on
      construction and written only through `set_parameter`, which clamps.
    - Subclasses must return a new list and never mutate the input.
    """

    kind: str = ""
    name: str = ""
    PARAMS: Sequence[ParamSpec] = ()

    def __init__(self) -> None:
        self.params: List[FxParam] = [FxParam(n, float(d), float(lo), float(hi)) for (n, d, lo, hi) in self.PARAMS]
        self.bypass: bool = False

    # --- Processing ---
    def process(self, events: Sequence[NoteEvent], sample_rate: float, bpm: float) -> List[NoteEvent]:
        if self.bypass:
            return list(events)
        return self._process(list(events), float(sample_rate), float(bpm))

    def _process(self, events: List[NoteEvent], sample_rate: float, bpm: float) -> List[NoteEvent]:  # pragma: no cover - interface
        raise NotImplementedError

    # --- Parameters ---
    def list_parameters(self) -> List[Tuple[str, float, float, float]]:
        return [p.as_tuple() for p in self.params]

    def get_parameter(self, name: str) -> Optional[FxParam]:
        for p in self.params:
            if p.name == name:
                return p
        return None

    def set_parameter(self, name: str, value: float) -> bool:
        p = self.get_parameter(name)
        if p is None:
            logger.debug("%s: ignoring unknown parameter %r", self.name, name)
            return False
        p.value = max(p.min, min(p.max, float(value)))
        return True

    def value(self, name: str) -> float:
        p = self.get_parameter(name)
        if p is None:
            raise KeyError(name)
        return p.value

    def set_bypass(self, bypass: bool) -> None:
        self.bypass = bool(bypass)

    def is_bypassed(self) -> bool:
        return self.bypass

    # --- Persistence ---
    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.kind,
            "bypass": self.bypass,
            "params": {p.name: p.value for p in self.params},
        }
        self._state_to_dict(out)
        return out

    def load_dict(self, obj: Dict[str, Any]) -> None:
        self.bypass = bool(obj.get("bypass", False))
        for name, val in (obj.get("params") or {}).items():
            self.set_parameter(str(name), float(val))
        self._state_from_dict(obj)

    def _state_to_dict(self, out: Dict[str, Any]) -> None:
        return None

    def _state_from_dict(self, obj: Dict[str, Any]) -> None:
        return None

    def __repr__(self) -> str:
        vals = ", ".join(f"{p.name}={p.value:g}" for p in self.params)
        flag = " bypass" if self.bypass else ""
        return f"<{type(self).__name__} {vals}{flag}>"


class StochasticFx(MidiFx):
    """MidiFx with a private generator, persisted alongside its parameters."""

    DEFAULT_SEED: int = 0

    def __init__(self, seed: Optional[int] = None) -> None:
        super().__init__()
        self.rng = Lcg64(self.DEFAULT_SEED if seed is None else seed)

    def _state_to_dict(self, out: Dict[str, Any]) -> None:
        out["rng"] = self.rng.to_dict()

    def _state_from_dict(self, obj: Dict[str, Any]) -> None:
        if isinstance(obj.get("rng"), dict):
            self.rng = Lcg64.from_dict(obj["rng"], self.DEFAULT_SEED)

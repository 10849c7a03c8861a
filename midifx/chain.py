from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from midifx.effect_unit import MidiFx
from midifx.events import NoteEvent
from midifx.registry import create_effect, effect_from_dict
from midifx.validator import CHAIN_VERSION, MAX_EFFECTS, ValidationError, validate_chain

logger = logging.getLogger(__name__)


class FxChain:
    """Ordered rack of MIDI effects applied in series.

    - The output of effect i is exactly the input of effect i+1.
    - Bypassed effects are skipped by their own `process`; `bypass_all`
      passes the whole block through.
    - Holds at most MAX_EFFECTS effects.
    """

    def __init__(self, effects: Optional[Sequence[MidiFx]] = None, bypass_all: bool = False) -> None:
        self.effects: List[MidiFx] = []
        self.bypass_all = bool(bypass_all)
        for fx in effects or []:
            self.add(fx)

    # --- Rack edits ---
    def add(self, effect: MidiFx | str) -> bool:
        if len(self.effects) >= MAX_EFFECTS:
            logger.warning("chain full (%d effects); not adding %s", MAX_EFFECTS, effect)
            return False
        fx = create_effect(effect) if isinstance(effect, str) else effect
        self.effects.append(fx)
        logger.info("added %s at slot %d", fx.name, len(self.effects) - 1)
        return True

    def remove(self, index: int) -> Optional[MidiFx]:
        if 0 <= index < len(self.effects):
            fx = self.effects.pop(index)
            logger.info("removed %s from slot %d", fx.name, index)
            return fx
        return None

    def move(self, src: int, dst: int) -> bool:
        n = len(self.effects)
        if not (0 <= src < n) or not (0 <= dst < n):
            return False
        fx = self.effects.pop(src)
        self.effects.insert(dst, fx)
        return True

    def set_parameter(self, index: int, name: str, value: float) -> bool:
        if 0 <= index < len(self.effects):
            return self.effects[index].set_parameter(name, value)
        return False

    def set_bypass(self, index: int, bypass: bool) -> bool:
        if 0 <= index < len(self.effects):
            self.effects[index].set_bypass(bypass)
            return True
        return False

    # --- Processing ---
    def process(self, events: Sequence[NoteEvent], sample_rate: float, bpm: float) -> List[NoteEvent]:
        out = list(events)
        if self.bypass_all:
            return out
        for fx in self.effects:
            out = fx.process(out, sample_rate, bpm)
        return out

    def __len__(self) -> int:
        return len(self.effects)

    def __iter__(self) -> Iterator[MidiFx]:
        return iter(self.effects)

    def __getitem__(self, index: int) -> MidiFx:
        return self.effects[index]

    # --- Persistence ---
    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": CHAIN_VERSION,
            "bypassAll": self.bypass_all,
            "effects": [fx.to_dict() for fx in self.effects],
        }

    @classmethod
    def from_dict(cls, doc: Dict[str, Any]) -> "FxChain":
        errors = validate_chain(doc)
        if errors:
            raise ValidationError(errors)
        return cls(
            effects=[effect_from_dict(fx) for fx in doc.get("effects", [])],
            bypass_all=bool(doc.get("bypassAll", False)),
        )

from __future__ import annotations

from typing import Any, Dict, Type

from midifx.arpeggiator import ArpeggiatorFx
from midifx.effect_unit import MidiFx
from midifx.effects import (
    ChanceFx,
    EchoFx,
    HarmonizerFx,
    HumanizeFx,
    QuantizeFx,
    SwingFx,
    TransposeFx,
)

# Closed set of effect kinds a chain document may reference, in rack order.
EFFECT_TYPES: Dict[str, Type[MidiFx]] = {
    cls.kind: cls
    for cls in (
        TransposeFx,
        QuantizeFx,
        SwingFx,
        HumanizeFx,
        ChanceFx,
        EchoFx,
        ArpeggiatorFx,
        HarmonizerFx,
    )
}


class UnknownEffectError(KeyError):
    pass


def create_effect(kind: str) -> MidiFx:
    """Fresh effect with default parameters (and default seed)."""
    try:
        cls = EFFECT_TYPES[str(kind).strip().lower()]
    except KeyError:
        raise UnknownEffectError(kind) from None
    return cls()


def effect_from_dict(obj: Dict[str, Any]) -> MidiFx:
    fx = create_effect(str(obj.get("type", "")))
    fx.load_dict(obj)
    return fx

from __future__ import annotations

from typing import Any, Dict

_MASK64 = (1 << 64) - 1
_MULTIPLIER = 6364136223846793005
_INCREMENT = 1
# state >> 33 leaves 31 significant bits
_RAW_RANGE = float(1 << 31)


class Lcg64:
    """64-bit linear congruential generator owned by a single effect.

    Not for anything security related. Same seed + same call sequence gives
    bit-identical output, which is what project reloads rely on.
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed) & _MASK64
        self.state = self.seed

    def next_raw(self) -> int:
        self.state = (self.state * _MULTIPLIER + _INCREMENT) & _MASK64
        return self.state >> 33

    def next_unit(self) -> float:
        """Uniform in [0, 1)."""
        return self.next_raw() / _RAW_RANGE

    def next_bipolar(self) -> float:
        """Uniform in [-1, 1)."""
        return self.next_unit() * 2.0 - 1.0

    def to_dict(self) -> Dict[str, int]:
        return {"seed": self.seed, "state": self.state}

    @classmethod
    def from_dict(cls, obj: Dict[str, Any], default_seed: int) -> "Lcg64":
        rng = cls(int(obj.get("seed", default_seed)))
        rng.state = int(obj.get("state", rng.seed)) & _MASK64
        return rng

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class NoteEvent:
    """One note-on/note-off occurrence inside a processing block.

    Effects derive new events with dataclasses.replace; the record itself
    never clamps, so out-of-range values are the producing effect's fault.
    """

    pitch: int
    velocity: int
    channel: int = 0
    sample_offset: int = 0
    is_note_on: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pitch": self.pitch,
            "velocity": self.velocity,
            "channel": self.channel,
            "sampleOffset": self.sample_offset,
            "noteOn": self.is_note_on,
        }

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "NoteEvent":
        return cls(
            pitch=int(obj.get("pitch", 60)),
            velocity=int(obj.get("velocity", 100)),
            channel=int(obj.get("channel", 0)),
            sample_offset=max(0, int(obj.get("sampleOffset", 0))),
            is_note_on=bool(obj.get("noteOn", True)),
        )


@dataclass
class FxParam:
    name: str
    value: float
    min: float
    max: float

    def as_tuple(self):
        return (self.name, self.value, self.min, self.max)


def clamp_pitch(pitch: int) -> int:
    return max(0, min(127, int(pitch)))


def clamp_velocity(velocity: int) -> int:
    return max(1, min(127, int(velocity)))

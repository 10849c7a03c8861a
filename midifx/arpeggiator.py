from __future__ import annotations

from typing import Any, Dict, List

from midifx.effect_unit import StochasticFx
from midifx.events import NoteEvent, clamp_pitch
from midifx.tempo_map import grid_samples

MODES = ("up", "down", "updown", "random", "order")


class ArpeggiatorFx(StochasticFx):
    """Turns held notes into a stepped sequence.

    - Held notes persist across blocks: a note-on adds its pitch, any other
      event releases it.
    - Each block emits the whole sequence from offset 0: one note-on and one
      note-off per step, step = spb*4/rate, note length = step * gate%.
    - Input events are consumed; nothing held means an empty block.
    - "order" mode plays held notes in arrival order, not sorted like "up".
      Chains saved by racks that treated order as up will sound different.
    """

    kind = "arpeggiator"
    name = "Arpeggiator"
    DEFAULT_SEED = 99999
    PARAMS = (
        ("mode", 0.0, 0.0, 4.0),
        ("rate", 8.0, 1.0, 32.0),
        ("octaves", 1.0, 1.0, 4.0),
        ("gate", 80.0, 10.0, 100.0),
    )

    def __init__(self, seed=None) -> None:
        super().__init__(seed)
        self.held_notes: List[int] = []

    @property
    def mode(self) -> str:
        return MODES[max(0, min(len(MODES) - 1, int(self.value("mode"))))]

    def _update_held(self, events: List[NoteEvent]) -> None:
        for e in events:
            if e.is_note_on:
                if e.pitch not in self.held_notes:
                    self.held_notes.append(e.pitch)
            elif e.pitch in self.held_notes:
                self.held_notes.remove(e.pitch)

    def _sequence(self) -> List[int]:
        mode = self.mode
        base = list(self.held_notes) if mode == "order" else sorted(self.held_notes)
        if mode == "down":
            base.reverse()
        seq: List[int] = []
        for octave in range(int(self.value("octaves"))):
            seq.extend(min(127, p + octave * 12) for p in base)
        if mode == "updown" and len(seq) > 2:
            seq.extend(reversed(seq[1:-1]))
        elif mode == "random":
            # Fisher-Yates driven by the effect's own generator
            for i in range(len(seq) - 1, 0, -1):
                j = self.rng.next_raw() % (i + 1)
                seq[i], seq[j] = seq[j], seq[i]
        return seq

    def _process(self, events, sample_rate, bpm):
        self._update_held(events)
        if not self.held_notes:
            return []
        step = grid_samples(sample_rate, bpm, self.value("rate"))
        gate = int(step * self.value("gate") / 100.0)
        channel = events[0].channel if events else 0
        out: List[NoteEvent] = []
        for i, pitch in enumerate(self._sequence()):
            offset = step * i
            pitch = clamp_pitch(pitch)
            out.append(NoteEvent(pitch=pitch, velocity=100, channel=channel, sample_offset=offset, is_note_on=True))
            out.append(NoteEvent(pitch=pitch, velocity=0, channel=channel, sample_offset=offset + gate, is_note_on=False))
        return out

    def _state_to_dict(self, out: Dict[str, Any]) -> None:
        super()._state_to_dict(out)
        out["heldNotes"] = list(self.held_notes)

    def _state_from_dict(self, obj: Dict[str, Any]) -> None:
        super()._state_from_dict(obj)
        self.held_notes = [clamp_pitch(p) for p in obj.get("heldNotes", [])]

from __future__ import annotations

from dataclasses import replace
from typing import List

from midifx.effect_unit import MidiFx, StochasticFx
from midifx.events import NoteEvent, clamp_pitch, clamp_velocity
from midifx.tempo_map import grid_samples, ms_to_samples, round_half_away


def _by_offset(events: List[NoteEvent]) -> List[NoteEvent]:
    # list.sort is stable: ties keep their incoming order
    return sorted(events, key=lambda e: e.sample_offset)


class TransposeFx(MidiFx):
    kind = "transpose"
    name = "Transpose"
    PARAMS = (("semitones", 0.0, -48.0, 48.0),)

    def _process(self, events, sample_rate, bpm):
        semis = int(self.value("semitones"))
        return [replace(e, pitch=clamp_pitch(e.pitch + semis)) for e in events]


class QuantizeFx(MidiFx):
    """Pull events toward the nearest grid line.

    strength 0 leaves offsets alone, 100 snaps exactly. Offsets may cross
    each other on the way, so the result is re-sorted.
    """

    kind = "quantize"
    name = "Quantize"
    PARAMS = (
        ("grid", 4.0, 1.0, 32.0),
        ("strength", 100.0, 0.0, 100.0),
    )

    def _process(self, events, sample_rate, bpm):
        grid = grid_samples(sample_rate, bpm, self.value("grid"))
        strength = self.value("strength") / 100.0
        out: List[NoteEvent] = []
        for e in events:
            nearest = round_half_away(e.sample_offset / grid) * grid
            diff = nearest - e.sample_offset
            offset = max(0, e.sample_offset + round_half_away(diff * strength))
            out.append(replace(e, sample_offset=offset))
        return _by_offset(out)


class SwingFx(MidiFx):
    kind = "swing"
    name = "Swing"
    PARAMS = (
        ("amount", 50.0, 0.0, 100.0),
        ("grid", 8.0, 4.0, 16.0),
    )

    def _process(self, events, sample_rate, bpm):
        amount = self.value("amount") / 100.0
        grid = grid_samples(sample_rate, bpm, self.value("grid"))
        ratio = 0.5 + (amount - 0.5) * 0.33
        shift = int((ratio - 0.5) * grid)
        out: List[NoteEvent] = []
        for e in events:
            if (e.sample_offset // grid) % 2 == 1:
                e = replace(e, sample_offset=max(0, e.sample_offset + shift))
            out.append(e)
        return out


class HumanizeFx(StochasticFx):
    """Random timing and velocity jitter.

    Two draws per event, timing first. Both offsets truncate toward zero.
    """

    kind = "humanize"
    name = "Humanize"
    DEFAULT_SEED = 12345
    PARAMS = (
        ("timing", 10.0, 0.0, 50.0),
        ("velocity", 10.0, 0.0, 30.0),
    )

    def _process(self, events, sample_rate, bpm):
        timing = ms_to_samples(self.value("timing"), sample_rate)
        vel_range = self.value("velocity")
        out: List[NoteEvent] = []
        for e in events:
            dt = int(self.rng.next_bipolar() * timing)
            dv = int(self.rng.next_bipolar() * vel_range)
            out.append(replace(
                e,
                sample_offset=max(0, e.sample_offset + dt),
                velocity=clamp_velocity(e.velocity + dv),
            ))
        return out


class ChanceFx(StochasticFx):
    kind = "chance"
    name = "Chance"
    DEFAULT_SEED = 54321
    PARAMS = (("probability", 100.0, 0.0, 100.0),)

    def _process(self, events, sample_rate, bpm):
        prob = self.value("probability") / 100.0
        # one draw per input event, kept or not
        return [e for e in events if self.rng.next_unit() < prob]


class EchoFx(MidiFx):
    """Tempo-synced note repeats with decaying velocity.

    Only note-ons are echoed. Repeats stop early once the decayed velocity
    falls below 1.
    """

    kind = "echo"
    name = "Echo"
    PARAMS = (
        ("delay", 4.0, 1.0, 16.0),
        ("repeats", 3.0, 1.0, 8.0),
        ("decay", 0.7, 0.0, 1.0),
    )

    def _process(self, events, sample_rate, bpm):
        delay = grid_samples(sample_rate, bpm, self.value("delay"))
        repeats = int(self.value("repeats"))
        decay = self.value("decay")
        out = list(events)
        for e in events:
            if not e.is_note_on:
                continue
            vel = float(e.velocity)
            for i in range(1, repeats + 1):
                vel *= decay
                if vel < 1.0:
                    break
                out.append(replace(e, velocity=int(vel), sample_offset=e.sample_offset + delay * i))
        return _by_offset(out)


class HarmonizerFx(MidiFx):
    kind = "harmonizer"
    name = "Harmonizer"
    PARAMS = (
        ("interval1", 4.0, -12.0, 12.0),
        ("interval2", 7.0, -12.0, 12.0),
        ("voices", 2.0, 0.0, 2.0),
    )

    def _process(self, events, sample_rate, bpm):
        intervals = [int(self.value("interval1")), int(self.value("interval2"))]
        voices = int(self.value("voices"))
        out = list(events)
        for e in events:
            if not e.is_note_on:
                continue
            for iv in intervals[:voices]:
                out.append(replace(e, pitch=clamp_pitch(e.pitch + iv)))
        return out

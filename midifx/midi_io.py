from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import mido

from midifx.events import NoteEvent


def event_from_message(msg: "mido.Message", sample_offset: int = 0) -> Optional[NoteEvent]:
    """Map a mido note message to a NoteEvent; other message types give None.

    note_on with velocity 0 is a note-off, as on the wire.
    """
    if msg.type == "note_on" and msg.velocity > 0:
        return NoteEvent(pitch=msg.note, velocity=msg.velocity, channel=msg.channel, sample_offset=max(0, int(sample_offset)), is_note_on=True)
    if msg.type in ("note_on", "note_off"):
        return NoteEvent(pitch=msg.note, velocity=msg.velocity, channel=msg.channel, sample_offset=max(0, int(sample_offset)), is_note_on=False)
    return None


def event_to_message(ev: NoteEvent) -> "mido.Message":
    pitch = max(0, min(127, int(ev.pitch)))
    channel = max(0, min(15, int(ev.channel)))
    if ev.is_note_on:
        return mido.Message("note_on", note=pitch, velocity=max(1, min(127, int(ev.velocity))), channel=channel)
    return mido.Message("note_off", note=pitch, velocity=max(0, min(127, int(ev.velocity))), channel=channel)


class CoreSink:
    """Abstract sink for processed blocks."""

    def emit(self, ev: NoteEvent) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def panic(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def emit_block(self, events: Iterable[NoteEvent]) -> int:
        n = 0
        for ev in sorted(events, key=lambda e: e.sample_offset):
            self.emit(ev)
            n += 1
        return n


class VirtualSink(CoreSink):
    """A minimal sink capturing events for tests and demos.

    Records tuples like (type, channel, pitch, velocity, offset). Types: 'on', 'off', 'panic'.
    """

    def __init__(self) -> None:
        self.events: List[Tuple[str, int, int, int, int]] = []

    def emit(self, ev: NoteEvent) -> None:
        self.events.append(("on" if ev.is_note_on else "off", ev.channel, ev.pitch, ev.velocity, ev.sample_offset))

    def panic(self) -> None:
        self.events.append(("panic", -1, -1, 0, 0))


class MidoSink(CoreSink):
    def __init__(self, out_port):
        self.out = out_port

    def emit(self, ev: NoteEvent) -> None:
        self.out.send(event_to_message(ev))

    def panic(self) -> None:
        # Send All Notes Off across all channels
        for ch in range(16):
            # Sustain off
            self.out.send(mido.Message("control_change", control=64, value=0, channel=ch))
            # All Sound Off (120) then All Notes Off (123)
            self.out.send(mido.Message("control_change", control=120, value=0, channel=ch))
            self.out.send(mido.Message("control_change", control=123, value=0, channel=ch))


class _NullOut:
    def send(self, *_args, **_kwargs):
        pass

    def close(self):
        pass


def open_mido_output(name_filter: Optional[str] = None):
    """Open a Mido output port with a safe fallback.

    When the system MIDI stack is unreachable (sandboxed CI, no devices) or
    the requested port is missing, return a null port exposing `.send()`.
    """
    try:
        names = mido.get_output_names()
    except (OSError, RuntimeError):
        return _NullOut()
    if name_filter:
        names = [n for n in names if name_filter in n]
    if not names:
        return _NullOut()
    try:
        return mido.open_output(names[0])
    except (OSError, RuntimeError):
        return _NullOut()

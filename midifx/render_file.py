from __future__ import annotations

import argparse
import json
import sys
from typing import Dict, List, Optional, Tuple

import mido

from midifx.chain import FxChain
from midifx.events import NoteEvent
from midifx.host import ChainHost, HostConfig
from midifx.midi_io import event_from_message, event_to_message
from midifx.validator import ValidationError


def file_bpm(mid: "mido.MidiFile", default: float = 120.0) -> float:
    """Tempo of the first set_tempo meta message, else default."""
    for track in mid.tracks:
        for msg in track:
            if msg.type == "set_tempo":
                return float(mido.tempo2bpm(msg.tempo))
    return float(default)


def split_blocks(mid: "mido.MidiFile", sample_rate: float, block_size: int) -> Dict[int, List[NoteEvent]]:
    """Bucket the file's note messages into host-sized blocks.

    Returns block index -> events with offsets relative to the block start.
    Non-note messages are dropped.
    """
    blocks: Dict[int, List[NoteEvent]] = {}
    t = 0.0
    # iterating a MidiFile yields messages with delta times in seconds
    for msg in mid:
        t += msg.time
        if msg.is_meta:
            continue
        pos = int(t * sample_rate)
        idx, off = divmod(pos, block_size)
        ev = event_from_message(msg, off)
        if ev is not None:
            blocks.setdefault(idx, []).append(ev)
    return blocks


def render(mid: "mido.MidiFile", host: ChainHost) -> Tuple["mido.MidiFile", int, int]:
    cfg = host.config
    block_size = max(1, int(cfg.block_size))
    blocks = split_blocks(mid, cfg.sample_rate, block_size)
    placed: List[Tuple[int, NoteEvent]] = []
    n_in = 0
    for idx in sorted(blocks):
        events = blocks[idx]
        n_in += len(events)
        start = idx * block_size
        for ev in host.process_block(events):
            placed.append((start + ev.sample_offset, ev))
    placed.sort(key=lambda p: p[0])

    tpb = mid.ticks_per_beat
    tempo = mido.bpm2tempo(cfg.bpm)
    out = mido.MidiFile(ticks_per_beat=tpb)
    track = mido.MidiTrack()
    out.tracks.append(track)
    track.append(mido.MetaMessage("set_tempo", tempo=tempo, time=0))
    last_tick = 0
    for pos, ev in placed:
        tick = int(round(mido.second2tick(pos / cfg.sample_rate, tpb, tempo)))
        track.append(event_to_message(ev).copy(time=max(0, tick - last_tick)))
        last_tick = max(last_tick, tick)
    return out, n_in, len(placed)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Run a midifx chain over a MIDI file block by block")
    ap.add_argument("input", help="Input .mid file")
    ap.add_argument("output", help="Output .mid file")
    ap.add_argument("--chain", required=True, help="Chain JSON file")
    ap.add_argument("--sample-rate", type=float, default=48000.0)
    ap.add_argument("--block-size", type=int, default=512)
    ap.add_argument("--bpm", type=float, help="Override tempo (default: file tempo or 120)")
    args = ap.parse_args(argv)

    try:
        with open(args.chain, "r", encoding="utf-8") as f:
            chain = FxChain.from_dict(json.load(f))
    except (OSError, ValueError) as e:
        print(f"error: failed to read {args.chain}: {e}", file=sys.stderr)
        return 2
    except ValidationError as e:
        print("invalid chain:", file=sys.stderr)
        for err in e.errors:
            print(f" - {err}", file=sys.stderr)
        return 1

    try:
        mid = mido.MidiFile(args.input)
    except (OSError, EOFError, ValueError) as e:
        print(f"error: failed to read {args.input}: {e}", file=sys.stderr)
        return 2
    bpm = args.bpm if args.bpm else file_bpm(mid)
    host = ChainHost(chain=chain, config=HostConfig(sample_rate=args.sample_rate, bpm=bpm, block_size=args.block_size))
    try:
        out, n_in, n_out = render(mid, host)
    except TypeError as e:
        # type 2 files hold independent sequences and cannot be merged
        print(f"error: cannot render {args.input}: {e}", file=sys.stderr)
        return 2
    out.save(args.output)
    print(f"[render] {n_in} note events in, {n_out} out ({len(chain)} effects, {bpm:g} BPM) -> {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

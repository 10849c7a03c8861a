from __future__ import annotations

import argparse

import mido

from midifx.host import ChainHost, HostConfig
from midifx.midi_io import MidoSink, open_mido_output
from midifx.render_file import file_bpm, render


def main():
    ap = argparse.ArgumentParser(description="Render a MIDI file through a chain and play it to a device")
    ap.add_argument("input", help="Input .mid file")
    ap.add_argument("--chain", required=True, help="Chain JSON file")
    ap.add_argument("--port", help="Substring to match MIDI output port")
    ap.add_argument("--sample-rate", type=float, default=48000.0)
    ap.add_argument("--block-size", type=int, default=512)
    args = ap.parse_args()

    mid = mido.MidiFile(args.input)
    cfg = HostConfig(sample_rate=args.sample_rate, bpm=file_bpm(mid), block_size=args.block_size)
    host = ChainHost.from_file(args.chain, cfg)
    rendered, n_in, n_out = render(mid, host)
    print(f"[play] {n_in} events in, {n_out} out at {cfg.bpm:g} BPM")

    out = open_mido_output(args.port)
    sink = MidoSink(out)
    try:
        for msg in rendered.play():
            out.send(msg)
    except KeyboardInterrupt:
        pass
    finally:
        # Flush anything left hanging
        sink.panic()
        print("[play] panic sent (CC64/120/123)")


if __name__ == "__main__":
    main()

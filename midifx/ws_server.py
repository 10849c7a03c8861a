"""WebSocket control surface for a ChainHost.

Lets a UI list effect parameters, queue slider edits and bypass toggles,
push JSON Patch edits against the versioned chain document, and run ad-hoc
blocks through the chain. Every edit is applied by the host at the next
block boundary.

A `process` request runs the live chain: it advances generator state and
arpeggiator held notes and counts as a real block, exactly as if the audio
thread had processed it.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
import time
from typing import Any, Dict

import websockets

from midifx.events import NoteEvent
from midifx.host import ChainHost, HostConfig


def _msg(t: str, payload: Any = None, req_id: Any = None) -> str:
    obj: Dict[str, Any] = {"type": t, "ts": time.time()}
    if req_id is not None:
        obj["id"] = req_id
    if payload is not None:
        obj["payload"] = payload
    return json.dumps(obj)


async def _handle(host: ChainHost, ws, obj: Dict[str, Any]) -> None:
    t = obj.get("type")
    req_id = obj.get("id")
    payload = obj.get("payload") or {}
    if not isinstance(payload, dict):
        raise ValueError("payload must be an object")
    if t == "ping":
        await ws.send(_msg("pong", req_id=req_id))
    elif t == "getDoc":
        await ws.send(_msg("doc", host.get_doc(), req_id))
    elif t == "getState":
        await ws.send(_msg("state", host.get_state(), req_id))
    elif t == "getParams":
        await ws.send(_msg("params", host.list_parameters(), req_id))
    elif t == "setParam":
        host.queue_parameter(int(payload.get("index", -1)), str(payload.get("name", "")), float(payload.get("value", 0.0)))
        await ws.send(_msg("ack", {"ok": True, "queued": True}, req_id))
    elif t == "setBypass":
        host.queue_bypass(int(payload.get("index", -1)), bool(payload.get("bypass", False)))
        await ws.send(_msg("ack", {"ok": True, "queued": True}, req_id))
    elif t == "setTempo":
        host.set_tempo(float(payload.get("bpm", host.config.bpm)))
        await ws.send(_msg("ack", {"ok": True}, req_id))
    elif t == "applyPatch":
        ops = payload.get("ops")
        if not isinstance(ops, list):
            await ws.send(_msg("error", {"ok": False, "error": "invalid_ops"}, req_id))
            return
        res = host.apply_patch(int(payload.get("baseVersion", -1)), ops, apply_now=bool(payload.get("applyNow", False)))
        print(f"[ws] applyPatch result: {res}", flush=True)
        if res.get("ok"):
            await ws.send(_msg("doc", host.get_doc()))
            await ws.send(_msg("ack", res, req_id))
        else:
            await ws.send(_msg("error", res, req_id))
    elif t == "process":
        raw_events = payload.get("events", [])
        if not isinstance(raw_events, list) or not all(isinstance(e, dict) for e in raw_events):
            raise ValueError("events must be a list of objects")
        events = [NoteEvent.from_dict(e) for e in raw_events]
        out = host.process_block(events, payload.get("sampleRate"), payload.get("bpm"))
        await ws.send(_msg("events", [e.to_dict() for e in out], req_id))
    else:
        await ws.send(_msg("error", {"ok": False, "error": "unknown_type", "details": str(t)}, req_id))


async def serve_ws(host: ChainHost, bind: str, port: int):
    async def handler(ws, *maybe_path):
        print(f"[ws] client connected: {getattr(ws, 'remote_address', None)}", flush=True)
        await ws.send(_msg("hello", {"protocol": 1, "docVersion": host.doc_version}))
        await ws.send(_msg("doc", host.get_doc()))
        await ws.send(_msg("state", host.get_state()))
        async for message in ws:
            try:
                obj = json.loads(message)
            except ValueError:
                obj = None
            if not isinstance(obj, dict):
                await ws.send(_msg("error", {"ok": False, "error": "bad_json"}))
                continue
            try:
                await _handle(host, ws, obj)
            except (TypeError, ValueError) as e:
                await ws.send(_msg("error", {"ok": False, "error": "bad_request", "details": str(e)}, obj.get("id")))

    async with websockets.serve(handler, bind, port):
        print(f"[ws] midifx control listening on ws://{bind}:{port}", flush=True)
        await asyncio.Future()


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="midifx chain host with WS control surface")
    ap.add_argument("--chain", default="chain.json")
    ap.add_argument("--sample-rate", type=float, default=48000.0)
    ap.add_argument("--bpm", type=float, default=120.0)
    ap.add_argument("--block-size", type=int, default=512)
    ap.add_argument("--ws-port", type=int, default=8765)
    args = ap.parse_args(argv)

    cfg = HostConfig(sample_rate=args.sample_rate, bpm=args.bpm, block_size=args.block_size)
    try:
        host = ChainHost.from_file(args.chain, cfg)
    except FileNotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    def shutdown(*_):
        print("[ws] shutting down", flush=True)
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    # Always bind to localhost to avoid external exposure
    try:
        asyncio.run(serve_ws(host, "127.0.0.1", args.ws_port))
    except KeyboardInterrupt:
        shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Dict

import websockets

from midifx.patch_utils import param_ops


def build_request(cmd: str, args: argparse.Namespace, doc_version: int) -> Dict[str, Any]:
    if cmd == "params":
        return {"type": "getParams", "id": 1}
    if cmd == "set":
        index, value = int(args.index), float(args.value)
        if args.persist:
            # Goes through the document so the new value is saved with the chain
            return {"type": "applyPatch", "id": 1, "payload": {"baseVersion": doc_version, "ops": param_ops(index, args.name, value), "applyNow": False}}
        return {"type": "setParam", "id": 1, "payload": {"index": index, "name": args.name, "value": value}}
    if cmd == "bypass":
        return {"type": "setBypass", "id": 1, "payload": {"index": int(args.index), "bypass": not args.off}}
    if cmd == "tempo":
        return {"type": "setTempo", "id": 1, "payload": {"bpm": float(args.bpm)}}
    if cmd == "patch":
        return {"type": "applyPatch", "id": 1, "payload": {"baseVersion": doc_version, "ops": json.loads(args.ops), "applyNow": bool(args.apply_now)}}
    raise ValueError(f"unknown command: {cmd}")


async def run(url: str, cmd: str, args: argparse.Namespace):
    async with websockets.connect(url) as ws:
        # Server greets with hello, doc, state
        doc_version = 0
        for _ in range(3):
            obj = json.loads(await ws.recv())
            if obj.get("type") == "doc":
                doc_version = int(obj["payload"].get("docVersion", 0))
        await ws.send(json.dumps(build_request(cmd, args, doc_version)))
        # Print next few messages
        for _ in range(3):
            try:
                msg = await asyncio.wait_for(ws.recv(), timeout=2.0)
                print(msg)
            except asyncio.TimeoutError:
                break


def make_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Simple WS controller for a midifx chain host")
    ap.add_argument("--url", default="ws://127.0.0.1:8765")
    sub = ap.add_subparsers(dest="cmd", required=True)
    sub.add_parser("params")
    p_set = sub.add_parser("set"); p_set.add_argument("index"); p_set.add_argument("name"); p_set.add_argument("value")
    p_set.add_argument("--persist", action="store_true", help="Edit the saved chain document instead of queueing a live tweak")
    p_byp = sub.add_parser("bypass"); p_byp.add_argument("index"); p_byp.add_argument("--off", action="store_true")
    p_tempo = sub.add_parser("tempo"); p_tempo.add_argument("--bpm", required=True)
    p_patch = sub.add_parser("patch"); p_patch.add_argument("--ops", required=True); p_patch.add_argument("--apply-now", action="store_true")
    return ap


def main():
    args = make_parser().parse_args()
    asyncio.run(run(args.url, args.cmd, args))


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import hashlib
import json
import sys
from typing import Any, Dict, List

from midifx.registry import EFFECT_TYPES, effect_from_dict

CHAIN_VERSION = "midifx-chain-1.0"
MAX_EFFECTS = 8


class ValidationError(Exception):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)


def _err(errors: List[str], path: str, msg: str) -> None:
    errors.append(f"{path}: {msg}")


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_chain(doc: Dict[str, Any]) -> List[str]:
    """Check a serialized chain document.

    Returns a list of human-readable errors with JSON-pointer-like paths;
    an empty list means FxChain.from_dict will accept it. Parameter values
    outside their range are errors here even though set_parameter would
    clamp them, so a hand-edited file does not silently change meaning.
    """
    errors: List[str] = []
    if not isinstance(doc, dict):
        _err(errors, "", "document must be an object")
        return errors

    if doc.get("version") != CHAIN_VERSION:
        _err(errors, "/version", f"must equal '{CHAIN_VERSION}'")

    if "bypassAll" in doc and not isinstance(doc["bypassAll"], bool):
        _err(errors, "/bypassAll", "boolean required")

    effects = doc.get("effects")
    if not isinstance(effects, list):
        _err(errors, "/effects", "required array")
        return errors
    if len(effects) > MAX_EFFECTS:
        _err(errors, "/effects", f"at most {MAX_EFFECTS} effects per chain")

    for i, fx in enumerate(effects):
        fpath = f"/effects/{i}"
        if not isinstance(fx, dict):
            _err(errors, fpath, "must be object")
            continue
        kind = fx.get("type")
        cls = EFFECT_TYPES.get(kind) if isinstance(kind, str) else None
        if cls is None:
            _err(errors, fpath + "/type", f"must be one of {', '.join(EFFECT_TYPES)}")
            continue
        if "bypass" in fx and not isinstance(fx["bypass"], bool):
            _err(errors, fpath + "/bypass", "boolean required")

        params = fx.get("params", {})
        if not isinstance(params, dict):
            _err(errors, fpath + "/params", "must be object if present")
        else:
            ranges = {n: (lo, hi) for (n, _d, lo, hi) in cls.PARAMS}
            for name, val in params.items():
                ppath = f"{fpath}/params/{name}"
                if name not in ranges:
                    _err(errors, ppath, f"unknown parameter for {kind}")
                elif not _is_number(val):
                    _err(errors, ppath, "number required")
                else:
                    lo, hi = ranges[name]
                    if not (lo <= val <= hi):
                        _err(errors, ppath, f"must be in {lo:g}..{hi:g}")

        rng = fx.get("rng")
        if rng is not None:
            if not isinstance(rng, dict):
                _err(errors, fpath + "/rng", "must be object if present")
            else:
                for key in ("seed", "state"):
                    v = rng.get(key)
                    if v is not None and (not isinstance(v, int) or isinstance(v, bool) or not (0 <= v < 2 ** 64)):
                        _err(errors, f"{fpath}/rng/{key}", "unsigned 64-bit integer required")

        held = fx.get("heldNotes")
        if held is not None:
            if not isinstance(held, list) or not all(isinstance(p, int) and 0 <= p <= 127 for p in held):
                _err(errors, fpath + "/heldNotes", "array of integers 0..127 required")

    return errors


def canonicalize(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Return a canonical copy of a valid chain document.

    Every effect is rebuilt through its class so omitted parameters and
    generator state appear with their defaults. Effect order is preserved.
    """
    return {
        "version": CHAIN_VERSION,
        "bypassAll": bool(doc.get("bypassAll", False)),
        "effects": [effect_from_dict(fx).to_dict() for fx in doc.get("effects", [])],
    }


def sha256_canonical(doc: Dict[str, Any]) -> str:
    """Compute SHA-256 of canonical JSON string (sorted keys, compact)."""
    s = json.dumps(doc, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Validate and canonicalize midifx chain JSON")
    ap.add_argument("path", help="Path to chain JSON file")
    ap.add_argument("--write", "-w", action="store_true", help="Rewrite file with canonical formatting")
    ap.add_argument("--print-hash", action="store_true", help="Print SHA-256 of canonical JSON")
    args = ap.parse_args(argv)

    try:
        with open(args.path, "r", encoding="utf-8") as f:
            doc = json.load(f)
    except (OSError, ValueError) as e:
        print(f"error: failed to read {args.path}: {e}", file=sys.stderr)
        return 2

    errors = validate_chain(doc)
    if errors:
        print("invalid chain:")
        for e in errors:
            print(f" - {e}")
        return 1

    canon = canonicalize(doc)
    if args.print_hash:
        print(sha256_canonical(canon))

    if args.write:
        data = json.dumps(canon, indent=2, ensure_ascii=False) + "\n"
        with open(args.path, "w", encoding="utf-8") as f:
            f.write(data)
        print(f"wrote canonical form to {args.path}")
    else:
        print("ok: valid and canonicalizable")

    return 0


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from midifx.chain import FxChain
from midifx.events import NoteEvent
from midifx.patch_utils import apply_patch as apply_json_patch
from midifx.validator import sha256_canonical, validate_chain

logger = logging.getLogger(__name__)

Edit = Callable[[FxChain], Any]


@dataclass
class HostConfig:
    sample_rate: float = 48000.0
    bpm: float = 120.0
    block_size: int = 512


def _atomic_write_json(path: str, obj: Dict[str, Any]) -> None:
    data = json.dumps(obj, ensure_ascii=False, indent=2) + "\n"
    d = os.path.dirname(os.path.abspath(path)) or "."
    fd, tmp = tempfile.mkstemp(prefix=".tmp_chain_", dir=d, text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)


def _load_json(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"chain file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class ChainHost:
    """Owns one FxChain on behalf of an audio thread.

    - `process_block` is the only place the chain runs. Edits coming from
      other threads (UI, WS) are queued and applied at the start of the next
      block, never mid-block.
    - Document edits arrive as JSON Patch against a versioned snapshot;
      a patch built on an old docVersion is refused as stale.
    - When backed by a file, every accepted document change is written
      atomically.
    """

    def __init__(self, chain: Optional[FxChain] = None, config: Optional[HostConfig] = None,
                 chain_path: Optional[str] = None, doc_version: int = 0) -> None:
        self.chain = chain if chain is not None else FxChain()
        self.config = config or HostConfig()
        self.chain_path = chain_path
        self.doc_version = int(doc_version)
        # Re-entrant: apply_patch and _apply_pending call back into locked methods
        self._lock = threading.RLock()
        self._pending: List[Edit] = []
        self._pending_chain: Optional[FxChain] = None
        self.metrics: Dict[str, int] = {
            "blocks": 0,
            "events_in": 0,
            "events_out": 0,
            "edits_applied": 0,
        }

    @classmethod
    def from_file(cls, path: str, config: Optional[HostConfig] = None) -> "ChainHost":
        doc = _load_json(path)
        chain = FxChain.from_dict(doc)
        logger.info("loaded chain with %d effects from %s", len(chain), path)
        return cls(chain=chain, config=config, chain_path=path, doc_version=int(doc.get("docVersion", 0)))

    # --- Processing ---
    def process_block(self, events: Sequence[NoteEvent], sample_rate: Optional[float] = None,
                      bpm: Optional[float] = None) -> List[NoteEvent]:
        sr = self.config.sample_rate if sample_rate is None else float(sample_rate)
        tempo = self.config.bpm if bpm is None else float(bpm)
        with self._lock:
            self._apply_pending()
            out = self.chain.process(events, sr, tempo)
            self.metrics["blocks"] += 1
            self.metrics["events_in"] += len(events)
            self.metrics["events_out"] += len(out)
        logger.debug("block %d: %d -> %d events", self.metrics["blocks"], len(events), len(out))
        return out

    def set_tempo(self, bpm: float) -> None:
        self.config.bpm = max(1.0, float(bpm))

    # --- Queued edits ---
    def queue_parameter(self, index: int, name: str, value: float) -> None:
        with self._lock:
            self._pending.append(lambda ch: ch.set_parameter(index, name, value))

    def queue_bypass(self, index: int, bypass: bool) -> None:
        with self._lock:
            self._pending.append(lambda ch: ch.set_bypass(index, bypass))

    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending) or self._pending_chain is not None

    def _drain_edits(self) -> None:
        # Edits land on whatever chain the next block will run
        target = self._pending_chain if self._pending_chain is not None else self.chain
        edits, self._pending = self._pending, []
        for edit in edits:
            edit(target)
        self.metrics["edits_applied"] += len(edits)

    def _apply_pending(self) -> None:
        with self._lock:
            self._drain_edits()
            if self._pending_chain is not None:
                self.chain = self._pending_chain
                self._pending_chain = None
                self.metrics["edits_applied"] += 1

    # --- Document ---
    def _current_doc(self) -> Dict[str, Any]:
        # The staged chain, when present, is what the next block will run
        chain = self._pending_chain if self._pending_chain is not None else self.chain
        return chain.to_dict()

    def get_doc(self) -> Dict[str, Any]:
        with self._lock:
            doc = self._current_doc()
            return {
                "docVersion": self.doc_version,
                "json": doc,
                "sha256": sha256_canonical(doc),
                "path": os.path.abspath(self.chain_path) if self.chain_path else None,
            }

    def list_parameters(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {
                    "index": i,
                    "type": fx.kind,
                    "name": fx.name,
                    "bypass": fx.bypass,
                    "params": [{"name": n, "value": v, "min": lo, "max": hi} for (n, v, lo, hi) in fx.list_parameters()],
                }
                for i, fx in enumerate(self.chain)
            ]

    def apply_patch(self, base_version: int, ops: List[Dict[str, Any]], apply_now: bool = False) -> Dict[str, Any]:
        with self._lock:
            if int(base_version) != self.doc_version:
                logger.warning("stale patch: client=%s server=%s", base_version, self.doc_version)
                return {"ok": False, "error": "stale", "expected": self.doc_version}
            # Queued parameter edits belong to the snapshot the client saw
            self._drain_edits()
            try:
                patched = apply_json_patch(self._current_doc(), ops)
            except Exception as e:
                return {"ok": False, "error": "patch_apply", "details": str(e)}
            errors = validate_chain(patched)
            if errors:
                return {"ok": False, "error": "invalid", "details": errors}
            new_chain = FxChain.from_dict(patched)
            if apply_now:
                self.chain = new_chain
                self._pending_chain = None
            else:
                self._pending_chain = new_chain
            self.doc_version += 1
            self._autosave()
            return {"ok": True, "docVersion": self.doc_version, "applied": bool(apply_now)}

    def get_state(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "docVersion": self.doc_version,
                "sampleRate": self.config.sample_rate,
                "bpm": self.config.bpm,
                "blockSize": self.config.block_size,
                "bypassAll": self.chain.bypass_all,
                "effects": [fx.name for fx in self.chain],
                "pending": bool(self._pending) or self._pending_chain is not None,
                "metrics": dict(self.metrics),
            }

    # --- Persistence ---
    def save(self, path: Optional[str] = None) -> str:
        target = path or self.chain_path
        if not target:
            raise ValueError("no chain path to save to")
        with self._lock:
            doc = self._current_doc()
            doc["docVersion"] = self.doc_version
        _atomic_write_json(target, doc)
        logger.info("saved chain (docVersion=%d) to %s", self.doc_version, target)
        return target

    def _autosave(self) -> None:
        if self.chain_path:
            self.save()

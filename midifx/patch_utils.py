from __future__ import annotations

import copy
from typing import Any, Dict, List

import jsonpatch


def apply_patch(doc: Dict[str, Any], ops: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Apply an RFC 6902 JSON Patch ops array to a deep copy of doc.

    The input document is never modified. Raises jsonpatch.JsonPatchException
    (or jsonpointer.JsonPointerException) for ops that do not apply.
    """
    if not isinstance(ops, list):
        raise ValueError("ops must be an array")
    base = copy.deepcopy(doc)
    return jsonpatch.JsonPatch(ops).apply(base, in_place=False)


def param_ops(index: int, name: str, value: float) -> List[Dict[str, Any]]:
    """Patch that sets one effect parameter (what a slider edit sends)."""
    return [{"op": "replace", "path": f"/effects/{int(index)}/params/{name}", "value": value}]

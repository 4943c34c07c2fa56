"""Variable collection hygiene.

Azure DevOps accepts two shapes for ``variables``::

    variables:                     variables:
      OTHER: "1"                     - name: OTHER
                                       value: "1"
                                     - group: shared-secrets

Every helper here accepts both and keeps the shape it was given.  Sequence
entries that are not ``{name, value}`` pairs (``group``, ``template``) are
never touched.
"""
from __future__ import annotations

import copy
from typing import Any, Iterable, List, Optional, Tuple

from .errors import MalformedDocument

DEFAULT_LEGACY_PREFIXES = ("COVERITY_", "POLARIS_")


def _entry_name(entry: Any) -> Optional[str]:
    if isinstance(entry, dict) and "name" in entry and isinstance(entry["name"], str):
        return entry["name"]
    return None


def _is_legacy(name: Optional[str], prefixes: Tuple[str, ...]) -> bool:
    return bool(name) and name.upper().startswith(tuple(p.upper() for p in prefixes))


def variable_names(variables: Any) -> List[str]:
    if isinstance(variables, dict):
        return [str(k) for k in variables]
    if isinstance(variables, list):
        return [n for n in (_entry_name(e) for e in variables) if n is not None]
    return []


def drop_legacy(variables: Any, prefixes: Iterable[str] = DEFAULT_LEGACY_PREFIXES) -> Any:
    """Remove entries whose name starts with one of *prefixes* (in place)."""
    prefixes = tuple(prefixes)
    if isinstance(variables, dict):
        for key in [k for k in variables if _is_legacy(str(k), prefixes)]:
            del variables[key]
    elif isinstance(variables, list):
        for idx in reversed(range(len(variables))):
            if _is_legacy(_entry_name(variables[idx]), prefixes):
                del variables[idx]
    return variables


def _pairs(variables: Any) -> List[Tuple[str, Any]]:
    if isinstance(variables, dict):
        return [(str(k), v) for k, v in variables.items()]
    if isinstance(variables, list):
        return [
            (entry["name"], entry.get("value"))
            for entry in variables
            if _entry_name(entry) is not None
        ]
    raise MalformedDocument(
        f"variables must be a mapping or a sequence, got {type(variables).__name__}"
    )


def merge(variables: Any, incoming: Any) -> Any:
    """Merge *incoming* into *variables* (in place) and return the result.

    Mapping targets get union semantics where incoming values win.  Sequence
    targets get append-if-absent semantics keyed by ``name``.
    """
    if not incoming:
        return variables
    pairs = _pairs(incoming)
    if isinstance(variables, dict):
        for name, value in pairs:
            variables[name] = copy.deepcopy(value)
        return variables
    if isinstance(variables, list):
        present = set(variable_names(variables))
        for name, value in pairs:
            if name not in present:
                variables.append({"name": name, "value": copy.deepcopy(value)})
                present.add(name)
        return variables
    raise MalformedDocument(
        f"variables must be a mapping or a sequence, got {type(variables).__name__}"
    )


def normalize(document: dict, incoming: Any, prefixes: Iterable[str] = DEFAULT_LEGACY_PREFIXES) -> None:
    """Apply legacy removal and merge *incoming* into ``document['variables']``."""
    current = document.get("variables")
    if current is None:
        if incoming:
            document["variables"] = merge({}, incoming)
        return
    drop_legacy(current, prefixes)
    merge(current, incoming)

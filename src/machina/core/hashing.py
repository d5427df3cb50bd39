"""
Deterministic hashing of machine inputs.

The cache identifies a prior result by a hash of the run's configured
inputs. The hash must be identical for equal inputs no matter how the
mapping was built, and it must never be computed from a lossy rendering:
a value that has no canonical form is an error, not a ``str()`` guess.

Manifesto:
    - **Deterministic:** Canonical JSON with sorted keys, then SHA-256
    - **Order-irrelevant:** ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}``
      hash the same
    - **Fail loudly:** Functions, sets, cycles, NaN, non-string keys and
      lone surrogates raise ``HashError``
    - **Scoped:** The machine id is hashed with the inputs, so one store
      can serve many machine types without collisions

Architecture:
    ::

        hash_inputs(inputs, machine="add")
            │
            ├── canonical_json({"machine": "add", "inputs": inputs})
            │       json.dumps(sort_keys=True, allow_nan=False,
            │                  separators=(",", ":"), no default=)
            │
            └── sha256(...).hexdigest()   → 64-char hex string

Examples:
    >>> h1 = hash_inputs({"a": 1, "b": [1, 2]}, machine="add")
    >>> h2 = hash_inputs({"b": [1, 2], "a": 1}, machine="add")
    >>> h1 == h2
    True
    >>> hash_inputs({"fn": print})
    Traceback (most recent call last):
    ...
    machina.core.errors.HashError: Input value is not serializable ...

Tags:
    hashing, cache-key, determinism, machina

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from machina.core.errors import HashError


def canonical_json(value: Any) -> str:
    """Render *value* as canonical JSON.

    Raises:
        HashError: If *value* (or anything nested in it) has no JSON form,
            contains a reference cycle, or contains NaN/infinity.
    """
    try:
        return json.dumps(
            value,
            sort_keys=True,
            allow_nan=False,
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except TypeError as exc:
        # Also raised by sort_keys when a mapping mixes key types
        raise HashError(f"Input value is not serializable: {exc}", cause=exc) from exc
    except ValueError as exc:
        # Circular reference or out-of-range float
        raise HashError(f"Input value has no canonical form: {exc}", cause=exc) from exc
    except RecursionError as exc:
        raise HashError("Input value is nested too deeply to hash", cause=exc) from exc


def _check_keys(value: Any, path: str | None, active: set[int]) -> None:
    """Reject non-string mapping keys at any depth.

    ``json.dumps`` would stringify them, so ``{1: "x"}`` and ``{"1": "x"}``
    would render the same.
    """
    if isinstance(value, Mapping):
        children = value.items()
    elif isinstance(value, (list, tuple)):
        children = enumerate(value)
    else:
        return
    if id(value) in active:
        return  # cycle, reported by canonical_json
    active.add(id(value))
    for key, child in children:
        if isinstance(value, Mapping):
            if not isinstance(key, str):
                where = repr(key) if path is None else f"{path}[{key!r}]"
                raise HashError(f"Input names must be strings, got {key!r}", path=where)
            child_path = key if path is None else f"{path}.{key}"
        else:
            child_path = f"{path}[{key}]"
        _check_keys(child, child_path, active)
    active.discard(id(value))


def hash_inputs(inputs: Mapping[str, Any], *, machine: str | None = None) -> str:
    """Compute the cache hash for a run's inputs.

    Args:
        inputs: The configured inputs, after cache options were separated
            out. Key order is irrelevant.
        machine: Id of the machine definition. Hashed alongside the inputs.

    Returns:
        64-char lowercase hex SHA-256 digest.

    Raises:
        HashError: If any input value is not serializable.
    """
    if not isinstance(inputs, Mapping):
        raise HashError(f"Inputs must be a mapping, got {type(inputs).__name__}")

    try:
        _check_keys(inputs, None, set())
    except RecursionError as exc:
        raise HashError("Input value is nested too deeply to hash", cause=exc) from exc

    content = canonical_json({"machine": machine, "inputs": dict(inputs)})
    try:
        encoded = content.encode("utf-8")
    except UnicodeEncodeError as exc:
        # Lone surrogates survive json.dumps with ensure_ascii=False
        raise HashError(f"Input value is not valid unicode: {exc.reason}", cause=exc) from exc
    return hashlib.sha256(encoded).hexdigest()


__all__ = ["canonical_json", "hash_inputs"]

"""Reference id bookkeeping for Newtonsoft-style ``$id`` / ``$ref`` trees.

Gaea writes .terrain files with reference preservation enabled: any object
may declare ``"$id": "<n>"`` and be pointed at elsewhere by an alias object
``{"$ref": "<n>"}``. Ids are decimal strings, unique across the whole file.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional

from .errors import DanglingReferenceError

ID_KEY = "$id"
REF_KEY = "$ref"
TYPE_KEY = "$type"
VALUES_KEY = "$values"


def _walk_objects(root: Any) -> Iterator[Dict[str, Any]]:
    """Yield every dict in the tree, depth-first, parents before children."""
    stack = [root]
    while stack:
        value = stack.pop()
        if isinstance(value, dict):
            yield value
            stack.extend(reversed(list(value.values())))
        elif isinstance(value, list):
            stack.extend(reversed(value))


def _as_int(raw: Any) -> Optional[int]:
    if not isinstance(raw, str) or not (raw.isascii() and raw.isdigit()):
        return None
    return int(raw)


def scan_max_id(root: Any) -> int:
    """Return the largest numeric ``$id`` in the tree, or 0 if there is none.

    Non-numeric ids are ignored.
    """
    highest = 0
    for obj in _walk_objects(root):
        number = _as_int(obj.get(ID_KEY))
        if number is not None and number > highest:
            highest = number
    return highest


class IdAllocator:
    """Hands out ``$id`` strings that are not yet used in a document.

    The starting point is captured once, at construction. Thread a single
    instance through every step of one logical mutation; two allocators
    built against the same tree would return the same values.
    """

    def __init__(self, root: Any):
        self._next = scan_max_id(root) + 1

    @property
    def next_value(self) -> int:
        return self._next

    def allocate(self) -> str:
        value = str(self._next)
        self._next += 1
        return value

    __call__ = allocate


def new_allocator(root: Any) -> IdAllocator:
    """Create an allocator starting after the current max id of ``root``."""
    return IdAllocator(root)


def is_alias(value: Any) -> bool:
    """True for ``{"$ref": ...}`` objects."""
    return isinstance(value, dict) and REF_KEY in value


def iter_ids(root: Any) -> Iterator[str]:
    """Yield every declared ``$id`` value in tree order (duplicates included)."""
    for obj in _walk_objects(root):
        if ID_KEY in obj:
            yield obj[ID_KEY]


def iter_refs(root: Any) -> Iterator[str]:
    """Yield the target id of every alias in tree order."""
    for obj in _walk_objects(root):
        if REF_KEY in obj:
            yield obj[REF_KEY]


def build_ref_index(root: Any) -> Dict[str, Dict[str, Any]]:
    """Map each declared ``$id`` to the object that declares it.

    When an id is declared twice the first declaration wins, matching the
    forward-only reader in Gaea.
    """
    index: Dict[str, Dict[str, Any]] = {}
    for obj in _walk_objects(root):
        ref_id = obj.get(ID_KEY)
        if ref_id is not None and ref_id not in index:
            index[ref_id] = obj
    return index


def resolve(value: Any, index: Dict[str, Dict[str, Any]]) -> Any:
    """Follow an alias to its target; non-alias values are returned as-is.

    Raises:
        DanglingReferenceError: if the alias target is not in ``index``.
    """
    if not is_alias(value):
        return value
    target = index.get(value[REF_KEY])
    if target is None:
        raise DanglingReferenceError(f"Unresolved reference $ref={value[REF_KEY]!r}")
    return target


__all__ = [
    "ID_KEY",
    "REF_KEY",
    "TYPE_KEY",
    "VALUES_KEY",
    "scan_max_id",
    "IdAllocator",
    "new_allocator",
    "is_alias",
    "iter_ids",
    "iter_refs",
    "build_ref_index",
    "resolve",
]

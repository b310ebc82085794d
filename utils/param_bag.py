"""
Navigation helpers for nested form parameter bags.

A bag is a tree whose inner nodes are mappings or sequences, e.g.
{"user": {"avatar": <upload>, "photos": [<upload>, <upload>]}}.
Keys are ordered paths: ("user", "photos", 1).
"""

from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence
from typing import Any, Iterable, Optional

from config.upload_cache import KeySegment

_MISSING = object()


def _child(node: Any, segment: KeySegment) -> Any:
    """Step one level down, or return _MISSING."""
    if isinstance(node, Mapping):
        if segment in node:
            return node[segment]
        # Form keys arrive as strings; allow ("photos", 0) to find "0"
        if isinstance(segment, int) and str(segment) in node:
            return node[str(segment)]
        return _MISSING

    if isinstance(node, Sequence) and not isinstance(node, (str, bytes)):
        index = _as_index(segment)
        if index is not None and -len(node) <= index < len(node):
            return node[index]
        return _MISSING

    return _MISSING


def _as_index(segment: KeySegment) -> Optional[int]:
    if isinstance(segment, int):
        return segment
    if isinstance(segment, str) and segment.isdigit():
        return int(segment)
    return None


def get_path(bag: Any, key: Iterable[KeySegment], default: Any = None) -> Any:
    """
    Read the value at key, or default if any segment is missing.

    Args:
        bag: Nested mapping/sequence structure
        key: Ordered key path

    Returns:
        Value found, or default
    """
    node = bag
    for segment in key:
        node = _child(node, segment)
        if node is _MISSING:
            return default
    return node


def set_path(bag: Any, key: Iterable[KeySegment], value: Any) -> bool:
    """
    Write value at key without creating intermediate nodes.

    The last segment may be a new mapping key; a sequence index must
    already exist. When an intermediate node is missing (or is not a
    container) the bag is left unchanged.

    Returns:
        True if the value was written
    """
    key = list(key)
    if not key:
        return False

    parent = get_path(bag, key[:-1], default=_MISSING)
    if parent is _MISSING:
        return False

    last = key[-1]

    if isinstance(parent, MutableMapping):
        if isinstance(last, int) and last not in parent and str(last) in parent:
            last = str(last)
        parent[last] = value
        return True

    if isinstance(parent, MutableSequence):
        index = _as_index(last)
        if index is not None and -len(parent) <= index < len(parent):
            parent[index] = value
            return True

    return False


def expand_dotted(items: Iterable[tuple[str, Any]], separator: str = ".") -> dict:
    """
    Build a nested bag from flat form field names.

    [("user.avatar", f), ("user.avatar_upload_cache", "abc/x.png")]
    → {"user": {"avatar": f, "avatar_upload_cache": "abc/x.png"}}

    A later plain value replaces an earlier nested one with the same name.
    """
    bag: dict = {}
    for name, value in items:
        parts = [part for part in name.split(separator) if part]
        if not parts:
            continue
        node = bag
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return bag

import enum
import json
from collections.abc import Callable
from typing import Any

from .errors import UnsupportedJsonType
from .segmenter import segment_and_translate

RESERVED_KEY = "languages"


class NodeKind(enum.Enum):
    STRING = "string"
    OBJECT = "object"
    UNSUPPORTED = "unsupported"


def node_kind(value: Any) -> NodeKind:
    if isinstance(value, str):
        return NodeKind.STRING
    if isinstance(value, dict):
        return NodeKind.OBJECT
    return NodeKind.UNSUPPORTED


def format_key_path(parts: tuple[str, ...]) -> str:
    return ".".join(
        json.dumps(part, ensure_ascii=False) if "." in part else part for part in parts
    )


def translate_tree(
    source: dict,
    reference: dict | None,
    translate: Callable[[str], str],
    on_leaf: Callable[[str, bool], None] | None = None,
) -> dict:
    """Build a translated copy of ``source``.

    Keys whose string value already exists in ``reference`` are reused
    verbatim; every other string leaf goes through
    :func:`segment_and_translate`. Nested objects recurse with the matching
    reference subtree. ``on_leaf`` is told ``(path, reused)`` per leaf.
    """
    return _translate_object(source, reference or {}, translate, on_leaf, ())


def _translate_object(
    source: dict,
    reference: dict,
    translate: Callable[[str], str],
    on_leaf: Callable[[str, bool], None] | None,
    parents: tuple[str, ...],
) -> dict:
    output: dict = {}
    for key, value in source.items():
        if key == RESERVED_KEY:
            output[key] = value
            continue
        path = (*parents, key)
        kind = node_kind(value)
        if kind is NodeKind.STRING:
            previous = reference.get(key)
            reused = node_kind(previous) is NodeKind.STRING
            output[key] = previous if reused else segment_and_translate(value, translate)
            if on_leaf is not None:
                on_leaf(format_key_path(path), reused)
        elif kind is NodeKind.OBJECT:
            child_reference = reference.get(key)
            if node_kind(child_reference) is not NodeKind.OBJECT:
                child_reference = {}
            output[key] = _translate_object(
                value, child_reference, translate, on_leaf, path
            )
        else:
            raise UnsupportedJsonType(key, path, format_key_path(path), type(value).__name__)
    return output

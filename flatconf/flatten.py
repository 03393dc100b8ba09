# flatconf/flatten.py
"""
flatconf.flatten
----------------

Conversion between nested structures and the flat key space.

A flat key is a dot-separated path; each segment is either a mapping key /
field name or a decimal list index:

    {"general": {"list": [{"name": "a"}]}}  ->  {"general.list.0.name": "a"}

Two producers feed the flat space: `flatten()` for generic parsed documents
(dicts, lists, scalars) and `flatten_struct()` for dataclass instances. Both
yield the same key shape, so defaults, files and environment variables can be
merged key by key. `unflatten()` goes the other way.
"""

import dataclasses
import logging
from typing import Any, Dict, Optional, Union

from .exceptions import SourceShapeError
from .utils import KEY_SEPARATOR, is_index, join_key

log = logging.getLogger(__name__)

# None only appears as a placeholder for a null list element
FlatValue = Union[str, int, float, bool, None]

# Metadata key used on dataclass fields to rename or skip them:
#     host: str = field(default="", metadata={"config": "hostname"})
#     cache: dict = field(default_factory=dict, metadata={"config": "-"})
TAG = "config"
SKIP = "-"

_SCALARS = (str, int, float, bool)


def _leaf(value: Any) -> FlatValue:
    """Normalize a parsed scalar to one of the FlatValue types."""
    if isinstance(value, _SCALARS):
        return value
    # e.g. dates decoded by YAML/TOML parsers
    return str(value)


def flatten(doc: Any, prefix: str = "", out: Optional[Dict[str, FlatValue]] = None) -> Dict[str, FlatValue]:
    """
    Flatten a parsed document (mappings, lists, scalars) into flat keys.

    Mapping keys keep their case here; the Store canonicalises them.
    Empty mappings and lists contribute no keys. ``None`` mapping values
    (YAML/JSON ``null``) are treated as absent; ``None`` list elements are
    written as ``None`` leaves so later indices keep their position.

    Args:
        doc: The nested value to flatten.
        prefix: Path of `doc` itself; "" for a document root.
        out: Optional dict to write into. A new one is created if omitted.

    Returns:
        The dict holding every leaf under its flat key.
    """
    if out is None:
        out = {}

    if isinstance(doc, dict):
        for k, v in doc.items():
            flatten(v, join_key(prefix, k), out)
    elif isinstance(doc, (list, tuple)):
        for i, v in enumerate(doc):
            if v is None:
                out[join_key(prefix, i)] = None
            else:
                flatten(v, join_key(prefix, i), out)
    elif doc is None:
        pass
    else:
        out[prefix] = _leaf(doc)
    return out


def field_key(f: dataclasses.Field) -> Optional[str]:
    """
    Resolve the flat segment name of a dataclass field.

    Returns the rename tag if one is set, otherwise the lowercased field name.
    Returns None for fields that must not be mapped: private (underscore)
    names and fields tagged with "-".
    """
    if f.name.startswith("_"):
        return None
    tag = f.metadata.get(TAG) if f.metadata else None
    if tag == SKIP:
        return None
    if tag:
        return str(tag)
    return f.name.lower()


def is_struct(value: Any) -> bool:
    """True for dataclass *instances* (not dataclass types)."""
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def flatten_struct(src: Any, prefix: str = "", out: Optional[Dict[str, FlatValue]] = None) -> Dict[str, FlatValue]:
    """
    Flatten a dataclass instance into flat keys.

    Fields are visited in declaration order. Nested dataclasses recurse,
    lists and tuples are expanded by index, dict fields are flattened like
    parsed documents. ``None`` field values are skipped, ``None`` list
    elements are kept as ``None`` leaves.

    Raises:
        SourceShapeError: If `src` is not a dataclass instance. Nothing is
            written to `out` in that case.
    """
    if not is_struct(src):
        raise SourceShapeError(f"passed src is not a pointer or struct (got {type(src).__name__})")
    if out is None:
        out = {}
    _walk_struct(src, prefix, out)
    return out


def _walk_struct(obj: Any, prefix: str, out: Dict[str, FlatValue]):
    for f in dataclasses.fields(obj):
        name = field_key(f)
        if name is None:
            continue
        _walk_value(getattr(obj, f.name, None), join_key(prefix, name), out)


def _walk_value(value: Any, path: str, out: Dict[str, FlatValue]):
    if is_struct(value):
        _walk_struct(value, path, out)
    elif isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            if item is None:
                out[join_key(path, i)] = None
            else:
                _walk_value(item, join_key(path, i), out)
    elif isinstance(value, dict):
        for k, v in value.items():
            _walk_value(v, join_key(path, k), out)
    elif value is None:
        pass
    else:
        out[path] = _leaf(value)


def unflatten(flat: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rebuild a nested document from flat keys.

    A node whose child segments are exactly 0..n-1 becomes a list; anything
    else stays a dict. Since the flat form does not record whether a node was
    a list or a mapping with numeric keys, the latter come back as lists.
    """
    tree: Dict[str, Any] = {}
    for key, value in flat.items():
        parts = key.split(KEY_SEPARATOR)
        node = tree
        for p in parts[:-1]:
            child = node.get(p)
            if not isinstance(child, dict):
                if child is not None:
                    log.warning(f"Key '{key}' nests below leaf '{p}'; the leaf value is dropped.")
                child = node[p] = {}
            node = child
        if isinstance(node.get(parts[-1]), dict):
            log.warning(f"Leaf '{key}' collides with a nested section; keeping the section.")
            continue
        node[parts[-1]] = value
    return _listify(tree)


def _listify(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    converted = {k: _listify(v) for k, v in node.items()}
    if converted and all(is_index(k) for k in converted):
        positions = [str(i) for i in range(len(converted))]
        if set(positions) == set(converted):
            return [converted[p] for p in positions]
    return converted


def format_value(value: Any) -> str:
    """
    Render a flat value in its canonical, locale-independent text form.

    Examples:
        >>> format_value(True)
        'true'
        >>> format_value(35.0)
        '35'
        >>> format_value(3.14)
        '3.14'
        >>> format_value(None)
        'null'
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)

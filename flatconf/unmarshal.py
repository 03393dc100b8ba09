# flatconf/unmarshal.py
"""
flatconf.unmarshal
------------------

Populates dataclass instances from a flat key -> value mapping.

The traversal mirrors `flatten_struct()`: each field's flat key is derived
with `field_key()` (rename tag, else lowercased name) and nested dataclasses,
lists and dicts extend the key path. Leaves are coerced from whatever the
store holds (text from environment variables, typed scalars from files and
defaults) into the field's declared type.

Lists are sized by checking ``key.0``, ``key.1``, ... until an index holds no
data for the element type: the exact key for scalar elements, at least one of
its own fields (recursively) for dataclass elements. Unknown keys below an
index do not count. A ``None`` leaf (a null list element) counts as present
and yields the zero value of the element type.
"""

import dataclasses
import enum
import logging
import types
import typing
from typing import Any, Dict, Mapping, Set, Tuple

from .exceptions import ConversionError, SourceShapeError
from .flatten import field_key, format_value, is_struct, unflatten
from .utils import KEY_SEPARATOR, canonical_key, join_key

log = logging.getLogger(__name__)

_TRUE = {"1", "t", "true", "yes", "y", "on"}
_FALSE = {"0", "f", "false", "no", "n", "off"}


# --- Type helpers ---

def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or repr(tp)


def _is_optional(tp: Any) -> bool:
    origin = typing.get_origin(tp)
    return origin in (typing.Union, types.UnionType) and type(None) in typing.get_args(tp)


def _unwrap_optional(tp: Any) -> Any:
    """Optional[X] -> X. Unions of several real types are returned unchanged."""
    if not _is_optional(tp):
        return tp
    args = [a for a in typing.get_args(tp) if a is not type(None)]
    return args[0] if len(args) == 1 else tp


def _is_struct_type(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def _type_hints(cls: type) -> Dict[str, Any]:
    """Resolved field annotations; string annotations are evaluated."""
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError) as e:
        # e.g. a forward reference to a class local to a function
        log.debug(f"DEBUG [flatconf.unmarshal]: cannot resolve hints of {cls.__name__}: {e}")
        return {f.name: f.type for f in dataclasses.fields(cls)}


def zero_value(tp: Any) -> Any:
    """
    The empty value of a type: 0, 0.0, "", False, [], {}, None for optionals,
    and for dataclasses an instance built from field defaults (or the zero
    value of each field without one).
    """
    if _is_optional(tp):
        return None
    origin = typing.get_origin(tp) or tp
    if _is_struct_type(tp):
        return _zero_struct(tp)
    if origin is list:
        return []
    if origin is tuple:
        return ()
    if origin is dict:
        return {}
    if tp in (str, int, float, bool):
        return tp()
    return None


def _zero_struct(cls: type) -> Any:
    hints = _type_hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
            continue
        kwargs[f.name] = zero_value(hints.get(f.name, f.type))
    return cls(**kwargs)


# --- Scalar coercion ---

def _to_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lower_val = value.strip().lower()
        if lower_val in _TRUE:
            return True
        if lower_val in _FALSE:
            return False
    raise ConversionError(key, "bool", value)


def _to_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConversionError(key, "int", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError as e:
            raise ConversionError(key, "int", value) from e
    raise ConversionError(key, "int", value)


def _to_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConversionError(key, "float", value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as e:
            raise ConversionError(key, "float", value) from e
    raise ConversionError(key, "float", value)


def _to_enum(value: Any, tp: type, key: str) -> enum.Enum:
    try:
        return tp(value)
    except ValueError:
        pass
    if isinstance(value, str):
        for member in tp:
            if member.name.lower() == value.strip().lower():
                return member
    raise ConversionError(key, tp.__name__, value)


def coerce(value: Any, tp: Any, key: str = "") -> Any:
    """
    Convert a stored flat value into `tp`.

    Raises:
        ConversionError: If the value does not parse as `tp`, or `tp` is not
            a supported leaf type.
    """
    tp = _unwrap_optional(tp)
    if tp is Any or tp is object:
        return value
    if tp is bool:
        return _to_bool(value, key)
    if tp is int:
        return _to_int(value, key)
    if tp is float:
        return _to_float(value, key)
    if tp is str:
        return value if isinstance(value, str) else format_value(value)
    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        return _to_enum(value, tp, key)
    raise ConversionError(key, _type_name(tp), value)


# --- Traversal ---

class _Lookup:
    """Index over the flat keys answering "is there data for a field at key"."""

    def __init__(self, flat: Mapping[str, Any]):
        self.flat = {canonical_key(k): v for k, v in flat.items()}
        self.children: Dict[str, Set[str]] = {}
        for key in self.flat:
            parts = key.split(KEY_SEPARATOR)
            for i in range(1, len(parts)):
                parent = KEY_SEPARATOR.join(parts[:i])
                self.children.setdefault(parent, set()).add(parts[i])

    def is_null(self, key: str) -> bool:
        """True for the placeholder of a null list element."""
        return key in self.flat and self.flat[key] is None

    def present(self, tp: Any, key: str) -> bool:
        """
        True if `key` holds data a field of type `tp` would read: the leaf
        itself for scalars, one of its own (recursive) fields for dataclasses,
        a first element for lists. Stray keys below `key` do not count.
        """
        if key not in self.flat and key not in self.children:
            return False
        if self.is_null(key):
            return True
        tp = _unwrap_optional(tp)
        origin = typing.get_origin(tp) or tp
        if _is_struct_type(tp):
            hints = _type_hints(tp)
            for f in dataclasses.fields(tp):
                name = field_key(f)
                if name is not None and self.present(hints.get(f.name, f.type), join_key(key, canonical_key(name))):
                    return True
            return False
        if origin in (list, tuple):
            args = typing.get_args(tp)
            return self.present(args[0] if args else Any, join_key(key, 0))
        if origin is dict:
            args = typing.get_args(tp)
            elem = args[1] if len(args) == 2 else Any
            return any(self.present(elem, join_key(key, s)) for s in self.children.get(key, ()))
        if tp is Any or tp is object:
            return True
        return key in self.flat

    def subtree(self, key: str) -> Dict[str, Any]:
        start = key + KEY_SEPARATOR
        return {k[len(start):]: v for k, v in self.flat.items() if k.startswith(start)}


def _decode(lookup: _Lookup, tp: Any, key: str, current: Any) -> Tuple[bool, Any]:
    """Returns (found, value) for the field of type `tp` stored at `key`."""
    if not lookup.present(tp, key):
        return False, None
    if lookup.is_null(key):
        return True, zero_value(tp)
    tp = _unwrap_optional(tp)
    origin = typing.get_origin(tp) or tp

    if _is_struct_type(tp):
        target = current if isinstance(current, tp) else zero_value(tp)
        return True, _fill_struct(lookup, target, key)

    if origin in (list, tuple):
        args = typing.get_args(tp)
        elem = args[0] if args else Any
        items = []
        while lookup.present(elem, join_key(key, len(items))):
            _, value = _decode(lookup, elem, join_key(key, len(items)), None)
            items.append(value)
        log.debug(f"DEBUG [flatconf.unmarshal]: '{key}' sized to {len(items)} elements")
        return True, tuple(items) if origin is tuple else items

    if origin is dict:
        args = typing.get_args(tp)
        elem = args[1] if len(args) == 2 else Any
        result = {}
        for segment in sorted(lookup.children.get(key, ())):
            found, value = _decode(lookup, elem, join_key(key, segment), None)
            if found:
                result[segment] = value
        return True, result

    if key in lookup.flat:
        return True, coerce(lookup.flat[key], tp, key)
    return True, unflatten(lookup.subtree(key))


def _is_frozen(cls: type) -> bool:
    return cls.__dataclass_params__.frozen


def _fill_struct(lookup: _Lookup, obj: Any, prefix: str) -> Any:
    """
    Apply the data under `prefix` to `obj`. Mutable instances are updated in
    place; frozen ones are rebuilt with `dataclasses.replace`, so the caller
    must use the returned instance.
    """
    hints = _type_hints(type(obj))
    updates = {}
    for f in dataclasses.fields(obj):
        name = field_key(f)
        if name is None:
            continue
        key = canonical_key(join_key(prefix, name))
        found, value = _decode(lookup, hints.get(f.name, f.type), key, getattr(obj, f.name, None))
        if found:
            updates[f] = value

    if not updates:
        return obj
    if not _is_frozen(type(obj)):
        for f, value in updates.items():
            setattr(obj, f.name, value)
        return obj
    fixed = [f.name for f in updates if not f.init]
    if fixed:
        raise SourceShapeError(
            f"cannot populate frozen {type(obj).__name__}: fields {', '.join(fixed)} are not init arguments")
    return dataclasses.replace(obj, **{f.name: value for f, value in updates.items()})


def unmarshal(flat: Mapping[str, Any], dest: Any) -> Any:
    """
    Assign every field of `dest` whose flat key is present in `flat`.

    Fields without data keep their current value. `dest` is modified in
    place and returned. Nested frozen dataclasses are replaced by updated
    copies; `dest` itself must be mutable.

    Raises:
        SourceShapeError: If `dest` is not a mutable dataclass instance.
        ConversionError: If a present value cannot be coerced.
    """
    if not is_struct(dest):
        raise SourceShapeError(f"unmarshal destination is not a pointer or struct (got {type(dest).__name__})")
    if _is_frozen(type(dest)):
        raise SourceShapeError(f"unmarshal destination {type(dest).__name__} is a frozen dataclass")
    _fill_struct(_Lookup(flat), dest, "")
    return dest

# flatconf/loader.py
"""
flatconf.loader
---------------

Core configuration loader. Layers defaults (dataclass instances), config
files (YAML, JSON, TOML) and environment variables into one flat `Store`,
which can be queried by dotted key or unmarshalled into dataclasses.

Example:

    >>> store = load(
    ...     Defaults(AppConfig(port=8080)),
    ...     CfgFile("config.yaml"),
    ...     EnvVar("MYAPP"),
    ...     Unmarshal(cfg),
    ... )
    >>> store.get_string("db.host")

Precedence is positional: sources are applied in the order given and a later
source overwrites the keys it shares with earlier ones. Keys only one source
knows about survive from that source. `Unmarshal` targets are filled once,
after every other source has been merged.
"""

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Union

import tomli
import yaml

from .env import collect_env
from .exceptions import (
    ConfigIOError,
    ConfigParseError,
    KeyNotFound,
    MissingMandatoryConfig,
    SourceShapeError,
    UnsupportedFormatError,
)
from .flatten import FlatValue, flatten, flatten_struct, format_value, unflatten
from .provenance import ProvenanceEntry, ProvenanceStore
from .unmarshal import coerce, unmarshal
from .utils import KEY_SEPARATOR, canonical_key, expand_path, resolve_path

log = logging.getLogger(__name__)

EXT_YAML = "yaml"
EXT_JSON = "json"
EXT_TOML = "toml"

_EXTENSIONS = {
    ".yaml": EXT_YAML,
    ".yml": EXT_YAML,
    ".json": EXT_JSON,
    ".toml": EXT_TOML,
}


# --- Source declarations ---

@dataclass
class Defaults:
    """Default values, given as a dataclass instance."""
    item: Any


@dataclass
class CfgFile:
    """A config file. `format` overrides detection from the file extension."""
    path: Union[str, os.PathLike]
    format: Optional[str] = None


@dataclass
class EnvVar:
    """
    Environment variables named ``PREFIX_...`` (all variables if no prefix).
    `dotenv` may be True (search for a .env file) or a path to one.
    """
    prefix: str = ""
    dotenv: Union[bool, str, None] = None


@dataclass
class Unmarshal:
    """A dataclass instance to populate once all sources are merged."""
    item: Any


# --- Document parsing ---

def detect_format(path: Union[str, os.PathLike]) -> str:
    ext = os.path.splitext(os.fspath(path))[1].lower()
    try:
        return _EXTENSIONS[ext]
    except KeyError:
        raise UnsupportedFormatError(f"Unsupported config file type: {ext or '(none)'}", path=os.fspath(path)) from None


def read_cfg_bytes(data: bytes, fmt: str) -> Dict[str, Any]:
    """
    Decode raw file content into a nested document.

    Empty documents decode to ``{}``.

    Raises:
        UnsupportedFormatError: For an unknown `fmt`.
        ConfigParseError: If the content is malformed or its root is not a mapping.
    """
    fmt = fmt.lower().lstrip(".")
    if fmt == "yml":
        fmt = EXT_YAML
    if fmt not in (EXT_YAML, EXT_JSON, EXT_TOML):
        raise UnsupportedFormatError(f"Unsupported config format: {fmt}")
    try:
        if fmt == EXT_YAML:
            doc = yaml.safe_load(data)
        elif fmt == EXT_JSON:
            doc = json.loads(data) if data.strip() else None
        else:
            doc = tomli.loads(data.decode("utf-8"))
    except (yaml.YAMLError, tomli.TOMLDecodeError, ValueError) as e:
        raise ConfigParseError(f"unable to parse {fmt} content: {e}") from e

    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ConfigParseError(f"{fmt} document root must be a mapping, got {type(doc).__name__}")
    return doc


def read_cfg_file(path: Union[str, os.PathLike], fmt: Optional[str] = None) -> Dict[str, Any]:
    """
    Read and decode a config file. The format is taken from the extension
    unless `fmt` is given.

    Raises:
        ConfigIOError: If the file cannot be read.
        ConfigParseError: If its content cannot be decoded.
    """
    file_path = expand_path(path)
    fmt = fmt or detect_format(file_path)
    try:
        with open(file_path, mode="rb") as f:
            data = f.read()
    except OSError as e:
        raise ConfigIOError(f"Config file not readable: {file_path}: {e}", path=file_path) from e
    try:
        return read_cfg_bytes(data, fmt)
    except UnsupportedFormatError:
        raise
    except ConfigParseError as e:
        raise ConfigParseError(f"Error loading/parsing file {file_path}: {e}", path=file_path) from e


# --- Store ---

class Store(Mapping):
    """
    Flat, read-only view of merged configuration.

    Keys are stored lowercased; every lookup is case-insensitive.
    Values are the scalars the winning source provided: typed for defaults
    and files, strings for environment variables.
    """

    def __init__(self, data: Optional[Mapping[str, FlatValue]] = None,
                 provenance: Optional[ProvenanceStore] = None):
        self._data: Dict[str, FlatValue] = {}
        self._provenance = provenance
        if data:
            self._apply(data, "data")

    def _apply(self, flat: Mapping[str, FlatValue], source: str,
               origins: Optional[Mapping[str, str]] = None):
        """Write a layer; existing keys are overwritten. Only used while loading."""
        for key, value in flat.items():
            ckey = canonical_key(key)
            self._data[ckey] = value
            if self._provenance is not None:
                label = f"{source}:{origins[key]}" if origins and key in origins else source
                self._provenance.record(ckey, value, label)
        log.debug(f"DEBUG [flatconf.Store]: applied {len(flat)} keys from {source}")

    # --- Mapping protocol ---
    def __getitem__(self, key: str) -> FlatValue:
        try:
            return self._data[canonical_key(key)]
        except KeyError:
            raise KeyNotFound(key) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and canonical_key(key) in self._data

    # --- Typed lookups ---
    def get_string(self, key: str) -> str:
        """
        Value of `key` in its canonical text form.

        Raises:
            KeyNotFound: If the key is not set.
        """
        return format_value(self[key])

    def get_int(self, key: str) -> int:
        return coerce(self[key], int, canonical_key(key))

    def get_float(self, key: str) -> float:
        return coerce(self[key], float, canonical_key(key))

    def get_bool(self, key: str) -> bool:
        return coerce(self[key], bool, canonical_key(key))

    def has(self, key: str) -> bool:
        """True if `key` is a leaf or a section (prefix of some leaf)."""
        ckey = canonical_key(key)
        if ckey in self._data:
            return True
        start = ckey + KEY_SEPARATOR
        return any(k.startswith(start) for k in self._data)

    # --- Export ---
    def unmarshal(self, dest: Any) -> Any:
        """Populate the dataclass instance `dest` from this store (in place)."""
        return unmarshal(self._data, dest)

    def flat(self) -> Dict[str, FlatValue]:
        return dict(self._data)

    def as_dict(self) -> Dict[str, Any]:
        """Nested reconstruction of the store; numeric sections become lists."""
        return unflatten(self._data)

    # --- Provenance ---
    def _require_provenance(self) -> ProvenanceStore:
        if self._provenance is None:
            raise RuntimeError("Provenance tracking is disabled; load with track_provenance=True")
        return self._provenance

    def provenance(self, key: str) -> Optional[ProvenanceEntry]:
        return self._require_provenance().get(canonical_key(key))

    def provenance_history(self, key: str) -> List[ProvenanceEntry]:
        return self._require_provenance().history(canonical_key(key))

    def provenance_dump(self) -> str:
        """One line per key: ``key = value  <- source``, sorted by key."""
        entries = self._require_provenance().entries()
        return "\n".join(str(entries[k]) for k in sorted(entries))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"


# --- Loading ---

def load(*sources: Any, mandatory: Optional[List[str]] = None,
         track_provenance: bool = False) -> Store:
    """
    Merge `sources` in order into a Store.

    Args:
        *sources: `Defaults`, `CfgFile`, `EnvVar` and `Unmarshal` declarations.
        mandatory: Keys that must be present once all layers are merged.
        track_provenance: Record which source set each key.

    Returns:
        The merged Store. `Unmarshal` targets have been populated.

    Raises:
        SourceShapeError: A `Defaults` item or `Unmarshal` target is not a dataclass instance.
        ConfigIOError: A config file or secret file could not be read.
        ConfigParseError: A config file could not be decoded.
        ConversionError: An `Unmarshal` target field could not be converted.
        MissingMandatoryConfig: A mandatory key is absent.
        TypeError: An argument is not a source declaration.
    """
    store = Store(provenance=ProvenanceStore() if track_provenance else None)
    targets = []

    for src in sources:
        if isinstance(src, Defaults):
            try:
                flat = flatten_struct(src.item)
            except SourceShapeError as e:
                raise SourceShapeError(f"error loading default values: {e}") from e
            store._apply(flat, "defaults")
        elif isinstance(src, CfgFile):
            flat = flatten(read_cfg_file(src.path, src.format))
            store._apply(flat, f"file:{resolve_path(src.path)}")
        elif isinstance(src, EnvVar):
            origins: Dict[str, str] = {}
            flat = collect_env(src.prefix, dotenv=src.dotenv, sources=origins)
            store._apply(flat, "env", origins)
        elif isinstance(src, Unmarshal):
            targets.append(src.item)
        else:
            raise TypeError(f"Unsupported source declaration: {type(src).__name__}")

    if mandatory:
        _validate_mandatory(store, mandatory)

    for target in targets:
        store.unmarshal(target)
        log.debug(f"DEBUG [flatconf.load]: unmarshalled into {type(target).__name__}")

    log.debug(f"DEBUG [flatconf.load]: loaded {len(store)} keys from {len(sources)} sources")
    return store


def _validate_mandatory(store: Store, keys: List[str]):
    missing = [k for k in keys if not store.has(k)]
    if missing:
        raise MissingMandatoryConfig(missing)

# flatconf/__init__.py
"""
flatconf – layered configuration in a flat, dot-addressed key space.

Defaults (dataclass instances), config files (YAML/JSON/TOML) and environment
variables are flattened into keys such as ``db.replicas.0.host`` and merged in
the order given; the result can be queried by key or unmarshalled into
dataclasses.

    store = load(Defaults(AppConfig()), CfgFile("app.yaml"), EnvVar("APP"))
    store.get_string("db.host")
"""

from .exceptions import (
    ConfigError,
    ConfigIOError,
    ConfigParseError,
    ConversionError,
    KeyNotFound,
    MissingMandatoryConfig,
    SourceShapeError,
    UnsupportedFormatError,
)
from .loader import CfgFile, Defaults, EnvVar, Store, Unmarshal, load

__version__ = "0.1.0"

__all__ = [
    "load",
    "Store",
    "Defaults",
    "CfgFile",
    "EnvVar",
    "Unmarshal",
    "ConfigError",
    "ConfigIOError",
    "ConfigParseError",
    "ConversionError",
    "KeyNotFound",
    "MissingMandatoryConfig",
    "SourceShapeError",
    "UnsupportedFormatError",
]

# flatconf/exceptions.py
"""
flatconf.exceptions
-------------------

Exceptions raised while loading, querying and unmarshalling configuration.

Every error derives from `ConfigError`, and additionally from the builtin
exception closest in meaning so callers can keep catching `KeyError`,
`ValueError` etc. where that reads more naturally.
"""


class ConfigError(Exception):
    """Base class for all flatconf errors."""


class SourceShapeError(ConfigError, TypeError):
    """
    Raised when a `Defaults` source is not a dataclass instance.
    """


class ConfigParseError(ConfigError, ValueError):
    """
    Raised when a configuration file cannot be decoded.
    """

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class UnsupportedFormatError(ConfigParseError):
    """Raised for file formats flatconf has no parser for."""


class ConfigIOError(ConfigError, OSError):
    """
    Raised when a config file or a secret file referenced with ``@path``
    cannot be read.
    """

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path

    def __str__(self):
        return self.args[0] if self.args else ""


class KeyNotFound(ConfigError, KeyError):
    """
    Raised when looking up a key that is not present in the Store.
    """

    def __init__(self, key):
        super().__init__(key)
        self.key = key

    def __str__(self):
        # KeyError would otherwise render the repr of the key
        return f"key not found: {self.key}"


class ConversionError(ConfigError, ValueError):
    """
    Raised when a stored value cannot be coerced into a field's declared type.
    """

    def __init__(self, key, target, value):
        super().__init__(f"cannot convert value {value!r} of key '{key}' to {target}")
        self.key = key
        self.target = target
        self.value = value


class MissingMandatoryConfig(ConfigError):
    """
    Raised when one or more mandatory config keys are missing.
    """

    def __init__(self, keys):
        super().__init__(f"Missing mandatory configuration keys: {', '.join(keys)}")
        self.missing_keys = keys

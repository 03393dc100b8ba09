# flatconf/env.py
"""
flatconf.env
------------

Maps process environment variables into flat keys.

    PREFIX_NESTED_CHILD_RENAMED=x   ->  nested.child.renamed = "x"
    PREFIX_LISTSTRING_0=a           ->  liststring.0 = "a"

Values are always strings; coercion happens at lookup/unmarshal time.
A value of the form ``@/path/to/file`` is replaced by the (stripped)
contents of that file, which is how secrets mounted as files are wired in.
"""

import logging
import os
from typing import Dict, Mapping, Optional, Union

from dotenv import dotenv_values, find_dotenv

from .exceptions import ConfigIOError
from .utils import KEY_SEPARATOR, expand_path

log = logging.getLogger(__name__)

SECRET_SENTINEL = "@"


def env_key(name: str, prefix_match: str = "") -> str:
    """
    Normalise an environment variable name into a flat key.

    `prefix_match` is the full prefix including its trailing underscore
    (e.g. "MYAPP_"), or "" when no prefix is used. Numeric parts such as
    the ``0`` in ``LIST_0`` end up as list index segments.
    """
    return name[len(prefix_match):].lower().replace("_", KEY_SEPARATOR)


def resolve_secret(value: str) -> str:
    """
    Resolve the ``@path`` indirection convention.

    Raises:
        ConfigIOError: If the referenced file cannot be read.
    """
    if not value.startswith(SECRET_SENTINEL):
        return value
    path = expand_path(value[len(SECRET_SENTINEL):])
    try:
        with open(path, mode="r", encoding="utf-8") as f:
            return f.read().strip()
    except OSError as e:
        raise ConfigIOError(f"unable to read secret file {path}: {e}", path=path) from e


def _read_dotenv(dotenv: Union[bool, str, None]) -> Dict[str, str]:
    """Read a .env file without touching os.environ."""
    if not dotenv:
        return {}
    path = find_dotenv(usecwd=True) if dotenv is True else expand_path(dotenv)
    if not path or not os.path.exists(path):
        if dotenv is not True:
            raise ConfigIOError(f".env file not found: {path}", path=path)
        log.debug("DEBUG [flatconf.env]: no .env file found, skipping")
        return {}
    values = {k: v for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"DEBUG [flatconf.env]: read {len(values)} variables from {path}")
    return values


def collect_env(prefix: Optional[str] = "",
                environ: Optional[Mapping[str, str]] = None,
                dotenv: Union[bool, str, None] = None,
                sources: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Collect environment variables into a flat key -> string mapping.

    Args:
        prefix: Only variables starting with ``PREFIX_`` are used
            (case-sensitive). Empty or None selects every variable.
        environ: Variables to read; defaults to ``os.environ``.
        dotenv: True to look for a .env file from the working directory
            upwards, or a path to one. Its variables rank below `environ`.
        sources: If given, filled with flat key -> originating variable name.

    Returns:
        Flat keys mapped to string values, with ``@path`` values resolved.

    Raises:
        ConfigIOError: If a secret file or an explicit .env file cannot be read.
    """
    variables = dict(_read_dotenv(dotenv))
    variables.update(os.environ if environ is None else environ)

    prefix_match = ""
    if prefix:
        prefix = prefix.strip()
        if prefix:
            prefix_match = prefix.rstrip("_") + "_"

    log.debug(f"DEBUG [flatconf.env]: checking {len(variables)} variables with prefix '{prefix_match}'")
    env_data = {}
    for name, raw_value in variables.items():
        if not name.startswith(prefix_match):
            continue
        key = env_key(name, prefix_match)
        if not key:
            continue
        if "" in key.split(KEY_SEPARATOR):
            log.warning(f"Environment variable '{name}' maps to malformed key '{key}'; skipping.")
            continue
        if key in env_data:
            log.warning(f"Environment variable '{name}' maps to key '{key}' which was already set by '{sources.get(key) if sources else '?'}'; overwriting.")
        env_data[key] = resolve_secret(raw_value)
        if sources is not None:
            sources[key] = name
    log.debug(f"DEBUG [flatconf.env]: collected {len(env_data)} keys")
    return env_data

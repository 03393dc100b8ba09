# flatconf/cli.py

import fnmatch
import json
import logging
import re

import click

from .exceptions import ConfigError
from .loader import CfgFile, EnvVar, load


def _match(pattern: str, text: str, ignore_case: bool = False) -> bool:
    """
    Try glob first, then regex, then exact match.
      - Glob if pattern contains *, ?, [ or ]
      - Regex if pattern contains any of + ^ $ ( ) { } | \\
      - Exact otherwise
    Dots are not treated as regex syntax since every flat key contains them.
    """
    if ignore_case:
        pattern = pattern.lower()
        text = text.lower()

    if any(c in pattern for c in "*?[]"):
        return fnmatch.fnmatchcase(text, pattern)

    if any(c in pattern for c in "+^$(){}|\\"):
        return re.search(pattern, text) is not None

    return pattern == text


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-c", "--config", "file_paths", multiple=True,
              help="YAML/JSON/TOML file to load (repeatable, later files win)")
@click.option("-f", "--format", "fmt", type=click.Choice(["yaml", "json", "toml"]),
              help="Format of the config files (default: from extension)")
@click.option("-p", "--prefix", default="", help="Env-var prefix, e.g. MYAPP for MYAPP_DB_HOST")
@click.option("--env/--no-env", default=True, show_default=True,
              help="Layer environment variables on top of the files")
@click.option("--dotenv", "dotenv_path", help="Read variables from this .env file too")
@click.option("--mandatory", help="Comma-sep list of mandatory dot-keys")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, file_paths, fmt, prefix, env, dotenv_path, mandatory, verbose):
    """
    flatconf CLI: inspect layered configuration as flat dot-keys.

    Files are applied in the order given, environment variables last:
      • get       KEY
      • exists    KEY
      • search    [--key PAT] [--val PAT] [-i]
      • dump      [--nested]
      • sources
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG)

    sources = [CfgFile(p, fmt) for p in file_paths]
    if env:
        sources.append(EnvVar(prefix, dotenv=dotenv_path))
    mandatory_list = [k.strip() for k in mandatory.split(",")] if mandatory else None

    try:
        store = load(*sources, mandatory=mandatory_list, track_provenance=True)
    except ConfigError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        ctx.exit(1)

    ctx.obj = {"store": store}


@cli.command()
@click.argument("key")
@click.pass_context
def get(ctx, key):
    """Print the value of KEY (dot-notation)."""
    store = ctx.obj["store"]
    if key not in store:
        click.secho(f"Key not found: {key}", fg="yellow", err=True)
        ctx.exit(1)
    click.echo(store.get_string(key))


@cli.command()
@click.argument("key")
@click.pass_context
def exists(ctx, key):
    """Exit 0 if KEY (a value or a section) exists, 1 otherwise."""
    if ctx.obj["store"].has(key):
        click.echo("true")
        ctx.exit(0)
    click.echo("false")
    ctx.exit(1)


@cli.command()
@click.option("--key", "key_pat", help="Pattern for keys (regex/glob/plain)")
@click.option("--val", "val_pat", help="Pattern for values (regex/glob/plain)")
@click.option("-i", "--ignore-case", is_flag=True,
              help="Make key/value matching case-insensitive")
@click.pass_context
def search(ctx, key_pat, val_pat, ignore_case):
    """
    Search for keys/values matching patterns.
    At least one of --key or --val must be provided.
    """
    if not (key_pat or val_pat):
        click.secho("Error: supply --key or --val", fg="red", err=True)
        ctx.exit(1)

    store = ctx.obj["store"]
    found = {}
    for k in sorted(store):
        v = store.get_string(k)
        ks = _match(key_pat, k, ignore_case) if key_pat else True
        vs = _match(val_pat, v, ignore_case) if val_pat else True
        if ks and vs:
            found[k] = store[k]

    if not found:
        click.echo("No matches")
        ctx.exit(1)

    click.echo(json.dumps(found, indent=2))


@cli.command()
@click.option("--nested", is_flag=True, help="Rebuild the nested structure instead of flat keys")
@click.pass_context
def dump(ctx, nested):
    """Pretty-print the entire config as JSON."""
    store = ctx.obj["store"]
    data = store.as_dict() if nested else dict(sorted(store.flat().items()))
    click.echo(json.dumps(data, indent=2))


@cli.command()
@click.pass_context
def sources(ctx):
    """Show which source set each key."""
    click.echo(ctx.obj["store"].provenance_dump())

"""Load client config from YAML and the process environment.

Precedence, lowest first: the YAML file, ``${VAR}`` tokens inside it, then
the ``REDWIRE_HOST`` / ``REDWIRE_PORT`` / ``REDWIRE_DB`` /
``REDWIRE_PASSWORD`` overrides, which apply to whichever file was loaded.
"""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path
from typing import Any, Mapping

import yaml

from redwire.config.schema import AppConfig, parse_config


DEFAULT_CONFIG_PATH = Path(__file__).with_name("defaults.yml")
ENV_PREFIX = "REDWIRE_"
ENV_SERVER_FIELDS = ("host", "port", "db", "password")
_ENV_TOKEN_RE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>.*?))?\}")


def load_config(path: Path | None = None, *, environ: Mapping[str, str] | None = None) -> AppConfig:
    source = path or DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ
    if not source.exists():
        raise FileNotFoundError(f"config file does not exist: {source}")
    with source.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    config = parse_config(_expand(raw or {}, env))

    overrides = server_overrides_from_env(env)
    if overrides:
        config.server = config.server.merged(overrides)
    return config


def server_overrides_from_env(environ: Mapping[str, str]) -> dict[str, str]:
    """Collect ``REDWIRE_<FIELD>`` server settings that are present."""
    return {
        field: environ[f"{ENV_PREFIX}{field.upper()}"]
        for field in ENV_SERVER_FIELDS
        if f"{ENV_PREFIX}{field.upper()}" in environ
    }


def initialize_config(path: Path, force: bool = False) -> Path:
    if path.exists() and not force:
        raise FileExistsError(f"config already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(DEFAULT_CONFIG_PATH, path)
    return path


def _expand(value: Any, environ: Mapping[str, str]) -> Any:
    if isinstance(value, dict):
        return {key: _expand(item, environ) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand(item, environ) for item in value]
    if isinstance(value, str) and "${" in value:
        return _ENV_TOKEN_RE.sub(lambda match: _resolve_token(match, environ), value)
    return value


def _resolve_token(match: re.Match[str], environ: Mapping[str, str]) -> str:
    name = match.group("name")
    if name in environ:
        return environ[name]
    default = match.group("default")
    if default is None:
        raise ValueError(f"config references unset environment variable '{name}' in '{match.group(0)}'")
    return default

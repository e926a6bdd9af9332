"""
Startup configuration.

Sources, lowest to highest precedence:
  1. optional TOML file ([yamo] table)
  2. .env file (python-dotenv, never overrides the real environment)
  3. process environment
  4. explicit overrides (CLI options)

Ledger endpoint, ledger address and signing credential are required;
missing or malformed values are fatal at startup.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError, InvalidFormat
from .secrets import CompositeSecretsProvider, EnvSecretsProvider, resolve_secret
from .validation import validate_address

DEFAULT_CONTENT_DIR = Path(".yamo") / "content"
DEFAULT_TIMEOUT_S = 30.0

# setting name -> environment variables, first match wins
ENV_VARS: dict[str, tuple[str, ...]] = {
    "ledger_endpoint": ("YAMO_LEDGER_ENDPOINT", "RPC_URL"),
    "ledger_address": ("YAMO_LEDGER_ADDRESS", "CONTRACT_ADDRESS"),
    "signing_key": ("YAMO_SIGNING_KEY", "PRIVATE_KEY"),
    "content_dir": ("YAMO_CONTENT_DIR",),
    "allowed_root": ("YAMO_ALLOWED_ROOT",),
    "timeout_s": ("YAMO_TIMEOUT",),
}

REQUIRED = ("ledger_endpoint", "ledger_address", "signing_key")


@dataclass(frozen=True)
class Settings:
    ledger_endpoint: str
    ledger_address: str
    signing_key: str = field(repr=False)
    content_dir: Path = DEFAULT_CONTENT_DIR
    allowed_root: Path = field(default_factory=Path.cwd)
    timeout_s: float = DEFAULT_TIMEOUT_S


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError([f"config file not found: {path}"]) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError([f"config file is not valid TOML ({path}): {e}"]) from e
    table = data.get("yamo", {})
    if not isinstance(table, dict):
        raise ConfigError([f"[yamo] in {path} must be a table"])
    return {k: v for k, v in table.items() if k in ENV_VARS}


def load_settings(
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    dotenv_path: Path | None = None,
) -> Settings:
    """
    Assemble Settings from every source.

    Args:
        config_path: Optional TOML file
        overrides: Highest-precedence values; None entries are ignored
        environ: Environment mapping (defaults to os.environ after loading .env)
        dotenv_path: Explicit .env file (defaults to searching from the working directory)

    Raises:
        ConfigError: listing every missing or malformed value
    """
    if environ is None:
        load_dotenv(dotenv_path or find_dotenv(usecwd=True), override=False)
        environ = os.environ

    values: dict[str, Any] = _read_toml(config_path) if config_path else {}
    for name, env_names in ENV_VARS.items():
        for env_name in env_names:
            if environ.get(env_name):
                values[name] = environ[env_name]
                break
    for name, value in (overrides or {}).items():
        if value is not None:
            values[name] = value

    problems: list[str] = []
    for name in REQUIRED:
        if not values.get(name):
            problems.append(f"missing {name} (set {' or '.join(ENV_VARS[name])})")

    if values.get("signing_key"):
        provider = CompositeSecretsProvider([EnvSecretsProvider(environ)])
        ref = str(values["signing_key"])
        resolved = resolve_secret(ref, provider)
        if resolved is None:
            problems.append(f"signing_key reference could not be resolved: {ref}")
        values["signing_key"] = resolved

    if values.get("ledger_address"):
        try:
            validate_address(values["ledger_address"], "ledger_address")
        except InvalidFormat as e:
            problems.append(str(e))

    timeout_s = DEFAULT_TIMEOUT_S
    if values.get("timeout_s") is not None:
        try:
            timeout_s = float(values["timeout_s"])
            if timeout_s <= 0:
                raise ValueError(timeout_s)
        except (TypeError, ValueError):
            problems.append(f"timeout_s must be a positive number (got {values['timeout_s']!r})")

    if problems:
        raise ConfigError(problems)

    return Settings(
        ledger_endpoint=str(values["ledger_endpoint"]),
        ledger_address=str(values["ledger_address"]),
        signing_key=str(values["signing_key"]),
        content_dir=Path(values.get("content_dir") or DEFAULT_CONTENT_DIR).expanduser(),
        allowed_root=Path(values.get("allowed_root") or Path.cwd()).expanduser(),
        timeout_s=timeout_s,
    )

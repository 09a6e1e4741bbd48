"""TLK configuration management.

Handles:
- .env file loading with precedence: CLI > .env > env vars
- Trace time unit, log level, and output formatting settings
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tlk.trace.model import TimeUnit

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Config:
    """TLK runtime configuration."""

    time_unit: TimeUnit = TimeUnit.MILLISECONDS
    log_level: str = "WARNING"
    json_indent: int = 2
    validate_schema: bool = True
    env_file_path: Path | None = None


def parse_env_file(env_file: Path) -> dict[str, str]:
    """Parse a .env file into a dictionary.

    Supports:
    - KEY=value
    - KEY="quoted value"
    - KEY='single quoted'
    - export KEY=value
    - # comments
    - Empty lines
    """
    result: dict[str, str] = {}

    if not env_file.exists():
        return result

    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()

        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[7:]

        # Skip lines without =
        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()

        # Remove quotes
        if (value.startswith('"') and value.endswith('"')) or (
            value.startswith("'") and value.endswith("'")
        ):
            value = value[1:-1]

        result[key] = value

    return result


def _find_env_file(start: Path | None = None) -> Path | None:
    """Find .env file by walking up directory tree.

    Stops at git root, home directory, or filesystem root.
    Returns None if not found.
    """
    current = (start or Path.cwd()).resolve()

    try:
        home = Path.home()
    except RuntimeError:
        home = None  # Can't determine home, just walk to root

    for _ in range(20):  # Max depth
        env_file = current / ".env"
        if env_file.exists():
            return env_file

        if home and current == home:
            break
        if current == current.parent:
            break

        # Stop at git root (but check .env first)
        if (current / ".git").exists():
            break

        current = current.parent

    return None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def load_config(
    env_file: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> Config:
    """Load configuration with precedence: CLI > .env > env vars.

    Args:
        env_file: Path to .env file to load (auto-discovered when omitted)
        cli_overrides: Values given on the command line, keyed by Config field

    Returns:
        Loaded Config instance

    Raises:
        ValueError: A setting has a value that cannot be used
    """
    cli_overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    # Step 1: Load environment variables as base
    env_vars = dict(os.environ)

    # Step 2: Load .env file and merge (overrides env vars)
    env_file_path = Path(env_file) if env_file else _find_env_file()
    if env_file_path and env_file_path.exists():
        env_vars.update(parse_env_file(env_file_path))
    else:
        env_file_path = None

    # Step 3: Parse values
    try:
        time_unit = TimeUnit(cli_overrides.get("time_unit", env_vars.get("TLK_TIME_UNIT", "ms")))
    except ValueError as e:
        raise ValueError(
            f"TLK_TIME_UNIT must be one of {', '.join(u.value for u in TimeUnit)}"
        ) from e

    try:
        json_indent = int(cli_overrides.get("json_indent", env_vars.get("TLK_JSON_INDENT", "2")))
    except ValueError as e:
        raise ValueError("TLK_JSON_INDENT must be an integer") from e

    log_level = str(cli_overrides.get("log_level", env_vars.get("TLK_LOG_LEVEL", "WARNING"))).upper()

    validate_schema = cli_overrides.get("validate_schema")
    if validate_schema is None:
        validate_schema = _parse_bool(env_vars.get("TLK_VALIDATE_SCHEMA", "true"))

    return Config(
        time_unit=time_unit,
        log_level=log_level,
        json_indent=json_indent,
        validate_schema=bool(validate_schema),
        env_file_path=env_file_path,
    )

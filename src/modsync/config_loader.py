"""Load RuntimeConfig from modsync.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from modsync._errors import ConfigError
from modsync.config import RuntimeConfig

_KNOWN_KEYS = frozenset({
    "control_fd", "stdio", "hostname", "port", "max_events", "quiet",
})


def load_config(root: Path, **overrides: object) -> RuntimeConfig:
    """Load RuntimeConfig from root, optionally merging modsync.yaml.

    Looks for modsync.yaml, modsync.yml, or modsync.toml in root. If found,
    loads and merges with overrides. Overrides that are ``None`` are treated
    as "not given" so argparse defaults don't mask file values.

    Raises:
        ConfigError: If the file is unreadable or has unknown keys.

    """
    file_config = _read_modsync_config(root)
    given = {k: v for k, v in overrides.items() if v is not None}
    merged = {**file_config, **given}
    try:
        return RuntimeConfig(root=root, **merged)  # type: ignore[arg-type]
    except TypeError as exc:
        msg = f"Invalid modsync configuration: {exc}"
        raise ConfigError(msg) from exc


def _read_modsync_config(root: Path) -> dict[str, object]:
    """Read modsync config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("modsync.yaml", "modsync.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "modsync.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Failed to read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping"
        raise ConfigError(msg)
    return _flatten_modsync_section(data, path)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text())
    except (OSError, tomllib.TOMLDecodeError) as exc:
        msg = f"Failed to read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_modsync_section(data, path)


def _flatten_modsync_section(data: dict[str, object], path: Path) -> dict[str, object]:
    """Extract modsync.* keys into top-level config."""
    result: dict[str, object] = {}
    section = data.get("modsync")
    if isinstance(section, dict):
        result.update(section)
    for k, v in data.items():
        if k != "modsync":
            result[k] = v
    unknown = sorted(set(result) - _KNOWN_KEYS)
    if unknown:
        msg = f"{path.name}: unknown keys {', '.join(unknown)}"
        raise ConfigError(msg)
    return result

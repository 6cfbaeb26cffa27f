"""Config loading with precedence: defaults < file < environment < CLI."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from osw.exceptions import ConfigValidationError
from osw.utils.logging import get_logger

log = get_logger(__name__, component="config.loader")

Caster = Callable[[Any], Any]


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON mapping from disk."""

    if not path.exists():
        raise ConfigValidationError(f"Config file not found: {path}")
    text = path.read_text()
    if path.suffix.lower() == ".json":
        try:
            content = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigValidationError(f"Invalid JSON in {path}: {exc}") from exc
    elif path.suffix.lower() in {".yml", ".yaml"}:
        try:
            content = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc
    else:
        raise ConfigValidationError("Config file must be JSON or YAML")
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigValidationError(f"Config root in {path} must be a mapping")
    return content


def _env_values(env_prefix: str, keys: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for key in keys:
        env_key = f"{env_prefix}{key.upper()}"
        if env_key in os.environ:
            values[key] = os.environ[env_key]
    return values


def _cast(key: str, value: Any, casters: Mapping[str, Caster]) -> Any:
    caster = casters.get(key)
    if caster is None or value is None:
        return value
    try:
        return caster(value)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(f"Invalid value for {key}: {value!r}") from exc


def load_config_with_precedence(
    *,
    config_path: Path | None,
    env_prefix: str,
    cli_values: Mapping[str, Any],
    defaults: Mapping[str, Any],
    casters: Mapping[str, Caster] | None = None,
) -> dict[str, Any]:
    """Merge config sources; later sources override earlier ones when not None."""

    casters = casters or {}
    merged: dict[str, Any] = dict(defaults)
    sources: dict[str, str] = {key: "default" for key in defaults}

    if config_path is not None:
        for key, value in _load_yaml(Path(config_path)).items():
            merged[key] = value
            sources[key] = "file"

    for key, value in _env_values(env_prefix, sorted(set(defaults) | set(cli_values))).items():
        merged[key] = value
        sources[key] = "env"

    for key, value in cli_values.items():
        if value is not None:
            merged[key] = value
            sources[key] = "cli"

    resolved = {key: _cast(key, value, casters) for key, value in merged.items()}
    log.debug("Resolved configuration", extra={"sources": sources})
    return resolved


__all__ = ["load_config_with_precedence", "_load_yaml"]

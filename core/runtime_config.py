"""Configuration loading and executor settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class ExecutorSettings(BaseModel):
    """Flags controlling one executor invocation."""

    continue_on_failure: bool = False
    max_workers: int = Field(default=1, ge=1)
    skip_core_tasks: bool = False
    default_to_workspace: bool = True
    workspace_members: list[str] = Field(default_factory=list)
    capture_output: bool = True
    run_log_path: str | None = None
    task_file: str = "Makefile.toml"
    log_level: str = "INFO"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_effective_config(root: Path) -> dict[str, Any]:
    """Load and merge runtime configuration files under ``root/config``."""
    config_dir = root / "config"
    default_cfg = load_yaml(config_dir / "default.yaml")
    local_cfg = load_yaml(config_dir / "local.yaml")
    return merge_dicts(default_cfg, local_cfg)


def build_settings(
    config: dict[str, Any],
    *overrides: dict[str, Any],
) -> ExecutorSettings:
    """Build settings from the ``executor`` section plus later overrides.

    Overrides are applied in order; ``None`` values are ignored so unset CLI
    flags do not mask file values.
    """
    values: dict[str, Any] = dict(config.get("executor", {}))
    logging_cfg = config.get("logging", {})
    if isinstance(logging_cfg, dict) and "level" in logging_cfg:
        values.setdefault("log_level", logging_cfg["level"])
    for override in overrides:
        values.update({k: v for k, v in override.items() if v is not None})
    return ExecutorSettings(**values)

"""Layered configuration for sspkit.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.sspkit/config.yaml)
3. Environment (OSCAL_CONTENT_PATH, DATA_DIR, SSPKIT_STORAGE_TIMEOUT)
4. CLI parameters (override)
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "content": {
        "path": "oscal-content",
        "catalog_key": "catalogs/nist.gov/SP800-53/catalog.json",
    },
    "data": {
        "path": "data",
        "ssp_prefix": "ssp",
    },
    "storage": {
        "timeout_seconds": 5.0,
    },
    "profiles": {
        "kind": "standard",
        "strict_match": False,
        "dirs": {
            "standard": "profiles/baselines",
            "agency-specific": "profiles/fedramp",
        },
    },
    "catalog": {
        "search_limit": 20,
        "max_search_limit": 200,
    },
    "extensions": {
        "default_framework": "nist-800-53",
    },
    "validation": {
        "fail_on": ["PLANNED"],
    },
}

CONFIG_DIR = ".sspkit"


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .sspkit/config.yaml."""
    config_path = project_path / CONFIG_DIR / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        data = yaml.safe_load(content)
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def get_env_overrides(environ: Optional[dict] = None) -> dict:
    """Deployment environment variables: content path, data path, storage timeout."""
    env = os.environ if environ is None else environ
    overrides: dict = {}
    if env.get("OSCAL_CONTENT_PATH"):
        overrides.setdefault("content", {})["path"] = env["OSCAL_CONTENT_PATH"]
    if env.get("DATA_DIR"):
        overrides.setdefault("data", {})["path"] = env["DATA_DIR"]
    if env.get("SSPKIT_STORAGE_TIMEOUT"):
        try:
            timeout = float(env["SSPKIT_STORAGE_TIMEOUT"])
        except ValueError:
            timeout = None
        if timeout and timeout > 0:
            overrides.setdefault("storage", {})["timeout_seconds"] = timeout
    return overrides


def resolve_path(project_path: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else project_path / path


def get_effective_config(
    project_path: Path,
    cli_overrides: Optional[dict] = None,
    environ: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a project root."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    project_config = load_project_config(project_path)
    if project_config:
        config = deep_merge(config, project_config)

    env_overrides = get_env_overrides(environ)
    if env_overrides:
        config = deep_merge(config, env_overrides)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    config["_project_path"] = str(project_path)
    config["_content_root"] = str(resolve_path(project_path, config["content"]["path"]))
    config["_data_root"] = str(resolve_path(project_path, config["data"]["path"]))

    return config

"""
Catalog defaults read from YAML.

``config/defaults.yaml`` ships with the repo; an optional, gitignored
``config/settings.yaml`` overrides it key by key. Runtime knobs (database,
timeouts, intervals) belong to Settings; this file only carries data:
the seeded activity types, the fallback goal/penalty pair and the coach
tip prompt.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

_defaults: Optional[Dict[str, Any]] = None

# Used when config/defaults.yaml is missing (e.g. installed without the repo)
_FALLBACK_APP_SETTINGS = {"weekly_goal_minutes": 60, "penalty_amount": 5}


def get_project_root() -> Path:
    # sportstracker/core/defaults_loader.py -> repo root
    return Path(__file__).parent.parent.parent


def _read_layer(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f)
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"{path} must contain a YAML mapping")
    return content


def _overlay(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively apply *override* on a copy of *base*; lists are replaced."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _overlay(current, value)
        else:
            merged[key] = value
    return merged


def load_defaults(reload: bool = False) -> Dict[str, Any]:
    """Return the merged defaults, reading the YAML files once."""
    global _defaults
    if _defaults is None or reload:
        config_dir = get_project_root() / "config"
        _defaults = _overlay(
            _read_layer(config_dir / "defaults.yaml"),
            _read_layer(config_dir / "settings.yaml"),
        )
        logger.debug(f"Loaded defaults from {config_dir}")
    return _defaults


def get_config_value(key_path: str, default: Any = None) -> Any:
    """Look up a dot-separated key such as ``"tips.fallback"``."""
    node: Any = load_defaults()
    for part in key_path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def get_default_app_settings() -> Dict[str, Any]:
    """Weekly goal / penalty pair used when none is stored."""
    return dict(get_config_value("app", _FALLBACK_APP_SETTINGS))


def get_default_activity_types() -> List[Dict[str, str]]:
    """Activity-type catalog seeded into an empty store."""
    return [dict(item) for item in get_config_value("activity_types", [])]


def clear_cache() -> None:
    global _defaults
    _defaults = None

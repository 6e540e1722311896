"""
Configuration loader for keyrouter.

The configuration is stored in a YAML file. This module provides a
function to load that file into a Python dictionary plus a few helpers
that read the sections the router and the CLI care about. API keys are
never stored in the YAML file; the CLI reads them from environment
variables named in the `providers` section.
"""

import os
from typing import Any, Dict, List, Optional

import yaml


def load_app_config(path: Optional[str]) -> Dict[str, Any]:
    """
    Load the application configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file, or None to use the
            built-in defaults.

    Returns:
        A dictionary representing the configuration.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the top-level configuration is not a mapping.
    """
    if path is None:
        return {}

    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found at: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError("Top-level configuration must be a mapping/dictionary.")

    return data


def provider_config(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return the `providers.<name>` section, or an empty dict."""
    section = (cfg.get("providers") or {}).get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"providers.{name} must be a mapping/dictionary.")
    return section


def routing_priority(cfg: Dict[str, Any]) -> Optional[List[str]]:
    """Return the configured provider priority list, if one is set."""
    priority = (cfg.get("routing") or {}).get("priority")
    if priority is None:
        return None
    if not isinstance(priority, list) or not all(isinstance(p, str) for p in priority):
        raise ValueError("routing.priority must be a list of provider names.")
    return priority

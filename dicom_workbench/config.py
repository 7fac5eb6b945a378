"""
config.py - Configuration loader for the DICOM Workbench.

Loads settings from config.yaml with sensible defaults so that no
path, policy switch or validation bound is hard-coded inside a module.
"""

import os
import yaml
from typing import Any

# Resolve the config file relative to the repo root, not the CWD,
# so imports work regardless of where the script is launched from.
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_CONFIG_PATH = os.path.join(_REPO_ROOT, "config.yaml")

_DEFAULTS: dict[str, Any] = {
    "paths": {
        "input_folder": "data/raw",
        "reports_folder": "reports",
    },
    "anonymization": {
        "remove_patient_id": True,
        "output_dirname": "Anonymized",
        "suffix": "_anon",
    },
    "validation": {
        "numeric_ranges": {
            "KVP": [50, 150],
            "ExposureTime": [1, 3000],
            "Rows": [1, 4096],
            "Columns": [1, 4096],
        },
    },
    "volume": {
        "extension": ".dcm",
        "check_dimensions": True,
    },
    "pipeline": {
        "max_workers": 4,
    },
    "windowing": {
        "default_preset": "soft_tissue",
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base*, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str = _CONFIG_PATH) -> dict[str, Any]:
    """
    Load the YAML configuration file and merge it with built-in defaults.

    Parameters
    ----------
    config_path : str
        Path to config.yaml. Defaults to the repo-root config.yaml.

    Returns
    -------
    dict
        Merged configuration dictionary.
    """
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            user_config = yaml.safe_load(f) or {}
    else:
        user_config = {}

    return _deep_merge(_DEFAULTS, user_config)


# Module-level singleton so callers can just do `from dicom_workbench.config import CONFIG`
CONFIG = load_config()

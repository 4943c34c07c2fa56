"""Configuration loading for the migration tool.

This module reads the tool's YAML or JSON configuration from the `.migrate`
directory.  If the file is missing or unreadable it falls back to the
defaults below.  Most settings can also be overridden on the command line.
"""
from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict

from ruamel.yaml import YAML, YAMLError

from .matching import DEFAULT_MARKER_PATTERNS, DEFAULT_TARGET_PATTERNS
from .replacements import DEFAULT_PRESET
from .rewriter import LEGACY_POST, LEGACY_PRE
from .variables import DEFAULT_LEGACY_PREFIXES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".migrate/config.yml"

DEFAULTS: Dict[str, Any] = {
    "target_patterns": list(DEFAULT_TARGET_PATTERNS),
    "marker_patterns": list(DEFAULT_MARKER_PATTERNS),
    "legacy_variable_prefixes": list(DEFAULT_LEGACY_PREFIXES),
    "legacy_stage_names": {"pre": LEGACY_PRE, "post": LEGACY_POST},
    "preset": DEFAULT_PRESET,
    "replacement_file": None,
    "mode": "stage",
    "backup_suffix": ".bak",
    "git": {
        "remote": "origin",
        "branch": None,
        "message": "Replace Polaris scan with Black Duck",
        "author_name": None,
        "author_email": None,
        "token_env": ["GIT_TOKEN", "SYSTEM_ACCESSTOKEN"],
    },
}


def _merge(default: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(default)
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load configuration from the given path or from `.migrate/config.yml`.

    Files ending in ``.json`` are parsed as JSON, anything else as YAML via
    ruamel.yaml.  Nested sections (``git``, ``legacy_stage_names``) are
    merged key by key over the defaults.  When no config file exists, a copy
    of the defaults is returned.
    """
    cfg_path = Path(path or DEFAULT_CONFIG_PATH)
    if not cfg_path.exists():
        return copy.deepcopy(DEFAULTS)
    text = cfg_path.read_text(encoding="utf-8")
    try:
        if cfg_path.suffix.lower() == ".json":
            data = json.loads(text) or {}
        else:
            data = YAML(typ="safe").load(text) or {}
    except (ValueError, YAMLError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", cfg_path, exc)
        return copy.deepcopy(DEFAULTS)
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not a mapping", cfg_path)
        return copy.deepcopy(DEFAULTS)
    return _merge(DEFAULTS, data)

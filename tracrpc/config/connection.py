"""
Trac Connection Settings.

A connection file (YAML, or JSON when named *.json) describes how to
reach one Trac project. Loading it:
- upgrades files saved with the legacy CamelCase property names,
- validates the result against trac_connection_schema.json,
- fills in defaults for the optional keys.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import yaml
from loguru import logger

SCHEMA_PATH = Path(__file__).with_name("trac_connection_schema.json")

CURRENT_VERSION = "1.0.0"
LEGACY_VERSION = "0.1.0"

# Property names used by schema 0.1.0
LEGACY_KEYS = {
    "RpcUrl": "base_url",
    "UserName": "username",
    "Password": "password",
    "SubProject": "sub_project",
    "UsesMilestoneToObtainIssues": "uses_milestones",
}

CONNECTION_DEFAULTS: Dict[str, Any] = {
    "username": "",
    "password": "",
    "sub_project": "",
    "uses_milestones": False,
    "category_filter": None,
    "timeout_sec": 30,
    "verify_ssl": True,
}


class ConfigurationError(Exception):
    """Raised when a connection file cannot be read or is invalid."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def upgrade_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Bring connection settings to CURRENT_VERSION.

    Settings without schema_version are taken as current. When a legacy
    key and its snake_case replacement are both present, the
    replacement wins.

    Args:
        settings: Settings as read from the file. Not modified.

    Returns:
        A new mapping using the current key names.

    Raises:
        ConfigurationError: If schema_version is neither current nor legacy.
    """
    upgraded = dict(settings)
    version = upgraded.setdefault("schema_version", CURRENT_VERSION)
    if version == CURRENT_VERSION:
        return upgraded
    if version != LEGACY_VERSION:
        raise ConfigurationError(
            f"Unsupported schema_version {version!r} "
            f"(expected {CURRENT_VERSION} or {LEGACY_VERSION})"
        )

    logger.info(f"Upgrading connection settings from v{LEGACY_VERSION} to v{CURRENT_VERSION}")
    for legacy, current in LEGACY_KEYS.items():
        if legacy not in upgraded:
            continue
        value = upgraded.pop(legacy)
        if current in upgraded:
            logger.warning(f"Ignoring legacy key {legacy}, {current} is already set")
        else:
            upgraded[current] = value
    upgraded["schema_version"] = CURRENT_VERSION
    return upgraded


@lru_cache(maxsize=1)
def _validator() -> jsonschema.Draft7Validator:
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    return jsonschema.Draft7Validator(schema)


def validate_settings(settings: Dict[str, Any]) -> None:
    """
    Check settings against the connection schema.

    Raises:
        ConfigurationError: Listing every violation, one per entry in errors.
    """
    problems = []
    for error in _validator().iter_errors(settings):
        where = ".".join(str(p) for p in error.absolute_path) or "(root)"
        problems.append(f"{where}: {error.message}")

    if problems:
        problems.sort()
        raise ConfigurationError(
            "Invalid connection settings:\n  " + "\n  ".join(problems),
            errors=problems,
        )


def read_settings_file(path: Path) -> Dict[str, Any]:
    """Parse a connection file into a mapping."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigurationError(f"Connection file not found: {path}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read {path}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Connection file must contain a mapping, got {type(data).__name__}: {path}"
        )
    return data


def load_connection(path: str | Path) -> Dict[str, Any]:
    """
    Load a Trac connection file.

    Args:
        path: YAML or JSON connection file.

    Returns:
        Validated settings with every key of CONNECTION_DEFAULTS present.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid.
    """
    path = Path(path)
    logger.info(f"Loading connection settings: {path}")
    settings = upgrade_settings(read_settings_file(path))
    validate_settings(settings)
    return {**CONNECTION_DEFAULTS, **settings}

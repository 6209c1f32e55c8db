# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""YAML override loading for curriculum and path templates.

The curriculum phases and the learning path templates ship as Python
defaults. Deployments may override parts of them with a YAML file; the file
is deep-merged over the defaults so only changed keys need to be listed.

Example:
    >>> from pathlib import Path
    >>> from learnsync.core.config.yaml_loader import load_overrides
    >>> phases = load_overrides(DEFAULT_PHASES, Path("config/curriculum.yaml"))
"""

import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class YAMLLoadError(Exception):
    """Raised when a YAML override file cannot be loaded or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize YAMLLoadError.

        Args:
            path: Path to the YAML file that failed to load.
            reason: Description of why the file failed to load.
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load YAML file '{path}': {reason}")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file whose root is a mapping.

    Args:
        path: Path to the YAML file to load.

    Returns:
        Parsed contents. Empty dict if the file is empty.

    Raises:
        YAMLLoadError: If the file is missing, unreadable, not valid YAML,
            or its root is not a mapping.
    """
    if not path.is_file():
        raise YAMLLoadError(path, "File does not exist")

    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise YAMLLoadError(path, f"Cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise YAMLLoadError(path, f"Invalid YAML syntax: {e}") from e

    if parsed is None:
        return {}

    if not isinstance(parsed, dict):
        raise YAMLLoadError(
            path, f"YAML root must be a mapping, got {type(parsed).__name__}"
        )

    return parsed


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Nested dictionaries are merged recursively; any other value in the
    override replaces the base value. Neither input is modified.

    Args:
        base: The base dictionary to merge into.
        override: The dictionary whose values take precedence.

    Returns:
        A new dictionary containing the merged result.
    """
    result: dict[str, Any] = dict(base)

    for key, override_value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = deep_merge(base_value, override_value)
        else:
            result[key] = override_value

    return result


def load_overrides(
    defaults: dict[str, Any],
    path: str | Path | None,
) -> dict[str, Any]:
    """Return defaults deep-merged with the YAML file at ``path``.

    Args:
        defaults: Built-in configuration.
        path: Optional override file. When None, defaults are returned as-is.

    Returns:
        Merged configuration.

    Raises:
        YAMLLoadError: If the override file is given but cannot be loaded.
    """
    if path is None:
        return defaults

    override_path = Path(path)
    merged = deep_merge(defaults, load_yaml(override_path))
    logger.info("Applied configuration overrides from %s", override_path)
    return merged

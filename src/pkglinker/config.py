"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

config.py
JSON configuration file (~/.pkglink by default) with defaults and validation.

Recognised keys:
    refsFile       path of the reference store     (default ~/.pkglink_refs)
    concurrentOps  parallel filesystem operations  (int >= 1, default 4)
    minSize        minimum package size to link    (int >= 0, default 0)
    treeDepth      directory levels to descend     (int >= 0, default 0 = unlimited)
    consoleWidth   progress line width             (int >= 30, default 70)
    linkMode       "hard" or "symbolic"            (default "hard")
"""
import json
import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pkglinker.core.models import LinkMode

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".pkglink"
DEFAULT_REFS_FILE = ".pkglink_refs"


class ConfigError(ValueError):
    """Configuration file is unreadable or holds invalid values."""

    def __init__(self, message: str, path: Optional[str] = None, invalid_json: bool = False):
        super().__init__(message)
        self.path = path
        self.invalid_json = invalid_json


def default_config_path() -> str:
    return os.path.join(os.path.expanduser("~"), DEFAULT_CONFIG_FILE)


def default_refs_path() -> str:
    return os.path.join(os.path.expanduser("~"), DEFAULT_REFS_FILE)


_KEY_MAP = {
    "refsFile": "refs_file",
    "concurrentOps": "concurrent_ops",
    "minSize": "min_size",
    "treeDepth": "tree_depth",
    "consoleWidth": "console_width",
    "linkMode": "link_mode",
}


@dataclass
class LinkConfig:
    """Validated configuration with defaults applied."""
    refs_file: str = field(default_factory=default_refs_path)
    concurrent_ops: int = 4
    min_size: int = 0
    tree_depth: int = 0
    console_width: int = 70
    link_mode: LinkMode = LinkMode.HARDLINK

    def __post_init__(self):
        errors = []
        if not isinstance(self.refs_file, str) or not self.refs_file:
            errors.append('"refsFile" must be a non-empty string')
        for name, key, minimum in (
                ("concurrent_ops", "concurrentOps", 1),
                ("min_size", "minSize", 0),
                ("tree_depth", "treeDepth", 0),
                ("console_width", "consoleWidth", 30),
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                errors.append(f'"{key}" must be an integer')
            elif value < minimum:
                errors.append(f'"{key}" must be larger than or equal to {minimum}')

        if not isinstance(self.link_mode, LinkMode):
            try:
                self.link_mode = LinkMode(self.link_mode)
            except ValueError:
                choices = ", ".join(m.value for m in LinkMode)
                errors.append(f'"linkMode" must be one of: {choices}')

        if errors:
            raise ConfigError("; ".join(errors))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkConfig":
        """Build from the camelCase JSON form. Unknown keys are rejected."""
        unknown = sorted(set(data) - set(_KEY_MAP))
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        kwargs = {_KEY_MAP[key]: value for key, value in data.items()}
        return cls(**kwargs)

    def with_overrides(self, **overrides: Any) -> "LinkConfig":
        """Return a copy where every override that is not None replaces the file value."""
        values = {
            "refs_file": self.refs_file,
            "concurrent_ops": self.concurrent_ops,
            "min_size": self.min_size,
            "tree_depth": self.tree_depth,
            "console_width": self.console_width,
            "link_mode": self.link_mode,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return LinkConfig(**values)


def load_config(path: Optional[str] = None) -> LinkConfig:
    """
    Read and validate a configuration file.
    A missing file yields the defaults; malformed JSON or invalid values raise ConfigError.
    """
    path = path or default_config_path()
    if not os.path.exists(path):
        logger.debug(f"No configuration file at {path}, using defaults")
        return LinkConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Invalid JSON configuration: {e}", path=path, invalid_json=True) from e

    if data is None:
        return LinkConfig()
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a JSON object", path=path)

    try:
        config = LinkConfig.from_dict(data)
    except ConfigError as e:
        e.path = path
        raise
    logger.debug(f"Loaded configuration from {path}")
    return config

"""
Configuration file support for restic-py.

Loads settings from ``~/.config/restic-py/config.yaml`` (or
``$XDG_CONFIG_HOME/restic-py/config.yaml``) and exposes them as typed
dataclasses that the CLI can merge with command-line flags.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from restic_py.engine.executor import (
    DEFAULT_MAX_ERROR,
    DEFAULT_MAX_OUTPUT,
    CommandRunner,
)
from restic_py.version import RESTIC_BINARY

logger = logging.getLogger("restic_py.config")


def default_config_path() -> Path:
    """Return the default configuration file path.

    Uses ``$XDG_CONFIG_HOME/restic-py/config.yaml`` when set, otherwise
    falls back to ``~/.config/restic-py/config.yaml``.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "restic-py" / "config.yaml"
    return Path.home() / ".config" / "restic-py" / "config.yaml"


@dataclass
class ForgetConfig:
    """Default retention for ``forget``.

    ``keep_last`` of 0 means "not set".
    """

    keep_last: int = 0
    prune: bool = False


@dataclass
class ResticPyConfig:
    """Top-level configuration loaded from the YAML file."""

    repo: Optional[str] = None
    binary: str = RESTIC_BINARY
    timeout: Optional[float] = None
    max_output_bytes: int = DEFAULT_MAX_OUTPUT
    max_error_bytes: int = DEFAULT_MAX_ERROR
    host: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    forget: ForgetConfig = field(default_factory=ForgetConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResticPyConfig":
        """Construct a ``ResticPyConfig`` from a parsed YAML dictionary."""
        if not isinstance(data, dict):
            return cls()

        forget_data = data.get("forget") or {}
        forget = ForgetConfig(
            keep_last=int(forget_data.get("keep_last") or 0),
            prune=bool(forget_data.get("prune", False)),
        )

        timeout = data.get("timeout")
        return cls(
            repo=data.get("repo"),
            binary=data.get("binary") or RESTIC_BINARY,
            timeout=float(timeout) if timeout is not None else None,
            max_output_bytes=int(data.get("max_output_bytes") or DEFAULT_MAX_OUTPUT),
            max_error_bytes=int(data.get("max_error_bytes") or DEFAULT_MAX_ERROR),
            host=data.get("host"),
            tags=[str(t) for t in data.get("tags") or []],
            exclude_patterns=[
                str(Path(e).expanduser()) for e in data.get("exclude_patterns") or []
            ],
            forget=forget,
        )

    @classmethod
    def from_file(cls, path: Path) -> "ResticPyConfig":
        """Read a YAML file and return a ``ResticPyConfig``.

        Returns an empty default config on any error.
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f.read())
            if data is None:
                return cls()
            return cls.from_dict(data)
        except (IOError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
            logger.error("Failed to load config from %s: %s", path, e)
            return cls()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "ResticPyConfig":
        """Main entry point: load config from *config_path* or the default location.

        Returns an empty config if the file does not exist.
        """
        path = config_path or default_config_path()
        if not path.exists():
            return cls()
        return cls.from_file(path)

    def runner(self) -> CommandRunner:
        """Build a ``CommandRunner`` using these settings."""
        return CommandRunner(
            binary=self.binary,
            max_output=self.max_output_bytes,
            max_error=self.max_error_bytes,
        )

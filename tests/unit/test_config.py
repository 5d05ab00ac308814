"""
Tests for the config module.
"""

import os
from pathlib import Path
from unittest.mock import patch

from restic_py.config import (
    ForgetConfig,
    ResticPyConfig,
    default_config_path,
)
from restic_py.engine.executor import DEFAULT_MAX_ERROR, DEFAULT_MAX_OUTPUT


def test_default_config_path() -> None:
    """default_config_path falls back to ~/.config/restic-py/config.yaml."""
    env = {"HOME": str(Path.home())}
    with patch.dict(os.environ, env, clear=True):
        result = default_config_path()
        assert result == Path.home() / ".config" / "restic-py" / "config.yaml"


def test_default_config_path_xdg() -> None:
    """default_config_path respects $XDG_CONFIG_HOME."""
    with patch.dict(os.environ, {"XDG_CONFIG_HOME": "/custom/config"}):
        result = default_config_path()
        assert result == Path("/custom/config/restic-py/config.yaml")


def test_missing_file_returns_defaults(tmp_path: Path) -> None:
    """Loading a non-existent file returns an empty config."""
    cfg = ResticPyConfig.load(tmp_path / "nonexistent.yaml")
    assert cfg.repo is None
    assert cfg.binary == "restic"
    assert cfg.timeout is None
    assert cfg.max_output_bytes == DEFAULT_MAX_OUTPUT
    assert cfg.max_error_bytes == DEFAULT_MAX_ERROR
    assert cfg.tags == []
    assert cfg.exclude_patterns == []
    assert cfg.forget == ForgetConfig()


def test_empty_file_returns_defaults(tmp_path: Path) -> None:
    """An empty YAML file returns an empty config."""
    p = tmp_path / "config.yaml"
    p.write_text("")
    cfg = ResticPyConfig.from_file(p)
    assert cfg.repo is None
    assert cfg.tags == []


def test_full_config_parsing(tmp_path: Path) -> None:
    """A fully-populated config file is parsed correctly."""
    p = tmp_path / "config.yaml"
    p.write_text("""\
repo: "sftp:user@host:/backups/restic"
binary: "/opt/restic/bin/restic"
timeout: 3600
max_output_bytes: 1048576
max_error_bytes: 4096
host: "laptop"
tags:
  - "daily"
  - "home"
exclude_patterns:
  - "*.tmp"
  - ".DS_Store"
forget:
  keep_last: 7
  prune: true
""")
    cfg = ResticPyConfig.from_file(p)
    assert cfg.repo == "sftp:user@host:/backups/restic"
    assert cfg.binary == "/opt/restic/bin/restic"
    assert cfg.timeout == 3600.0
    assert cfg.max_output_bytes == 1048576
    assert cfg.max_error_bytes == 4096
    assert cfg.host == "laptop"
    assert cfg.tags == ["daily", "home"]
    assert cfg.exclude_patterns == ["*.tmp", ".DS_Store"]
    assert cfg.forget.keep_last == 7
    assert cfg.forget.prune is True


def test_exclude_patterns_tilde_expansion(tmp_path: Path) -> None:
    """Exclude patterns starting with ~ are expanded."""
    p = tmp_path / "config.yaml"
    p.write_text("""\
exclude_patterns:
  - "~/Downloads"
""")
    cfg = ResticPyConfig.from_file(p)
    assert cfg.exclude_patterns == [str(Path.home() / "Downloads")]


def test_forget_partial(tmp_path: Path) -> None:
    """A partial forget section leaves unset fields at their defaults."""
    p = tmp_path / "config.yaml"
    p.write_text("""\
forget:
  keep_last: 3
""")
    cfg = ResticPyConfig.from_file(p)
    assert cfg.forget.keep_last == 3
    assert cfg.forget.prune is False


def test_invalid_yaml_returns_defaults(tmp_path: Path) -> None:
    """Malformed YAML returns an empty config instead of raising."""
    p = tmp_path / "config.yaml"
    p.write_text(": : : [invalid yaml")
    cfg = ResticPyConfig.from_file(p)
    assert cfg.repo is None
    assert cfg.tags == []


def test_invalid_value_returns_defaults(tmp_path: Path) -> None:
    """A value of the wrong type returns an empty config instead of raising."""
    p = tmp_path / "config.yaml"
    p.write_text('timeout: "soon"\n')
    cfg = ResticPyConfig.from_file(p)
    assert cfg.timeout is None


def test_from_dict_non_dict() -> None:
    """from_dict with a non-dict value returns defaults."""
    cfg = ResticPyConfig.from_dict("not a dict")  # type: ignore[arg-type]
    assert cfg.repo is None


def test_load_uses_default_path(tmp_path: Path) -> None:
    """load() without arguments uses default_config_path()."""
    with patch(
        "restic_py.config.default_config_path", return_value=tmp_path / "nope.yaml"
    ):
        cfg = ResticPyConfig.load()
    assert cfg.repo is None


def test_runner_uses_settings() -> None:
    """runner() builds a CommandRunner from the configured binary and limits."""
    cfg = ResticPyConfig(binary="/opt/restic", max_output_bytes=10, max_error_bytes=5)
    runner = cfg.runner()
    assert runner.binary == "/opt/restic"
    assert runner.max_output == 10
    assert runner.max_error == 5

"""
Tests for the CLI module.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from restic_py.cli import app
from restic_py.engine import BackupSummary, RestoreSummary, Snapshot
from restic_py.errors import InvalidPasswordError, RepositoryExistsError
from restic_py.options import BackupOptions, FilterOptions, ForgetOptions

CREDENTIALS = {
    "RESTIC_REPOSITORY": "/tmp/test-repo",
    "RESTIC_PASSWORD": "test-password",
}


@pytest.fixture
def runner() -> CliRunner:
    """Fixture to create a CLI runner."""
    return CliRunner()


@pytest.fixture
def mock_keyring() -> Generator[MagicMock, None, None]:
    """Fixture to mock the system keyring, empty by default."""
    with patch("restic_py.cli.keyring") as mock_kr:
        mock_kr.get_password.return_value = None
        yield mock_kr


@pytest.fixture
def mock_repository() -> Generator[MagicMock, None, None]:
    """Fixture to mock Repository; open() and init() return the same mock."""
    with patch("restic_py.cli.Repository") as mock_repo_class:
        mock_repo = MagicMock()
        mock_repo.location = "/tmp/test-repo"
        mock_repo_class.open.return_value = mock_repo
        mock_repo_class.init.return_value = mock_repo
        mock_repo.cls = mock_repo_class
        yield mock_repo


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """An empty config file so the user's own config is never read."""
    p = tmp_path / "config.yaml"
    p.write_text("")
    return p


@pytest.fixture
def credentials() -> Generator[None, None, None]:
    with patch.dict(os.environ, CREDENTIALS):
        yield


@pytest.fixture
def no_credentials() -> Generator[None, None, None]:
    with patch.dict(os.environ):
        for key in CREDENTIALS:
            os.environ.pop(key, None)
        yield


def invoke(runner: CliRunner, config_file: Path, *args: str):
    return runner.invoke(app, ["--config", str(config_file), *args])


def test_version(runner: CliRunner) -> None:
    """Test the version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "restic-py version" in result.stdout


def test_init_saves_credentials(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    no_credentials: None,
) -> None:
    result = invoke(
        runner, config_file, "init", "--repo", "/tmp/new-repo", "--password", "pw"
    )

    assert result.exit_code == 0
    assert "Successfully initialized" in result.stdout
    args, _ = mock_repository.cls.init.call_args
    assert args == ("/tmp/new-repo", "pw")
    mock_keyring.set_password.assert_any_call(
        "RESTIC_REPOSITORY", "restic-py", "/tmp/new-repo"
    )
    mock_keyring.set_password.assert_any_call("RESTIC_PASSWORD", "restic-py", "pw")


def test_init_no_save(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    result = invoke(runner, config_file, "init", "--no-save")

    assert result.exit_code == 0
    mock_keyring.set_password.assert_not_called()


def test_init_existing_repository(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    mock_repository.cls.init.side_effect = RepositoryExistsError()

    result = invoke(runner, config_file, "init")

    assert result.exit_code == 1
    mock_keyring.set_password.assert_not_called()


def test_missing_credentials(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    no_credentials: None,
) -> None:
    result = invoke(runner, config_file, "validate")

    assert result.exit_code == 1
    mock_repository.cls.open.assert_not_called()


def test_credentials_from_keyring(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    no_credentials: None,
) -> None:
    stored = {"RESTIC_REPOSITORY": "/kr/repo", "RESTIC_PASSWORD": "kr-pw"}
    mock_keyring.get_password.side_effect = lambda service, account: stored[service]

    result = invoke(runner, config_file, "validate")

    assert result.exit_code == 0
    args, _ = mock_repository.cls.open.call_args
    assert args == ("/kr/repo", "kr-pw")


def test_repo_from_config_file(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    tmp_path: Path,
    no_credentials: None,
) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text('repo: "/cfg/repo"\n')

    result = invoke(runner, config_file, "validate", "--password", "pw")

    assert result.exit_code == 0
    args, _ = mock_repository.cls.open.call_args
    assert args == ("/cfg/repo", "pw")


def test_validate_wrong_password(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    mock_repository.validate.side_effect = InvalidPasswordError()

    result = invoke(runner, config_file, "validate")

    assert result.exit_code == 1


def test_backup_command(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
    tmp_path: Path,
) -> None:
    mock_repository.backup.return_value = BackupSummary(
        snapshot_id="abc123", files_new=3
    )

    result = invoke(
        runner, config_file, "backup", str(tmp_path), "--tag", "docs", "--host", "h1"
    )

    assert result.exit_code == 0
    assert "abc123" in result.stdout
    args, kwargs = mock_repository.backup.call_args
    assert args[0] == tmp_path
    assert BackupOptions.build(*args[1:]).args() == [
        "--host", "h1", "--tag", "docs",
    ]
    assert kwargs["ctx"] is not None


def test_backup_uses_config_defaults(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    tmp_path: Path,
    credentials: None,
) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""\
host: "cfg-host"
tags: ["nightly"]
exclude_patterns: ["*.tmp"]
""")
    mock_repository.backup.return_value = BackupSummary(snapshot_id="abc123")

    result = invoke(runner, config_file, "backup", str(tmp_path))

    assert result.exit_code == 0
    args, _ = mock_repository.backup.call_args
    assert BackupOptions.build(*args[1:]).args() == [
        "--host", "cfg-host", "--tag", "nightly", "--exclude", "*.tmp",
    ]


def test_snapshots_table(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    mock_repository.snapshots.return_value = [
        Snapshot(
            id=None,
            short_id="01234567",
            time=datetime(2024, 1, 1, 12, tzinfo=timezone.utc),
            paths=["/data"],
            hostname="h1",
            tags=["daily"],
        )
    ]

    result = invoke(runner, config_file, "snapshots", "--tag", "daily", "--latest", "1")

    assert result.exit_code == 0
    assert "01234567" in result.stdout
    args, _ = mock_repository.snapshots.call_args
    assert FilterOptions.build(*args).args() == ["--tag", "daily", "--latest", "1"]


def test_snapshots_json(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    mock_repository.snapshots.return_value = [
        Snapshot(
            id=None,
            short_id="01234567",
            time=datetime(2024, 1, 1, 12, tzinfo=timezone.utc),
            paths=["/data"],
        )
    ]

    result = invoke(runner, config_file, "snapshots", "--json-output")

    assert result.exit_code == 0
    assert '"short_id": "01234567"' in result.stdout


def test_restore_command(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
    tmp_path: Path,
) -> None:
    mock_repository.restore.return_value = RestoreSummary(files_restored=2)
    target = tmp_path / "out"

    result = invoke(runner, config_file, "restore", "--target", str(target))

    assert result.exit_code == 0
    args, _ = mock_repository.restore.call_args
    assert args[0] == "latest"
    assert args[1] == target


def test_restore_requires_target(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    result = invoke(runner, config_file, "restore", "latest")

    assert result.exit_code == 2
    mock_repository.restore.assert_not_called()


def test_forget_command(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    mock_repository.forget.return_value = []

    result = invoke(runner, config_file, "forget", "--keep-last", "2", "--prune")

    assert result.exit_code == 0
    args, _ = mock_repository.forget.call_args
    assert ForgetOptions.build(*args).args() == ["--keep-last", "2", "--prune"]


def test_forget_by_id(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    mock_repository.forget.return_value = []

    result = invoke(runner, config_file, "forget", "01234567")

    assert result.exit_code == 0
    args, _ = mock_repository.forget.call_args
    assert ForgetOptions.build(*args).args() == ["01234567"]


def test_unlock_command(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
) -> None:
    result = invoke(runner, config_file, "unlock")

    assert result.exit_code == 0
    mock_repository.unlock.assert_called_once()


@pytest.mark.parametrize("path", ["", "   "])
def test_backup_rejects_blank_path(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
    path: str,
) -> None:
    result = invoke(runner, config_file, "backup", path)

    assert result.exit_code == 1
    mock_repository.backup.assert_not_called()


@pytest.mark.parametrize("target", ["", "   "])
def test_restore_rejects_blank_target(
    runner: CliRunner,
    mock_repository: MagicMock,
    mock_keyring: MagicMock,
    config_file: Path,
    credentials: None,
    target: str,
) -> None:
    result = invoke(runner, config_file, "restore", "latest", "--target", target)

    assert result.exit_code == 1
    mock_repository.restore.assert_not_called()

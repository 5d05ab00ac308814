"""
Command-line interface for restic-py.

This module provides the ``restic-py`` entry point, a thin typer front end
over ``restic_py.Repository``.
"""

import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import keyring
import orjson
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from restic_py import __version__
from restic_py.config import ResticPyConfig
from restic_py.context import Context
from restic_py.engine.restic import Repository
from restic_py.errors import ResticError
from restic_py.options import (
    filter_by_host,
    filter_by_path,
    filter_by_tag,
    filter_latest,
    forget_by_host,
    forget_by_path,
    forget_by_tag,
    forget_keep_last,
    forget_snapshot,
    forget_with_prune,
    restore_by_host,
    restore_by_path,
    restore_by_tag,
    restore_exclude,
    restore_include,
    with_exclude,
    with_host,
    with_include,
    with_tags,
)

# Set up the console and logger
console = Console()
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=console, rich_tracebacks=True)],
)
logger = logging.getLogger("restic_py")

KEYRING_ACCOUNT = "restic-py"


@dataclasses.dataclass
class CliState:
    """Settings shared by all commands, filled in by the callback."""

    config: ResticPyConfig = dataclasses.field(default_factory=ResticPyConfig)
    timeout: Optional[float] = None


state = CliState()

app = typer.Typer(
    help="Typed front end for the restic backup tool.",
    add_completion=False,
)

RepoOption = typer.Option(
    None,
    "--repo",
    "-r",
    help="Repository location. Uses RESTIC_REPOSITORY env var if not specified.",
)
PasswordOption = typer.Option(
    None,
    "--password",
    help="Repository password. Uses RESTIC_PASSWORD env var if not specified.",
)


def get_repo_credentials(
    repo: Optional[str], password: Optional[str]
) -> Tuple[Optional[str], Optional[str]]:
    """
    Get repository credentials from args, env vars, config or keyring.

    The order of precedence is:
    1. Command-line arguments
    2. Environment variables
    3. Config file (repository only)
    4. Keyring

    Returns:
        Tuple of (repo_location, password)
    """
    config = state.config

    repo_location = repo or os.environ.get("RESTIC_REPOSITORY") or config.repo
    pwd = password or os.environ.get("RESTIC_PASSWORD")

    if not repo_location:
        repo_location = keyring.get_password("RESTIC_REPOSITORY", KEYRING_ACCOUNT)
        if repo_location:
            logger.debug("Loaded repository location from keyring.")

    if not pwd:
        pwd = keyring.get_password("RESTIC_PASSWORD", KEYRING_ACCOUNT)
        if pwd:
            logger.debug("Loaded password from keyring.")

    return repo_location, pwd


def log_error(message: str) -> None:
    """Log an error message to both logger and console."""
    logger.error(message)
    console.print(f"[red]{message}[/red]")


def open_repository(repo: Optional[str], password: Optional[str]) -> Repository:
    """Resolve credentials and open the repository, exiting if any is missing."""
    repo_location, pwd = get_repo_credentials(repo, password)

    if not repo_location:
        log_error(
            "Repository location not specified. "
            "Use --repo, set RESTIC_REPOSITORY env var, or run init first."
        )
        raise typer.Exit(1)

    if not pwd:
        log_error(
            "Password not specified. "
            "Use --password, set RESTIC_PASSWORD env var, or run init first."
        )
        raise typer.Exit(1)

    config = state.config
    return Repository.open(repo_location, pwd, runner=config.runner())


def command_context() -> Context:
    """Build the context for one command from ``--timeout``."""
    return Context(timeout=state.timeout)


def print_json(value: Any) -> None:
    """Print a result object as JSON."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    elif isinstance(value, list):
        value = [dataclasses.asdict(v) for v in value]
    typer.echo(orjson.dumps(value, default=str, option=orjson.OPT_INDENT_2).decode())


@app.callback()
def callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output."
    ),
    json: bool = typer.Option(False, "--json", help="Output logs in JSON format."),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to the configuration file."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Abort restic after this many seconds."
    ),
) -> None:
    """
    restic-py: typed restic repository operations.
    """
    config = ResticPyConfig.load(config_path)
    state.config = config
    state.timeout = timeout if timeout is not None else config.timeout

    # Configure logging level based on verbosity
    if verbose:
        logger.setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")

    # Configure JSON logging if requested
    if json:
        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)
        logging.basicConfig(
            level=logging.INFO if not verbose else logging.DEBUG,
            format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"message": "%(message)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
        )
        logger.debug("JSON logging enabled")


@app.command()
def init(
    repo: Optional[str] = RepoOption,
    password: Optional[str] = PasswordOption,
    save: bool = typer.Option(
        True, "--save/--no-save", help="Store the credentials in the keyring."
    ),
) -> None:
    """
    Initialize a new repository.
    """
    repo_location, pwd = get_repo_credentials(repo, password)
    if not repo_location or not pwd:
        log_error("Both a repository location and a password are required for init.")
        raise typer.Exit(1)

    config = state.config
    try:
        Repository.init(
            repo_location, pwd, ctx=command_context(), runner=config.runner()
        )
    except ResticError as e:
        log_error(f"Failed to initialize repository at {repo_location}: {e}")
        raise typer.Exit(1)

    typer.echo(f"Successfully initialized repository at {repo_location}")

    if save:
        logger.info("Saving credentials to system keychain...")
        keyring.set_password("RESTIC_REPOSITORY", KEYRING_ACCOUNT, repo_location)
        keyring.set_password("RESTIC_PASSWORD", KEYRING_ACCOUNT, pwd)
        logger.info("Credentials saved successfully.")


@app.command()
def validate(
    repo: Optional[str] = RepoOption,
    password: Optional[str] = PasswordOption,
) -> None:
    """
    Check that the repository is reachable and the password is correct.
    """
    repository = open_repository(repo, password)
    try:
        repository.validate(ctx=command_context())
    except ResticError as e:
        log_error(f"Repository {repository.location} is not accessible: {e}")
        raise typer.Exit(1)
    console.print(f"Repository {repository.location} is accessible")


@app.command()
def backup(
    path: str = typer.Argument(..., help="Directory to back up."),
    repo: Optional[str] = RepoOption,
    password: Optional[str] = PasswordOption,
    host: Optional[str] = typer.Option(None, "--host", help="Hostname to record."),
    tags: Optional[List[str]] = typer.Option(
        None, "--tag", "-t", help="Tags to apply to the snapshot."
    ),
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-e", help="Patterns to exclude."
    ),
    include: Optional[List[str]] = typer.Option(
        None, "--include", "-i", help="Patterns to include."
    ),
) -> None:
    """
    Back up a directory.
    """
    if not path.strip():
        log_error("Backup path is empty.")
        raise typer.Exit(1)

    config = state.config
    repository = open_repository(repo, password)

    options = [
        with_tags(*(tags or config.tags)),
        with_exclude(*(config.exclude_patterns + (exclude or []))),
        with_include(*(include or [])),
    ]
    if host or config.host:
        options.append(with_host(host or config.host or ""))

    try:
        summary = repository.backup(
            Path(path).expanduser(), *options, ctx=command_context()
        )
    except ResticError as e:
        log_error(f"Backup of {path} failed: {e}")
        raise typer.Exit(1)

    print_json(summary)


@app.command(name="snapshots")
def list_snapshots(
    repo: Optional[str] = RepoOption,
    password: Optional[str] = PasswordOption,
    host: Optional[List[str]] = typer.Option(None, "--host", help="Filter by host."),
    path: Optional[List[str]] = typer.Option(None, "--path", help="Filter by path."),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Filter by tag."),
    latest: int = typer.Option(0, "--latest", help="Only the latest N snapshots."),
    json_output: bool = typer.Option(
        False, "--json-output", help="Output snapshots in JSON format."
    ),
) -> None:
    """
    List available snapshots.
    """
    repository = open_repository(repo, password)
    try:
        snapshots = repository.snapshots(
            filter_by_host(*(host or [])),
            filter_by_path(*(path or [])),
            filter_by_tag(*(tag or [])),
            filter_latest(latest),
            ctx=command_context(),
        )
    except ResticError as e:
        log_error(f"Failed to list snapshots: {e}")
        raise typer.Exit(1)

    if not snapshots:
        logger.info("No snapshots found")
        return

    if json_output:
        print_json(snapshots)
        return

    table = Table(title="Available Snapshots")
    table.add_column("ID")
    table.add_column("Time")
    table.add_column("Hostname")
    table.add_column("Paths")
    table.add_column("Tags")

    for snap in snapshots:
        table.add_row(
            snap.short_id,
            str(snap.time),
            snap.hostname,
            "\n".join(snap.paths),
            ", ".join(snap.tags),
        )
    console.print(table)


@app.command()
def restore(
    snapshot: str = typer.Argument(
        "latest", help="Snapshot to restore: latest, a short or a full ID."
    ),
    target: str = typer.Option(..., "--target", help="Directory to restore into."),
    repo: Optional[str] = RepoOption,
    password: Optional[str] = PasswordOption,
    host: Optional[List[str]] = typer.Option(None, "--host", help="Filter by host."),
    path: Optional[List[str]] = typer.Option(None, "--path", help="Filter by path."),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Filter by tag."),
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-e", help="Patterns to exclude."
    ),
    include: Optional[List[str]] = typer.Option(
        None, "--include", "-i", help="Patterns to include."
    ),
) -> None:
    """
    Restore a snapshot into a directory.
    """
    if not target.strip():
        log_error("Restore target is empty.")
        raise typer.Exit(1)

    repository = open_repository(repo, password)
    try:
        summary = repository.restore(
            snapshot,
            Path(target).expanduser(),
            restore_by_host(*(host or [])),
            restore_by_path(*(path or [])),
            restore_by_tag(*(tag or [])),
            restore_exclude(*(exclude or [])),
            restore_include(*(include or [])),
            ctx=command_context(),
        )
    except ResticError as e:
        log_error(f"Failed to restore snapshot {snapshot}: {e}")
        raise typer.Exit(1)

    print_json(summary)


@app.command()
def forget(
    snapshot: Optional[str] = typer.Argument(None, help="Snapshot ID to forget."),
    repo: Optional[str] = RepoOption,
    password: Optional[str] = PasswordOption,
    keep_last: Optional[int] = typer.Option(
        None, "--keep-last", help="Keep the last N snapshots."
    ),
    prune: Optional[bool] = typer.Option(
        None, "--prune/--no-prune", help="Prune unreferenced data afterwards."
    ),
    host: Optional[List[str]] = typer.Option(None, "--host", help="Filter by host."),
    path: Optional[List[str]] = typer.Option(None, "--path", help="Filter by path."),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Filter by tag."),
) -> None:
    """
    Forget snapshots according to a retention rule or by ID.
    """
    config = state.config
    repository = open_repository(repo, password)

    options = [
        forget_by_host(*(host or [])),
        forget_by_path(*(path or [])),
        forget_by_tag(*(tag or [])),
        forget_keep_last(
            keep_last if keep_last is not None else config.forget.keep_last
        ),
    ]
    if snapshot:
        options.append(forget_snapshot(snapshot))
    if prune if prune is not None else config.forget.prune:
        options.append(forget_with_prune())

    try:
        groups = repository.forget(*options, ctx=command_context())
    except ResticError as e:
        log_error(f"Failed to forget snapshots: {e}")
        raise typer.Exit(1)

    print_json(groups)


@app.command()
def unlock(
    repo: Optional[str] = RepoOption,
    password: Optional[str] = PasswordOption,
) -> None:
    """
    Remove all locks from the repository.
    """
    repository = open_repository(repo, password)
    try:
        repository.unlock(ctx=command_context())
    except ResticError as e:
        log_error(f"Failed to unlock repository: {e}")
        raise typer.Exit(1)
    console.print(f"Removed all locks from {repository.location}")


@app.command()
def version() -> None:
    """Show the application version and exit."""
    console.print(f"restic-py version: {__version__}")


if __name__ == "__main__":
    app()

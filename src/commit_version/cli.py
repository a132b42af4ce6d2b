"""Command line interface for Commit Version."""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console

from . import __version__
from .config import ConfigManager, VersionConfig
from .exceptions import VersionResolutionError
from .rendering import RENDERERS, write
from .semver import InvalidVersionError
from .services.repository_inspector import is_remote_url
from .services.version_resolver import resolve_version
from .utils.exception_logger import ExceptionLogger

logger = logging.getLogger(__name__)

console = Console()
error_console = Console(stderr=True)


def _report_failure(error: Exception, step: str, verbose: bool) -> None:
    """Print a resolution failure and record it in the exception log."""
    # Git stderr and paths may contain [brackets]
    error_console.print(
        f"❌ Version resolution failed at '{step}': {error}", style="red", markup=False
    )

    exception_logger = ExceptionLogger.get_instance()
    if exception_logger:
        exception_logger.log_exception(error, context={"step": step})
        if verbose:
            error_console.print(
                f"Details logged to {exception_logger.log_file_path}", style="dim"
            )


def _config_manager(config: Optional[str], repo: Optional[str]) -> ConfigManager:
    if config:
        return ConfigManager(Path(config))
    if repo and not is_remote_url(repo) and Path(repo).is_dir():
        return ConfigManager.create_with_backtrack(Path(repo))
    return ConfigManager.create_with_backtrack()


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="commit-version")
@click.pass_context
def cli(ctx, verbose: bool):
    """Semantic versions derived from git history.

    \b
    Resolves the version of a commit from a VERSION file or from tags,
    marks work in progress as SNAPSHOT builds, and appends a build
    ordinal (rev.<n>) that grows with commit count and elapsed time.

    \b
    EXAMPLES:
      commit-version                          # Version of HEAD
      commit-version resolve --format summary # All fields
      commit-version resolve --from-tag --no-snapshot
      commit-version resolve -f python -o mypkg/_version.py

    Running without a command is the same as 'commit-version resolve'.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    ExceptionLogger.initialize()

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    if ctx.invoked_subcommand is None:
        ctx.invoke(resolve)


@cli.command()
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
@click.option("--repo", "-r", help="Repository root, or URL with --clone")
@click.option("--clone/--no-clone", default=None, help="Clone the repository when given a URL")
@click.option("--revision", help="Revision to version (default: HEAD)")
@click.option(
    "--time-multiplier",
    type=click.IntRange(min=0),
    help="Build units per year of history (default: 1000)",
)
@click.option(
    "--allow-snapshot/--no-snapshot",
    default=None,
    help="Produce a SNAPSHOT version for a dirty tree instead of failing",
)
@click.option("--version-file", help="Version file relative to the repository root")
@click.option(
    "--from-file/--no-from-file",
    default=None,
    help="Fail when the version file is present but not a valid version",
)
@click.option(
    "--from-tag/--no-from-tag",
    default=None,
    help="Require the base version to come from a tag",
)
@click.option(
    "--stable-branch",
    "stable_branches",
    multiple=True,
    help="Branch without a pre-release channel (repeatable)",
)
@click.option(
    "--allow-detached-head/--no-detached-head",
    default=None,
    help="Use 'HEAD' as the branch name on a detached head",
)
@click.option(
    "--file-from-commit/--file-from-worktree",
    "version_file_from_commit",
    default=None,
    help="Read the version file from the resolved commit",
)
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(list(RENDERERS)),
    default="semver",
    help="Output format (default: semver)",
)
@click.option("--output", "-o", type=click.Path(), help="Write to a file instead of stdout")
@click.pass_context
def resolve(
    ctx,
    config: Optional[str] = None,
    repo: Optional[str] = None,
    clone: Optional[bool] = None,
    revision: Optional[str] = None,
    time_multiplier: Optional[int] = None,
    allow_snapshot: Optional[bool] = None,
    version_file: Optional[str] = None,
    from_file: Optional[bool] = None,
    from_tag: Optional[bool] = None,
    stable_branches: Tuple[str, ...] = (),
    allow_detached_head: Optional[bool] = None,
    version_file_from_commit: Optional[bool] = None,
    fmt: str = "semver",
    output: Optional[str] = None,
):
    """Resolve the version of a commit."""
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))

    try:
        version_config: VersionConfig = _config_manager(config, repo).with_overrides(
            repository=repo,
            clone=clone,
            revision=revision,
            time_multiplier=time_multiplier,
            allow_snapshot=allow_snapshot,
            version_file=version_file,
            from_file=from_file,
            from_tag=from_tag,
            stable_branches=list(stable_branches) or None,
            allow_detached_head=allow_detached_head,
            version_file_from_commit=version_file_from_commit,
        )
    except ValueError as e:
        _report_failure(e, "load configuration", verbose)
        sys.exit(1)

    try:
        version = resolve_version(version_config)
    except VersionResolutionError as e:
        _report_failure(e, e.step, verbose)
        sys.exit(1)
    except InvalidVersionError as e:
        _report_failure(e, "build version", verbose)
        sys.exit(1)

    write(version, fmt, Path(output) if output else None)
    if output and verbose:
        console.print(f"✅ Version {version.semver} written to {output}", style="green")


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing configuration")
def init(force: bool):
    """Create a default .commit-version/config.json in the current directory."""
    config_manager = ConfigManager(Path.cwd() / ConfigManager.DEFAULT_CONFIG_PATH)

    if config_manager.config_path.exists() and not force:
        error_console.print(
            f"❌ Configuration already exists: {config_manager.config_path} "
            "(use --force to overwrite)",
            style="red",
            markup=False,
        )
        sys.exit(1)

    config_manager.create_default_config()
    console.print(f"✅ Created {config_manager.config_path}", style="green")


def main():
    cli()


if __name__ == "__main__":
    main()

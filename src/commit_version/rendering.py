"""Output formats for a resolved version."""

import json
import logging
from pathlib import Path
from typing import Callable, Dict, Optional

import click

from .models import ResolvedVersion

logger = logging.getLogger(__name__)


def _render_semver(version: ResolvedVersion) -> str:
    return f"{version.semver}\n"


def _render_summary(version: ResolvedVersion) -> str:
    return (
        f"Branch: {version.branch}\n"
        f"Commit: {version.commit}\n"
        f"ShortCommit: {version.short_commit}\n"
        f"Version: {version.semver}\n"
        f"BuildID: {version.build_id}\n"
    )


def _render_json(version: ResolvedVersion) -> str:
    return json.dumps(version.to_dict(), indent=2) + "\n"


def _literal(value: object) -> str:
    # A JSON string is also a valid Python and Go string literal
    return json.dumps(str(value))


def _render_python(version: ResolvedVersion) -> str:
    return (
        '"""Version information generated from git history."""\n'
        "\n"
        f"__version__ = {_literal(version.semver)}\n"
        f"__commit__ = {_literal(version.commit)}\n"
        f"__branch__ = {_literal(version.branch)}\n"
        f"__build_id__ = {version.build_id}\n"
    )


def _render_go(version: ResolvedVersion) -> str:
    return (
        "package version\n"
        "\n"
        "var (\n"
        f"\tVersion = {_literal(version.semver)}\n"
        f"\tCommit  = {_literal(version.commit)}\n"
        f"\tBranch  = {_literal(version.branch)}\n"
        ")\n"
    )


RENDERERS: Dict[str, Callable[[ResolvedVersion], str]] = {
    "semver": _render_semver,
    "summary": _render_summary,
    "json": _render_json,
    "python": _render_python,
    "go": _render_go,
}


def render(version: ResolvedVersion, fmt: str = "semver") -> str:
    """Render a resolved version in one of the supported formats.

    Raises:
        ValueError: If the format is unknown
    """
    try:
        renderer = RENDERERS[fmt]
    except KeyError:
        raise ValueError(
            f"Unknown output format '{fmt}' (expected one of: {', '.join(RENDERERS)})"
        )
    return renderer(version)


def write(version: ResolvedVersion, fmt: str = "semver", output: Optional[Path] = None) -> None:
    """Write a rendered version to a file, or to standard output."""
    content = render(version, fmt)
    if output is None:
        click.echo(content, nl=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    logger.info(f"Wrote {fmt} version to {output}")

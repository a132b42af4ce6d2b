"""Immutable records exchanged between the inspector, resolver and renderers."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .semver import SemanticVersion

SHORT_COMMIT_LENGTH = 7


@dataclass(frozen=True)
class Commit:
    """A commit and its committer timestamp (UTC)."""

    hash: str
    committed_at: datetime
    parents: Tuple[str, ...] = ()

    @property
    def short_hash(self) -> str:
        return self.hash[:SHORT_COMMIT_LENGTH]

    @property
    def is_root(self) -> bool:
        return not self.parents


@dataclass(frozen=True)
class Tag:
    """A tag name bound to the commit it (eventually) points at."""

    name: str
    commit: str


@dataclass(frozen=True)
class RootCommitInfo:
    """Result of a full history walk."""

    root: Commit
    total_commits: int


@dataclass(frozen=True)
class ResolvedVersion:
    """The version that applies to a commit.

    ``build_id`` is the ordinal that disambiguates builds sharing a semantic
    version; it is repeated in ``semver`` as the ``rev.<n>`` build identifiers.
    """

    branch: str
    commit: str
    short_commit: str
    semver: SemanticVersion
    build_id: int
    is_snapshot: bool = False
    prerelease_channel: Optional[str] = None

    @property
    def is_release(self) -> bool:
        return not self.is_snapshot and self.prerelease_channel is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch": self.branch,
            "commit": self.commit,
            "short_commit": self.short_commit,
            "semver": str(self.semver),
            "build_id": self.build_id,
            "is_snapshot": self.is_snapshot,
            "prerelease_channel": self.prerelease_channel,
        }

    def __str__(self) -> str:
        return str(self.semver)

"""
Repository Inspector for version resolution.

Wraps the git executable behind a small query surface: head and branch,
revision resolution, full-history walks, tag enumeration and version file
reads. Everything above this module works with the immutable records from
``commit_version.models`` and never sees git output.
"""

import logging
import re
import shutil
import subprocess
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

from ..exceptions import (
    DetachedOrUnresolvedHeadError,
    HistoryWalkFailedError,
    RepositoryNotFoundError,
    RevisionNotFoundError,
)
from ..models import Commit, RootCommitInfo, Tag
from ..utils.git_runner import run_git_command

logger = logging.getLogger(__name__)

# scheme://host/path or scp-like user@host:path
REMOTE_URL_PATTERN = re.compile(r"^(?:[A-Za-z][A-Za-z0-9+.-]*://|[\w.-]+@[\w.-]+:)")


class WorkingTreeStatus(Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


def is_remote_url(location: str) -> bool:
    """Check whether a repository location is a URL rather than a local path."""
    return bool(REMOTE_URL_PATTERN.match(location))


def _timestamp_to_utc(value: str) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class RepositoryInspector:
    """Read-only queries against one git repository.

    An inspector is owned by a single resolution. When it was created by
    cloning a URL it also owns the clone and deletes it on ``close()``.
    """

    # %H hash, %ct committer timestamp, %P parent hashes
    COMMIT_FORMAT = "%H%x00%ct%x00%P"
    TAG_FORMAT = (
        "%(refname:strip=2)%00%(objecttype)%00%(objectname)"
        "%00%(*objecttype)%00%(*objectname)"
    )

    def __init__(self, repo_path: Path, clone_dir: Optional[Path] = None):
        """Initialize the inspector for an already verified repository root.

        Use ``RepositoryInspector.open()`` rather than calling this directly.

        Args:
            repo_path: Root directory of the git work tree
            clone_dir: Temporary directory to delete on close, if any
        """
        self.repo_path = Path(repo_path)
        self._clone_dir = clone_dir

    @classmethod
    def open(cls, location: str, clone: bool = False) -> "RepositoryInspector":
        """Open the repository at a path, or clone it from a URL.

        Args:
            location: Repository root directory, or a remote URL
            clone: Whether a URL location may be cloned

        Raises:
            RepositoryNotFoundError: If the location is not a repository root,
                or is a URL that may not or could not be cloned
        """
        if is_remote_url(location):
            if not clone:
                raise RepositoryNotFoundError(
                    "Repository location is a URL but cloning is disabled", location
                )
            return cls._clone(location)

        path = Path(location).expanduser()
        if not path.is_dir():
            raise RepositoryNotFoundError("Repository path does not exist", str(path))

        try:
            result = run_git_command(
                ["git", "rev-parse", "--show-toplevel"], cwd=path, check=False
            )
        except FileNotFoundError:
            raise RepositoryNotFoundError("git executable not found")

        if result.returncode != 0:
            raise RepositoryNotFoundError(
                f"Not a git repository: {path}", result.stderr.strip() or None
            )

        toplevel = Path(result.stdout.strip()).resolve()
        if toplevel != path.resolve():
            raise RepositoryNotFoundError(
                f"Not a repository root: {path}", f"repository root is {toplevel}"
            )

        logger.debug(f"Opened repository at {toplevel}")
        return cls(toplevel)

    @classmethod
    def _clone(cls, url: str) -> "RepositoryInspector":
        clone_dir = Path(tempfile.mkdtemp(prefix="commit-version-"))
        target = clone_dir / "repo"

        logger.info(f"Cloning {url} into {target}")
        try:
            run_git_command(["git", "clone", "--quiet", url, str(target)], cwd=clone_dir)
        except FileNotFoundError:
            shutil.rmtree(clone_dir, ignore_errors=True)
            raise RepositoryNotFoundError("git executable not found")
        except subprocess.CalledProcessError as e:
            shutil.rmtree(clone_dir, ignore_errors=True)
            raise RepositoryNotFoundError(
                f"Failed to clone {url}", (e.stderr or "").strip() or None
            )

        return cls(target, clone_dir=clone_dir)

    def close(self) -> None:
        """Release the repository, deleting it if this inspector cloned it."""
        if self._clone_dir is not None:
            shutil.rmtree(self._clone_dir, ignore_errors=True)
            self._clone_dir = None

    def __enter__(self) -> "RepositoryInspector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _git(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        return run_git_command(["git"] + args, cwd=self.repo_path, check=check)

    def _walk(self, args: List[str], what: str) -> str:
        try:
            return self._git(args).stdout
        except subprocess.CalledProcessError as e:
            raise HistoryWalkFailedError(
                f"Failed to read {what}", (e.stderr or "").strip() or None
            )

    def _parse_commit(self, line: str) -> Commit:
        fields = line.split("\x00")
        if len(fields) != 3:
            raise HistoryWalkFailedError("Unreadable commit record", repr(line))
        commit_hash, timestamp, parents = fields
        return Commit(
            hash=commit_hash,
            committed_at=_timestamp_to_utc(timestamp),
            parents=tuple(parents.split()),
        )

    def working_tree_status(self) -> WorkingTreeStatus:
        """Report whether the working tree has changes (untracked files included)."""
        output = self._walk(
            ["status", "--porcelain", "--untracked-files=normal"], "working tree status"
        )
        if output.strip():
            logger.debug(f"Working tree is dirty: {len(output.splitlines())} entries")
            return WorkingTreeStatus.DIRTY
        return WorkingTreeStatus.CLEAN

    def current_branch(self, allow_detached: bool = False) -> str:
        """Get the short name of the branch HEAD points to.

        Args:
            allow_detached: Return "HEAD" for a detached head instead of failing

        Raises:
            DetachedOrUnresolvedHeadError: If HEAD is not a named branch
        """
        result = self._git(["symbolic-ref", "--quiet", "--short", "HEAD"], check=False)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()

        if allow_detached:
            verify = self._git(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
            if verify.returncode == 0:
                logger.info("HEAD is detached, using 'HEAD' as the branch name")
                return "HEAD"

        raise DetachedOrUnresolvedHeadError(
            "HEAD does not point to a named branch", str(self.repo_path)
        )

    def resolve_commit(self, revision: str = "HEAD") -> Commit:
        """Resolve a revision expression to a commit.

        Raises:
            RevisionNotFoundError: If the expression does not name a commit
        """
        if not revision or revision.startswith("-"):
            raise RevisionNotFoundError(f"Invalid revision expression: '{revision}'")

        result = self._git(
            ["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"], check=False
        )
        if result.returncode != 0 or not result.stdout.strip():
            raise RevisionNotFoundError(
                f"Revision '{revision}' could not be resolved to a commit",
                str(self.repo_path),
            )

        commit_hash = result.stdout.strip()
        output = self._walk(
            ["show", "-s", f"--format={self.COMMIT_FORMAT}", commit_hash],
            f"commit {commit_hash}",
        )
        return self._parse_commit(output.strip("\n"))

    def root_commit(self) -> RootCommitInfo:
        """Walk every reachable commit and find the root commit.

        With several parentless commits (disconnected histories) the root is
        the one with the earliest committer timestamp, ties going to the
        lexically smallest hash.

        Raises:
            HistoryWalkFailedError: If the history cannot be read or is empty
        """
        output = self._walk(
            ["log", "--all", "--date-order", f"--format={self.COMMIT_FORMAT}"],
            "commit history",
        )

        total = 0
        root: Optional[Commit] = None
        for line in output.splitlines():
            if not line:
                continue
            commit = self._parse_commit(line)
            total += 1
            if commit.is_root and (
                root is None
                or (commit.committed_at, commit.hash) < (root.committed_at, root.hash)
            ):
                root = commit

        if root is None:
            raise HistoryWalkFailedError(
                "Repository has no root commit", str(self.repo_path)
            )

        logger.debug(f"Root commit {root.short_hash}, {total} reachable commits")
        return RootCommitInfo(root=root, total_commits=total)

    def commit_count_since(self, since: datetime) -> int:
        """Count commits reachable from HEAD committed at or after ``since``."""
        threshold = int(since.timestamp())
        output = self._walk(["log", "--format=%ct", "HEAD"], "commit history")
        return sum(1 for line in output.split() if int(line) >= threshold)

    def read_tracked_file(self, relative_path: str) -> Optional[bytes]:
        """Read a file from the working tree.

        Returns:
            File contents, or None when the file is not present

        Raises:
            HistoryWalkFailedError: If the file exists but cannot be read
                (symlink loop, permissions, I/O error)
        """
        root = self.repo_path.resolve()
        candidate = root / relative_path
        try:
            full_path = candidate.resolve(strict=True)
        except (FileNotFoundError, NotADirectoryError):
            logger.debug(f"Version file not present: {candidate}")
            return None
        except (OSError, RuntimeError) as e:
            # RuntimeError is raised for symlink loops before Python 3.13
            raise HistoryWalkFailedError(
                f"Failed to read version file {candidate}", str(e), step="read version file"
            )

        if root != full_path and root not in full_path.parents:
            logger.info(f"Ignoring version file outside the repository: {relative_path}")
            return None

        if not full_path.is_file():
            logger.debug(f"Version file not present: {full_path}")
            return None

        try:
            return full_path.read_bytes()
        except OSError as e:
            raise HistoryWalkFailedError(
                f"Failed to read version file {full_path}", str(e), step="read version file"
            )

    def read_committed_file(self, commit: str, relative_path: str) -> Optional[bytes]:
        """Read a file as recorded in a commit's tree.

        Returns:
            File contents, or None when the path is absent from the tree
        """
        blob_ref = f"{commit}:{Path(relative_path).as_posix()}"
        exists = self._git(["cat-file", "-e", blob_ref], check=False)
        if exists.returncode != 0:
            logger.debug(f"Version file not present in commit: {blob_ref}")
            return None

        try:
            result = run_git_command(
                ["git", "cat-file", "blob", blob_ref], cwd=self.repo_path, text=False
            )
        except subprocess.CalledProcessError as e:
            raise HistoryWalkFailedError(
                f"Failed to read {blob_ref}", (e.stderr or b"").decode(errors="replace")
            )
        return result.stdout

    def enumerate_tags(self) -> Iterator[Tag]:
        """Yield every tag with the commit it points at.

        Annotated tags are peeled to their commit. Tags that point at
        something other than a commit, and unreadable entries, are skipped.
        """
        output = self._walk(
            ["for-each-ref", f"--format={self.TAG_FORMAT}", "refs/tags"], "tags"
        )

        for line in output.splitlines():
            fields = line.split("\x00")
            if len(fields) != 5 or not fields[0]:
                logger.info(f"Skipping unreadable tag entry: {line!r}")
                continue

            name, object_type, object_name, peeled_type, peeled_name = fields
            if object_type == "tag":
                object_type, object_name = peeled_type, peeled_name

            if object_type != "commit" or not object_name:
                logger.debug(f"Skipping tag {name}: points at a {object_type or 'unknown'}")
                continue

            yield Tag(name=name, commit=object_name)

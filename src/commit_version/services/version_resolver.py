"""
Version Resolver.

Turns repository facts into one ResolvedVersion. Each decision is a pure
function over an immutable ``PartialResolution`` so it can be exercised
against synthetic facts; ``VersionResolver`` gathers the facts from a
RepositoryInspector in step order and threads the partial result through.

Steps:
    1. working tree gate (dirty tree -> snapshot or failure)
    2. branch stability (non-stable branch -> pre-release channel)
    3. target commit
    4. base version (version file, exact tag, or highest tag as snapshot)
    5. pre-release channel attachment
    6. build ordinal from commit count and elapsed time
    7. build metadata (rev.<n>, SNAPSHOT.<commits since version commit>)
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional

from ..config import VersionConfig
from ..exceptions import (
    DirtyTreeNotAllowedError,
    NoVersionSourceError,
    NoVersionTagFoundError,
)
from ..models import Commit, ResolvedVersion, Tag
from ..semver import InvalidVersionError, SemanticVersion, parse_tolerant
from .repository_inspector import RepositoryInspector, WorkingTreeStatus

logger = logging.getLogger(__name__)

SECONDS_PER_YEAR = 60 * 60 * 24 * 365
REVISION_IDENTIFIER = "rev"
SNAPSHOT_IDENTIFIER = "SNAPSHOT"

INVALID_IDENTIFIER_CHARS = re.compile(r"[^0-9A-Za-z-]+")


@dataclass(frozen=True)
class BaseVersion:
    """The semantic version a resolution starts from, and where it came from."""

    version: SemanticVersion
    source: str  # "file" or "tag"
    version_commit: Optional[str] = None
    exact_match: bool = False
    forces_snapshot: bool = False


@dataclass(frozen=True)
class TagScan:
    """Outcome of one pass over the tag list."""

    exact: Optional[Tag] = None
    exact_version: Optional[SemanticVersion] = None
    latest: Optional[Tag] = None
    latest_version: Optional[SemanticVersion] = None


@dataclass(frozen=True)
class PartialResolution:
    """Facts and decisions accumulated while resolving."""

    is_snapshot: bool = False
    branch: Optional[str] = None
    prerelease_channel: Optional[str] = None
    target: Optional[Commit] = None
    base: Optional[BaseVersion] = None
    version_commit_date: Optional[datetime] = None
    semver: Optional[SemanticVersion] = None
    build_id: Optional[int] = None


def check_working_tree(
    partial: PartialResolution, status: WorkingTreeStatus, allow_snapshot: bool
) -> PartialResolution:
    """Gate on working tree cleanliness."""
    if status is WorkingTreeStatus.CLEAN:
        return partial
    if not allow_snapshot:
        raise DirtyTreeNotAllowedError(
            "Working tree has uncommitted changes and snapshots are disabled"
        )
    return replace(partial, is_snapshot=True)


def classify_branch(
    partial: PartialResolution, branch: str, stable_branches: Iterable[str]
) -> PartialResolution:
    """Record the branch, and its pre-release channel when it is not stable."""
    stable = {name.casefold() for name in stable_branches}
    channel = None if branch.casefold() in stable else branch
    return replace(partial, branch=branch, prerelease_channel=channel)


def prerelease_identifier(branch: str) -> str:
    """Turn a branch name into a pre-release identifier.

    Runs of characters that are not allowed in an identifier become a
    single hyphen, so ``feature/login_form`` becomes ``feature-login-form``.

    Raises:
        InvalidVersionError: If nothing usable is left, or the result is a
            numeric identifier with a leading zero
    """
    identifier = INVALID_IDENTIFIER_CHARS.sub("-", branch).strip("-")
    if not identifier:
        raise InvalidVersionError(
            f"Branch '{branch}' cannot be used as a pre-release identifier"
        )
    # Validates the identifier (rejects e.g. "007")
    SemanticVersion(0, 0, 0, prerelease=(identifier,))
    return identifier


def version_from_file(contents: Optional[bytes], required: bool) -> Optional[SemanticVersion]:
    """Parse the version file contents.

    An absent file yields None, so the tags are tried next. A file that is
    present but unparseable is only an error when the version must come
    from the file.

    Raises:
        NoVersionSourceError: If the file is required and present but invalid
    """
    if contents is None:
        return None

    try:
        return parse_tolerant(contents)
    except InvalidVersionError as e:
        if required:
            raise NoVersionSourceError("Version file does not hold a semantic version", str(e))
        logger.info(f"Ignoring version file: {e}")
        return None


def scan_tags(tags: Iterable[Tag], target_commit: str) -> TagScan:
    """Find the best tag on the target commit and the highest tag overall.

    Tags whose names are not semantic versions are ignored. Among tags of
    equal precedence the one on the lexically smallest commit hash wins.
    """
    exact: Optional[Tag] = None
    exact_version: Optional[SemanticVersion] = None
    latest: Optional[Tag] = None
    latest_version: Optional[SemanticVersion] = None

    for tag in tags:
        try:
            version = parse_tolerant(tag.name)
        except InvalidVersionError:
            logger.debug(f"Ignoring tag {tag.name}: not a semantic version")
            continue

        if tag.commit == target_commit and (
            exact_version is None or version > exact_version
        ):
            exact, exact_version = tag, version

        if (
            latest is None
            or latest_version is None
            or version > latest_version
            or (version == latest_version and tag.commit < latest.commit)
        ):
            latest, latest_version = tag, version

    return TagScan(
        exact=exact,
        exact_version=exact_version,
        latest=latest,
        latest_version=latest_version,
    )


def choose_base_version(
    file_version: Optional[SemanticVersion],
    scan: Optional[TagScan],
    target_commit: str,
    config: VersionConfig,
) -> BaseVersion:
    """Pick the base version from the file result and the tag scan.

    ``scan`` is None when tags were not consulted.

    Raises:
        NoVersionTagFoundError: If a tag is required and none is usable
        NoVersionSourceError: If neither source produced a version
    """
    if scan is None:
        if file_version is None:
            raise NoVersionSourceError("No version file or version tag found")
        return BaseVersion(version=file_version, source="file")

    if scan.exact is not None and scan.exact_version is not None:
        return BaseVersion(
            version=scan.exact_version,
            source="tag",
            version_commit=target_commit,
            exact_match=True,
        )

    if config.from_tag and not config.allow_snapshot:
        raise NoVersionTagFoundError(
            f"No version tag on commit {target_commit} and snapshots are disabled"
        )

    if scan.latest is not None and scan.latest_version is not None:
        return BaseVersion(
            version=scan.latest_version,
            source="tag",
            version_commit=scan.latest.commit,
            forces_snapshot=True,
        )

    if config.from_tag:
        raise NoVersionTagFoundError("No tag in the repository is a semantic version")

    if file_version is not None:
        return BaseVersion(version=file_version, source="file")

    raise NoVersionSourceError("No version file or version tag found")


def apply_base_version(partial: PartialResolution, base: BaseVersion) -> PartialResolution:
    return replace(
        partial,
        base=base,
        semver=base.version,
        is_snapshot=partial.is_snapshot or base.forces_snapshot,
    )


def attach_prerelease(partial: PartialResolution) -> PartialResolution:
    """Append the pre-release channel after any identifiers already present."""
    if partial.prerelease_channel is None or partial.semver is None:
        return partial
    identifier = prerelease_identifier(partial.prerelease_channel)
    return replace(partial, semver=partial.semver.with_prerelease(identifier))


def compute_build_id(
    target_date: datetime, root_date: datetime, total_commits: int, time_multiplier: int
) -> int:
    """Build ordinal: total commit count plus time-scaled years since the root.

    Integer arithmetic throughout; elapsed time is clamped at zero.
    """
    elapsed_seconds = max(0, int((target_date - root_date).total_seconds()))
    time_units = elapsed_seconds * time_multiplier // SECONDS_PER_YEAR
    return total_commits + time_units


def attach_build_metadata(
    partial: PartialResolution, build_id: int, snapshot_count: Optional[int]
) -> PartialResolution:
    """Append rev.<build_id>, then SNAPSHOT.<count> for snapshots."""
    if partial.semver is None:
        return replace(partial, build_id=build_id)

    identifiers: List[str] = [REVISION_IDENTIFIER, str(build_id)]
    if partial.is_snapshot:
        identifiers += [SNAPSHOT_IDENTIFIER, str(snapshot_count or 0)]

    return replace(
        partial, build_id=build_id, semver=partial.semver.with_build(*identifiers)
    )


def assemble(partial: PartialResolution) -> ResolvedVersion:
    if (
        partial.branch is None
        or partial.target is None
        or partial.semver is None
        or partial.build_id is None
    ):
        raise ValueError("Resolution is incomplete")

    return ResolvedVersion(
        branch=partial.branch,
        commit=partial.target.hash,
        short_commit=partial.target.short_hash,
        semver=partial.semver,
        build_id=partial.build_id,
        is_snapshot=partial.is_snapshot,
        prerelease_channel=partial.prerelease_channel,
    )


class VersionResolver:
    """Resolves the version of one commit from a repository's state."""

    def __init__(self, config: VersionConfig, inspector: RepositoryInspector):
        self.config = config
        self.inspector = inspector

    def resolve(self) -> ResolvedVersion:
        config = self.config
        inspector = self.inspector

        partial = check_working_tree(
            PartialResolution(), inspector.working_tree_status(), config.allow_snapshot
        )

        branch = inspector.current_branch(allow_detached=config.allow_detached_head)
        partial = classify_branch(partial, branch, config.stable_branches)

        target = inspector.resolve_commit(config.revision)
        partial = replace(partial, target=target)
        logger.info(
            f"Resolving {config.revision} ({target.short_hash}) on branch {branch}"
        )

        base = self._resolve_base_version(target)
        partial = apply_base_version(partial, base)
        logger.info(f"Base version {base.version} from {base.source}")

        partial = attach_prerelease(partial)

        history = inspector.root_commit()
        build_id = compute_build_id(
            target.committed_at,
            history.root.committed_at,
            history.total_commits,
            config.time_multiplier,
        )

        snapshot_count = None
        if partial.is_snapshot:
            version_commit_date = self._version_commit_date(base, target, history.root)
            partial = replace(partial, version_commit_date=version_commit_date)
            snapshot_count = inspector.commit_count_since(version_commit_date)

        partial = attach_build_metadata(partial, build_id, snapshot_count)
        return assemble(partial)

    def _resolve_base_version(self, target: Commit) -> BaseVersion:
        config = self.config

        file_version = None
        if config.from_file or not config.from_tag:
            if config.version_file_from_commit:
                contents = self.inspector.read_committed_file(
                    target.hash, config.version_file
                )
            else:
                contents = self.inspector.read_tracked_file(config.version_file)
            file_version = version_from_file(contents, required=config.from_file)

        scan = None
        if config.from_tag or file_version is None:
            scan = scan_tags(self.inspector.enumerate_tags(), target.hash)

        return choose_base_version(file_version, scan, target.hash, config)

    def _version_commit_date(
        self, base: BaseVersion, target: Commit, root: Commit
    ) -> datetime:
        if base.version_commit is None:
            return root.committed_at
        if base.version_commit == target.hash:
            return target.committed_at
        return self.inspector.resolve_commit(base.version_commit).committed_at


def resolve_version(config: VersionConfig) -> ResolvedVersion:
    """Open the configured repository and resolve its version."""
    with RepositoryInspector.open(config.repository, clone=config.clone) as inspector:
        return VersionResolver(config, inspector).resolve()

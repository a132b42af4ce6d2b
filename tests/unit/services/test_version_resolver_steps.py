"""Unit tests for the version resolver's pure step functions.

Every step is exercised against synthetic facts; no repository is needed.
"""

from datetime import datetime, timedelta, timezone

import pytest

from commit_version.config import VersionConfig
from commit_version.exceptions import (
    DirtyTreeNotAllowedError,
    NoVersionSourceError,
    NoVersionTagFoundError,
)
from commit_version.models import Commit, Tag
from commit_version.semver import InvalidVersionError, parse
from commit_version.services.repository_inspector import WorkingTreeStatus
from commit_version.services.version_resolver import (
    SECONDS_PER_YEAR,
    BaseVersion,
    PartialResolution,
    TagScan,
    apply_base_version,
    assemble,
    attach_build_metadata,
    attach_prerelease,
    check_working_tree,
    choose_base_version,
    classify_branch,
    compute_build_id,
    prerelease_identifier,
    scan_tags,
    version_from_file,
)

T0 = datetime(2020, 1, 1, tzinfo=timezone.utc)
TARGET = "c" * 40


class TestCheckWorkingTree:
    def test_clean_tree_is_not_a_snapshot(self):
        partial = check_working_tree(PartialResolution(), WorkingTreeStatus.CLEAN, False)

        assert partial.is_snapshot is False

    def test_dirty_tree_with_snapshots_allowed_marks_snapshot(self):
        partial = check_working_tree(PartialResolution(), WorkingTreeStatus.DIRTY, True)

        assert partial.is_snapshot is True

    def test_dirty_tree_with_snapshots_disallowed_fails(self):
        with pytest.raises(DirtyTreeNotAllowedError) as exc_info:
            check_working_tree(PartialResolution(), WorkingTreeStatus.DIRTY, False)

        assert exc_info.value.step == "check working tree"


class TestClassifyBranch:
    def test_stable_branch_has_no_channel(self):
        partial = classify_branch(PartialResolution(), "main", ["main", "master"])

        assert partial.branch == "main"
        assert partial.prerelease_channel is None

    def test_stable_match_is_case_insensitive(self):
        partial = classify_branch(PartialResolution(), "Release", ["release"])

        assert partial.prerelease_channel is None

    def test_other_branch_becomes_channel(self):
        partial = classify_branch(PartialResolution(), "develop", ["main"])

        assert partial.prerelease_channel == "develop"


class TestPrereleaseIdentifier:
    @pytest.mark.parametrize(
        "branch,expected",
        [
            ("develop", "develop"),
            ("feature/login_form", "feature-login-form"),
            ("bugfix//weird..name", "bugfix-weird-name"),
            ("/leading", "leading"),
            ("HEAD", "HEAD"),
            ("42", "42"),
        ],
    )
    def test_branch_names_become_identifiers(self, branch, expected):
        assert prerelease_identifier(branch) == expected

    @pytest.mark.parametrize("branch", ["007", "///"])
    def test_unusable_branch_names_fail(self, branch):
        with pytest.raises(InvalidVersionError):
            prerelease_identifier(branch)


class TestVersionFromFile:
    def test_absent_file_is_not_an_error(self):
        assert version_from_file(None, required=False) is None

    def test_absent_required_file_is_not_an_error(self):
        assert version_from_file(None, required=True) is None

    def test_contents_are_parsed_tolerantly(self):
        assert str(version_from_file(b"  v2.0.0-beta\n", required=False)) == "2.0.0-beta"

    def test_invalid_optional_file_is_ignored(self):
        assert version_from_file(b"not a version", required=False) is None

    def test_invalid_required_file_fails(self):
        with pytest.raises(NoVersionSourceError):
            version_from_file(b"not a version", required=True)


class TestScanTags:
    def test_exact_match_on_target(self):
        tags = [Tag("v1.0.0", "a" * 40), Tag("v1.1.0", TARGET)]

        scan = scan_tags(tags, TARGET)

        assert scan.exact == Tag("v1.1.0", TARGET)
        assert str(scan.exact_version) == "1.1.0"

    def test_highest_tag_on_target_wins(self):
        tags = [Tag("v1.1.0", TARGET), Tag("v1.2.0", TARGET), Tag("nightly", TARGET)]

        scan = scan_tags(tags, TARGET)

        assert str(scan.exact_version) == "1.2.0"

    def test_non_semver_tag_on_target_is_not_an_exact_match(self):
        tags = [Tag("nightly", TARGET), Tag("v1.0.0", "a" * 40)]

        scan = scan_tags(tags, TARGET)

        assert scan.exact is None
        assert scan.latest == Tag("v1.0.0", "a" * 40)

    def test_latest_uses_precedence_not_order(self):
        tags = [Tag("v1.3.0", "b" * 40), Tag("v1.10.0", "a" * 40), Tag("v1.2.0", "d" * 40)]

        scan = scan_tags(tags, TARGET)

        assert scan.latest == Tag("v1.10.0", "a" * 40)

    def test_release_outranks_its_prerelease(self):
        tags = [Tag("v2.0.0", "b" * 40), Tag("v2.0.0-rc.1", "a" * 40)]

        scan = scan_tags(tags, TARGET)

        assert str(scan.latest_version) == "2.0.0"

    def test_equal_precedence_prefers_smallest_commit_hash(self):
        tags = [Tag("v1.0.0", "f" * 40), Tag("1.0.0", "1" * 40), Tag("v1.0.0+meta", "9" * 40)]

        scan = scan_tags(tags, TARGET)
        reverse_scan = scan_tags(list(reversed(tags)), TARGET)

        assert scan.latest.commit == "1" * 40
        assert reverse_scan.latest.commit == "1" * 40

    def test_no_semver_tags(self):
        scan = scan_tags([Tag("nightly", "a" * 40), Tag("release-2", "b" * 40)], TARGET)

        assert scan == TagScan()


class TestChooseBaseVersion:
    def test_file_version_without_tag_lookup(self):
        base = choose_base_version(parse("2.0.0-beta"), None, TARGET, VersionConfig())

        assert base == BaseVersion(version=parse("2.0.0-beta"), source="file")
        assert base.forces_snapshot is False

    def test_nothing_found_without_tag_lookup(self):
        with pytest.raises(NoVersionSourceError):
            choose_base_version(None, None, TARGET, VersionConfig())

    def test_missing_required_file_falls_back_to_tags(self):
        scan = scan_tags([Tag("v1.0.0", TARGET)], TARGET)

        base = choose_base_version(None, scan, TARGET, VersionConfig(from_file=True))

        assert base.source == "tag"
        assert str(base.version) == "1.0.0"

    def test_missing_required_file_and_no_tags(self):
        with pytest.raises(NoVersionSourceError):
            choose_base_version(None, TagScan(), TARGET, VersionConfig(from_file=True))

    def test_exact_tag_is_a_release(self):
        scan = scan_tags([Tag("v1.0.0", TARGET)], TARGET)

        base = choose_base_version(None, scan, TARGET, VersionConfig(from_tag=True))

        assert base.exact_match is True
        assert base.forces_snapshot is False
        assert base.version_commit == TARGET

    def test_exact_tag_overrides_file_when_tags_required(self):
        scan = scan_tags([Tag("v1.0.0", TARGET)], TARGET)

        base = choose_base_version(
            parse("9.9.9"), scan, TARGET, VersionConfig(from_file=True, from_tag=True)
        )

        assert str(base.version) == "1.0.0"

    def test_highest_tag_forces_snapshot(self):
        scan = scan_tags([Tag("v1.2.0", "a" * 40), Tag("v1.3.0", "b" * 40)], TARGET)

        base = choose_base_version(None, scan, TARGET, VersionConfig(from_tag=True))

        assert str(base.version) == "1.3.0"
        assert base.version_commit == "b" * 40
        assert base.forces_snapshot is True

    def test_required_tag_without_snapshots_needs_exact_match(self):
        scan = scan_tags([Tag("v1.2.0", "a" * 40)], TARGET)

        with pytest.raises(NoVersionTagFoundError):
            choose_base_version(
                None, scan, TARGET, VersionConfig(from_tag=True, allow_snapshot=False)
            )

    def test_required_tag_with_no_semver_tags(self):
        with pytest.raises(NoVersionTagFoundError):
            choose_base_version(None, TagScan(), TARGET, VersionConfig(from_tag=True))

    def test_optional_tags_with_no_semver_tags(self):
        with pytest.raises(NoVersionSourceError):
            choose_base_version(None, TagScan(), TARGET, VersionConfig())


class TestComputeBuildId:
    def test_one_year_with_multiplier_1000(self):
        target = T0 + timedelta(seconds=SECONDS_PER_YEAR)

        assert compute_build_id(target, T0, 2, 1000) == 1002

    def test_partial_units_are_truncated(self):
        target = T0 + timedelta(days=2)

        # 172800 * 1000 // 31536000 == 5
        assert compute_build_id(target, T0, 3, 1000) == 8

    def test_target_before_root_is_clamped(self):
        assert compute_build_id(T0 - timedelta(days=30), T0, 5, 1000) == 5

    def test_zero_multiplier_counts_commits_only(self):
        assert compute_build_id(T0 + timedelta(days=3650), T0, 7, 0) == 7

    def test_non_decreasing_over_time(self):
        ids = [
            compute_build_id(T0 + timedelta(hours=h), T0, 10, 1000) for h in range(0, 2000, 7)
        ]

        assert ids == sorted(ids)


class TestMetadataAttachment:
    def _partial(self, **kwargs) -> PartialResolution:
        return PartialResolution(
            branch="main",
            target=Commit(hash=TARGET, committed_at=T0),
            **kwargs,
        )

    def test_prerelease_channel_follows_existing_identifiers(self):
        partial = self._partial(semver=parse("2.0.0-beta"), prerelease_channel="feature/x")

        assert str(attach_prerelease(partial).semver) == "2.0.0-beta.feature-x"

    def test_stable_branch_gets_no_prerelease(self):
        partial = self._partial(semver=parse("2.0.0"))

        assert attach_prerelease(partial) == partial

    def test_release_build_metadata(self):
        partial = attach_build_metadata(self._partial(semver=parse("1.0.0")), 1002, None)

        assert str(partial.semver) == "1.0.0+rev.1002"
        assert partial.build_id == 1002

    def test_snapshot_build_metadata(self):
        partial = self._partial(semver=parse("1.3.0"), is_snapshot=True)

        partial = attach_build_metadata(partial, 8, 2)

        assert str(partial.semver) == "1.3.0+rev.8.SNAPSHOT.2"

    def test_existing_build_identifiers_are_kept(self):
        partial = attach_build_metadata(self._partial(semver=parse("1.0.0+sha.1")), 3, None)

        assert partial.semver.build == ("sha", "1", "rev", "3")

    def test_base_version_snapshot_is_sticky(self):
        partial = self._partial(is_snapshot=True)
        base = BaseVersion(version=parse("1.0.0"), source="tag", exact_match=True)

        assert apply_base_version(partial, base).is_snapshot is True

    def test_assemble(self):
        partial = attach_build_metadata(self._partial(semver=parse("1.0.0")), 4, None)

        version = assemble(partial)

        assert version.commit == TARGET
        assert version.short_commit == "ccccccc"
        assert version.build_id == 4
        assert version.is_release is True

    def test_assemble_rejects_incomplete_resolution(self):
        with pytest.raises(ValueError):
            assemble(PartialResolution(branch="main"))

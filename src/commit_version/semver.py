"""
Semantic version values.

Implements the MAJOR.MINOR.PATCH[-PRE.PRE...][+BUILD.BUILD...] grammar with
strict and tolerant parsing and standard precedence ordering. Build metadata
is carried along but never takes part in comparisons, so two versions that
differ only in build identifiers compare (and hash) equal.
"""

import functools
import re
from dataclasses import dataclass, replace
from typing import Iterable, Tuple, Union

PRERELEASE_IDENTIFIER = re.compile(r"^(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)$")
BUILD_IDENTIFIER = re.compile(r"^[0-9A-Za-z-]+$")

SEMVER_PATTERN = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)

# Loose core used by parse_tolerant: leading zeros and missing fields allowed
TOLERANT_CORE = re.compile(r"^(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?")


class InvalidVersionError(ValueError):
    """Raised when text is not a valid semantic version or identifier."""


def _validate_identifiers(
    identifiers: Iterable[str], pattern: "re.Pattern[str]", kind: str
) -> Tuple[str, ...]:
    result = tuple(identifiers)
    for identifier in result:
        if not pattern.fullmatch(identifier):
            raise InvalidVersionError(f"Invalid {kind} identifier: '{identifier}'")
    return result


def _prerelease_key(prerelease: Tuple[str, ...]) -> Tuple:
    # A release sorts above every pre-release of the same core version.
    if not prerelease:
        return (1,)
    parts = []
    for identifier in prerelease:
        if identifier.isdigit():
            parts.append((0, int(identifier), ""))
        else:
            parts.append((1, 0, identifier))
    return (0, tuple(parts))


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class SemanticVersion:
    """A parsed semantic version."""

    major: int
    minor: int
    patch: int
    prerelease: Tuple[str, ...] = ()
    build: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise InvalidVersionError(
                    f"Version field {name} must be a non-negative integer, got {value!r}"
                )
        object.__setattr__(
            self,
            "prerelease",
            _validate_identifiers(self.prerelease, PRERELEASE_IDENTIFIER, "pre-release"),
        )
        object.__setattr__(
            self,
            "build",
            _validate_identifiers(self.build, BUILD_IDENTIFIER, "build"),
        )

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def precedence_key(self) -> Tuple:
        """Sort key implementing semantic-version precedence (build ignored)."""
        return (self.major, self.minor, self.patch, _prerelease_key(self.prerelease))

    def with_prerelease(self, *identifiers: str) -> "SemanticVersion":
        """Return a copy with identifiers appended to the pre-release list."""
        return replace(self, prerelease=self.prerelease + tuple(identifiers))

    def with_build(self, *identifiers: str) -> "SemanticVersion":
        """Return a copy with identifiers appended to the build metadata."""
        return replace(self, build=self.build + tuple(identifiers))

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.precedence_key() == other.precedence_key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.precedence_key() < other.precedence_key()

    def __hash__(self) -> int:
        return hash(self.precedence_key())


def parse(text: str) -> SemanticVersion:
    """Parse a version string that follows the grammar exactly.

    Raises:
        InvalidVersionError: If the text is not a valid semantic version
    """
    match = SEMVER_PATTERN.fullmatch(text)
    if not match:
        raise InvalidVersionError(f"Not a semantic version: '{text}'")

    prerelease = match.group("prerelease")
    build = match.group("build")

    return SemanticVersion(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
        build=tuple(build.split(".")) if build else (),
    )


def parse_tolerant(text: Union[str, bytes]) -> SemanticVersion:
    """Parse a version string leniently.

    Accepts surrounding whitespace, a leading ``v``, leading zeros in the
    numeric fields, and a missing minor or patch field (filled with zero).
    A shortened version may not carry pre-release or build metadata.

    Raises:
        InvalidVersionError: If the text cannot be read as a semantic version
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidVersionError(f"Version text is not valid UTF-8: {e}")

    cleaned = text.strip()
    if cleaned[:1] in ("v", "V"):
        cleaned = cleaned[1:]

    match = TOLERANT_CORE.match(cleaned)
    if not match:
        raise InvalidVersionError(f"Not a semantic version: '{text}'")

    remainder = cleaned[match.end() :]
    if remainder and remainder[0] not in "-+":
        raise InvalidVersionError(f"Not a semantic version: '{text}'")

    minor = match.group("minor")
    patch = match.group("patch")
    if (minor is None or patch is None) and remainder:
        raise InvalidVersionError(
            f"Short version cannot contain pre-release or build metadata: '{text}'"
        )

    canonical = (
        f"{int(match.group('major'))}.{int(minor or 0)}.{int(patch or 0)}{remainder}"
    )
    return parse(canonical)

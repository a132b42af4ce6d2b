"""Exception classes for version resolution."""

from typing import Optional


class VersionResolutionError(Exception):
    """Base exception for version resolution failures.

    ``step`` names the resolution step that failed so the CLI can tell the
    user where resolution stopped.
    """

    step = "resolution"

    def __init__(
        self, message: str, details: Optional[str] = None, step: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if step is not None:
            self.step = step

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class RepositoryNotFoundError(VersionResolutionError):
    """Exception raised when the path is not a repository root."""

    step = "open repository"


class RevisionNotFoundError(VersionResolutionError):
    """Exception raised when a revision expression does not name a commit."""

    step = "resolve revision"


class DetachedOrUnresolvedHeadError(VersionResolutionError):
    """Exception raised when HEAD is not a named branch."""

    step = "read branch"


class DirtyTreeNotAllowedError(VersionResolutionError):
    """Exception raised when the working tree has changes and snapshots are disabled."""

    step = "check working tree"


class NoVersionTagFoundError(VersionResolutionError):
    """Exception raised when tag sourcing is required but no usable tag exists."""

    step = "find version tag"


class NoVersionSourceError(VersionResolutionError):
    """Exception raised when neither the version file nor a tag yields a version."""

    step = "find base version"


class HistoryWalkFailedError(VersionResolutionError):
    """Exception raised when commits or tags cannot be read during traversal."""

    step = "walk history"

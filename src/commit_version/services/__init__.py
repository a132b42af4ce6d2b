"""Repository inspection and version resolution services."""

from .repository_inspector import RepositoryInspector
from .version_resolver import VersionResolver, resolve_version

__all__ = [
    "RepositoryInspector",
    "VersionResolver",
    "resolve_version",
]

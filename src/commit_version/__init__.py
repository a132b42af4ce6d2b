"""
Commit Version - semantic versions derived from git history.

Resolves which semantic version applies to a commit from tags or a tracked
version file, marks in-progress work as snapshot builds, and stamps every
result with a build ordinal computed from commit count and elapsed time.
"""

__version__ = "1.0.0"
__author__ = "Seba Battig"

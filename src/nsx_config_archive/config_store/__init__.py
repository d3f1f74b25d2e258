"""Version control for the export working tree.

This package provides:
- VersionControl: the stage/commit/push interface the pipeline depends on
- GitManager: implementation shelling out to the git executable
- GitResult: captured outcome of one git invocation
"""

from .git_manager import (
    GitManager,
    GitResult,
    GitError,
    VersionControl,
    NOT_A_REPO_MARKER,
)

__all__ = [
    "GitManager",
    "GitResult",
    "GitError",
    "VersionControl",
    "NOT_A_REPO_MARKER",
]

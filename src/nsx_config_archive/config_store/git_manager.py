"""Git integration for the export working tree.

Provides:
- Working tree detection (``git status``, ``git rev-parse --show-toplevel``)
- Staging of export files
- Bot-authored commits
- Push to the configured upstream

Every call shells out to the configured git executable with the export
directory as working directory. Combined stdout/stderr is captured and
passed to the log verbatim.
"""
import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

NOT_A_REPO_MARKER = "not a git repository"
NOTHING_TO_COMMIT_MARKERS = (
    "nothing to commit",
    "nothing added to commit",
    "no changes added to commit",
)


@dataclass
class GitResult:
    """Outcome of a single git invocation."""
    args: tuple[str, ...]
    returncode: int
    output: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def nothing_to_commit(self) -> bool:
        """True for a commit attempt that found no changes (benign)."""
        if self.success:
            return False
        text = self.output.lower()
        return any(marker in text for marker in NOTHING_TO_COMMIT_MARKERS)

    def __repr__(self) -> str:
        status = "OK" if self.success else f"rc={self.returncode}"
        return f"GitResult({' '.join(self.args)}, {status})"


class VersionControl(ABC):
    """The operations the export pipeline needs from version control."""

    @abstractmethod
    def is_work_tree(self) -> bool:
        """Check the export directory is an initialized working tree."""

    @abstractmethod
    def stage(self, pattern: str) -> GitResult:
        """Stage files matching pattern."""

    @abstractmethod
    def commit(self, message: str) -> GitResult:
        """Commit all tracked changes."""

    @abstractmethod
    def push(self, remote: str, branch: str) -> GitResult:
        """Push branch to remote."""


class GitManager(VersionControl):
    """
    Runs git against the export directory.

    The repository must already exist; creating it (and its remote) is
    left to the operator, see SETUP_INSTRUCTIONS in the pipeline module.
    """

    def __init__(self, repo_path: Path, git_path: str = "git"):
        """
        Initialize GitManager.

        Args:
            repo_path: Path to the export directory (git working tree)
            git_path: Path to the git executable
        """
        self.repo_path = Path(repo_path)
        self.git_path = str(git_path)

    def _run_git(self, *args: str) -> GitResult:
        """Run a git command in the repo directory.

        Raises:
            GitError: If the git executable cannot be started
        """
        cmd = [self.git_path] + list(args)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            proc = subprocess.run(
                cmd,
                cwd=self.repo_path,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,  # We'll handle errors ourselves
            )
        except OSError as e:
            raise GitError(f"Cannot run {self.git_path}: {e}") from e

        result = GitResult(args=tuple(args), returncode=proc.returncode, output=proc.stdout or "")
        for line in result.output.splitlines():
            logger.info(f"git {args[0]}: {line}")
        return result

    def is_work_tree(self) -> bool:
        """True only when the export directory is the top of its own working tree.

        A directory nested in some other repository does not count: ``commit -a``
        would pick up that repository's unrelated changes.
        """
        result = self._run_git("status")
        if NOT_A_REPO_MARKER in result.output.lower():
            return False

        top = self.top_level()
        if top is None:
            logger.warning(f"Cannot determine the working tree root of {self.repo_path}")
            return False
        if top != self.repo_path.resolve():
            logger.warning(
                f"{self.repo_path} is inside the git repository at {top}, "
                "not a repository of its own"
            )
            return False
        return True

    def top_level(self) -> Optional[Path]:
        """Root of the working tree containing the export directory, or None."""
        result = self._run_git("rev-parse", "--show-toplevel")
        if not result.success or not result.output.strip():
            return None
        return Path(result.output.strip().splitlines()[-1]).resolve()

    def stage(self, pattern: str = "*.xml") -> GitResult:
        result = self._run_git("add", pattern)
        if not result.success:
            logger.warning(f"git add {pattern} failed (rc={result.returncode})")
        return result

    def commit(self, message: str) -> GitResult:
        result = self._run_git("commit", "-a", "-m", message)
        if result.nothing_to_commit:
            logger.info("No changes to commit")
        elif not result.success:
            logger.error(f"git commit failed (rc={result.returncode})")
        else:
            head = self.rev_parse()
            logger.info(f"Committed: {head[:8] if head else '?'} - {message.splitlines()[0]}")
        return result

    def push(self, remote: str = "origin", branch: str = "master") -> GitResult:
        result = self._run_git("push", "-u", remote, branch)
        if not result.success:
            logger.error(f"git push {remote} {branch} failed (rc={result.returncode})")
        return result

    def rev_parse(self, revision: str = "HEAD") -> Optional[str]:
        """Get the full hash of a revision, or None."""
        result = self._run_git("rev-parse", revision)
        if not result.success:
            return None
        return result.output.strip().splitlines()[-1] if result.output.strip() else None


class GitError(Exception):
    """Exception raised when the git executable cannot be run."""
    pass

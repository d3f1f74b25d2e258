"""Export pipeline: one pass from NSX Manager to a git commit.

Run states:
1. VALIDATING  - Session, git executable and working tree checks
2. FETCHING    - Every resource category, sequentially, into memory
3. NORMALIZING - Volatile fields stripped from every snapshot
4. SERIALIZING - Files rendered, then written to the working tree
5. COMMITTING  - git add / commit / push, output passed to the log

A failure before COMMITTING ends the run in FAILED with nothing written
or committed past that point. Files are only written once every category
was fetched and normalized. COMMITTING always ends in DONE, whatever git
reports; an unpushed commit is picked up by the next run's push.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .config.settings import DEFAULT_COMMIT_MESSAGE
from .config_store.git_manager import GitError, GitManager, GitResult, VersionControl
from .export.normalize import normalize_documents
from .export.resources import CATEGORIES, ResourceCategory, RunCache, Snapshot
from .export.serializer import render, write_snapshot
from .nsx.client import NsxConnection
from .utils.logging_config import FetchTimings, timed_fetch

logger = logging.getLogger(__name__)

STAGE_PATTERN = "*.xml"

SETUP_INSTRUCTIONS = """\
The export directory {output_dir} is not a git repository of its own.

To set it up:
  1. cd {output_dir}
  2. git init
  3. git remote add origin <url of the repository that keeps the history>
  4. git commit --allow-empty -m "Initial commit"
  5. git push -u origin {branch}

Make sure the account running the export can push without a prompt
(SSH key or credential helper), then run the export again.
"""


class RunState(Enum):
    """Export run lifecycle states."""
    IDLE = "idle"
    VALIDATING = "validating"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    SERIALIZING = "serializing"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class StageResult:
    """Result of a single pipeline stage."""
    stage: RunState
    success: bool
    message: str = ""
    error: Optional[str] = None
    duration_ms: float = 0


@dataclass
class RunResult:
    """Overall outcome of one export run."""
    state: RunState = RunState.IDLE
    stages: list[StageResult] = field(default_factory=list)
    files_written: list[str] = field(default_factory=list)
    files_changed: list[str] = field(default_factory=list)
    commit: Optional[GitResult] = None
    push: Optional[GitResult] = None
    timings: Optional[FetchTimings] = None
    exception: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.state is RunState.DONE

    @property
    def push_failed(self) -> bool:
        return self.push is not None and not self.push.success

    @property
    def failed_stage(self) -> Optional[StageResult]:
        return next((s for s in self.stages if not s.success), None)


class ExportPipeline:
    """Fetch, normalize, serialize and commit every resource category."""

    def __init__(
        self,
        connection: Optional[NsxConnection],
        git_path: Optional[str],
        output_dir: Path,
        vcs: Optional[VersionControl] = None,
        categories: tuple[ResourceCategory, ...] = CATEGORIES,
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
        remote: str = "origin",
        branch: str = "master",
        push: bool = True,
    ):
        self.connection = connection
        self.git_path = git_path
        self.output_dir = Path(output_dir)
        self.vcs = vcs
        self.categories = categories
        self.commit_message = commit_message
        self.remote = remote
        self.branch = branch
        self.push_enabled = push
        self.timings = FetchTimings()

    # === Stages ===

    def preflight(self) -> VersionControl:
        """Check everything the run needs before touching the network.

        Returns:
            The version control backend for the output directory

        Raises:
            PreflightError: No active session or git executable missing
            RepositoryNotInitializedError: Output directory is not a working tree
        """
        if self.connection is None:
            raise PreflightError("No NSX Manager connection given; configure manager.host")
        if not self.connection.is_active():
            raise PreflightError(
                f"Session to NSX Manager {self.connection.host} is not active; "
                "check the manager address and credentials"
            )

        if not self.git_path or not Path(self.git_path).exists():
            raise PreflightError(
                f"git executable not found: {self.git_path!r}; pass --git or set git.path"
            )

        self.output_dir.mkdir(parents=True, exist_ok=True)

        vcs = self.vcs or GitManager(self.output_dir, self.git_path)
        if not vcs.is_work_tree():
            raise RepositoryNotInitializedError(
                SETUP_INSTRUCTIONS.format(output_dir=self.output_dir, branch=self.branch)
            )
        return vcs

    def fetch(self) -> list[Snapshot]:
        """Fetch every category. The first error propagates."""
        cache = RunCache(self.connection)
        snapshots = []
        for category in self.categories:
            with timed_fetch(category.name, self.timings):
                documents = category.fetch(cache)
            logger.info(f"Fetched {category.name}: {len(documents)} document(s)")
            snapshots.append(Snapshot(category=category, documents=documents))
        return snapshots

    def normalize(self, snapshots: list[Snapshot]) -> None:
        for snapshot in snapshots:
            snapshot.documents = normalize_documents(
                snapshot.documents, snapshot.category.volatile_paths
            )

    def serialize(self, snapshots: list[Snapshot], result: RunResult) -> None:
        """Render everything first, then write, so a render error writes nothing."""
        rendered = [(snapshot.filename, render(snapshot.documents)) for snapshot in snapshots]
        for filename, text in rendered:
            changed = write_snapshot(self.output_dir / filename, text)
            result.files_written.append(filename)
            if changed:
                result.files_changed.append(filename)

    def commit(self, vcs: VersionControl, result: RunResult) -> None:
        vcs.stage(STAGE_PATTERN)
        result.commit = vcs.commit(self.commit_message)
        if self.push_enabled:
            result.push = vcs.push(self.remote, self.branch)

    # === Run ===

    def _run_stage(self, result: RunResult, stage: RunState, func, *args) -> tuple[bool, Any]:
        result.state = stage
        start = time.perf_counter()
        try:
            value = func(*args)
        except Exception as e:
            logger.error(f"{stage.value} failed: {e}")
            logger.debug(f"{stage.value} traceback", exc_info=True)
            result.stages.append(StageResult(
                stage=stage,
                success=False,
                error=str(e),
                duration_ms=(time.perf_counter() - start) * 1000,
            ))
            result.exception = e
            result.state = RunState.FAILED
            return False, None

        result.stages.append(StageResult(
            stage=stage,
            success=True,
            message=_describe(stage, value, result),
            duration_ms=(time.perf_counter() - start) * 1000,
        ))
        return True, value

    def run(self) -> RunResult:
        """Execute one export pass. Never raises for stage failures."""
        result = RunResult()

        ok, vcs = self._run_stage(result, RunState.VALIDATING, self.preflight)
        if not ok:
            return result

        self.timings = result.timings = FetchTimings()
        ok, snapshots = self._run_stage(result, RunState.FETCHING, self.fetch)
        if not ok:
            return result

        ok, _ = self._run_stage(result, RunState.NORMALIZING, self.normalize, snapshots)
        if not ok:
            return result

        ok, _ = self._run_stage(result, RunState.SERIALIZING, self.serialize, snapshots, result)
        if not ok:
            return result

        result.state = RunState.COMMITTING
        start = time.perf_counter()
        try:
            self.commit(vcs, result)
            result.stages.append(StageResult(
                stage=RunState.COMMITTING,
                success=True,
                message=_describe(RunState.COMMITTING, None, result),
                duration_ms=(time.perf_counter() - start) * 1000,
            ))
        except GitError as e:
            logger.error(f"git failed: {e}")
            result.stages.append(StageResult(
                stage=RunState.COMMITTING,
                success=False,
                error=str(e),
                duration_ms=(time.perf_counter() - start) * 1000,
            ))

        result.state = RunState.DONE
        return result


def _describe(stage: RunState, value, result: RunResult) -> str:
    if stage is RunState.VALIDATING:
        return "Preflight checks passed"
    if stage is RunState.FETCHING:
        return f"Fetched {len(value)} categories"
    if stage is RunState.NORMALIZING:
        return "Volatile fields stripped"
    if stage is RunState.SERIALIZING:
        return f"Wrote {len(result.files_written)} files, {len(result.files_changed)} changed"
    if stage is RunState.COMMITTING:
        if result.commit is None:
            return "No commit attempted"
        if result.commit.nothing_to_commit:
            commit = "nothing to commit"
        elif result.commit.success:
            commit = "committed"
        else:
            commit = f"commit failed (rc={result.commit.returncode})"
        if result.push is None:
            return commit
        push = "pushed" if result.push.success else f"push failed (rc={result.push.returncode})"
        return f"{commit}, {push}"
    return ""


class PreflightError(Exception):
    """Exception raised when the run cannot start."""
    pass


class RepositoryNotInitializedError(PreflightError):
    """The output directory is not a git working tree; message holds setup steps."""
    pass

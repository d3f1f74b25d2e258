"""Tests for the git integration of the export working tree."""
import shutil
import subprocess

import pytest

from nsx_config_archive.config_store import GitError, GitManager, GitResult

GIT = shutil.which("git")

requires_git = pytest.mark.skipif(GIT is None, reason="git executable not installed")


def git(cwd, *args):
    return subprocess.run([GIT, *args], cwd=cwd, check=True, capture_output=True, text=True)


@pytest.fixture
def repo(tmp_path):
    """An initialized export repository with a bare 'origin' remote."""
    remote = tmp_path / "remote.git"
    work = tmp_path / "exports"
    work.mkdir()
    git(tmp_path, "init", "--bare", str(remote))
    git(work, "init")
    git(work, "config", "user.name", "nsxdrift")
    git(work, "config", "user.email", "nsxdrift@localhost")
    git(work, "symbolic-ref", "HEAD", "refs/heads/master")
    git(work, "remote", "add", "origin", str(remote))
    git(work, "commit", "--allow-empty", "-m", "Initial commit")
    return GitManager(work, GIT)


class TestGitResult:
    """Tests for GitResult."""

    def test_success(self):
        result = GitResult(("add", "*.xml"), 0)
        assert result.success
        assert not result.nothing_to_commit
        assert "OK" in repr(result)

    def test_nothing_to_commit(self):
        result = GitResult(("commit",), 1, "On branch master\nnothing to commit, working tree clean\n")
        assert not result.success
        assert result.nothing_to_commit

    def test_real_failure(self):
        result = GitResult(("push",), 128, "fatal: could not read from remote repository\n")
        assert not result.nothing_to_commit
        assert "rc=128" in repr(result)


@requires_git
class TestGitManager:
    """Tests for GitManager against a real git executable."""

    def test_is_work_tree(self, repo):
        assert repo.is_work_tree() is True

    def test_plain_directory_is_not_work_tree(self, tmp_path, monkeypatch):
        plain = tmp_path / "plain"
        plain.mkdir()
        manager = GitManager(plain, GIT)
        # keep git from finding an enclosing repository
        monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))

        assert manager.is_work_tree() is False

    def test_directory_inside_another_repository(self, repo):
        nested = repo.repo_path / "exports"
        nested.mkdir()

        assert GitManager(nested, GIT).is_work_tree() is False

    def test_top_level(self, repo):
        assert repo.top_level() == repo.repo_path.resolve()

    def test_stage_and_commit(self, repo):
        (repo.repo_path / "IpSets.xml").write_text("<list/>\n")

        assert repo.stage("*.xml").success
        result = repo.commit("nsxdrift: export")

        assert result.success
        assert len(repo.rev_parse()) == 40
        log = git(repo.repo_path, "log", "--format=%s", "-n1").stdout.strip()
        assert log == "nsxdrift: export"

    def test_commit_picks_up_modified_tracked_files(self, repo):
        path = repo.repo_path / "Edges.xml"
        path.write_text("<edges/>\n")
        repo.stage("*.xml")
        repo.commit("first")

        path.write_text("<edges><edge/></edges>\n")
        result = repo.commit("second")

        assert result.success

    def test_nothing_to_commit_is_benign(self, repo):
        (repo.repo_path / "IpSets.xml").write_text("<list/>\n")
        repo.stage("*.xml")
        repo.commit("first")
        head = repo.rev_parse()

        repo.stage("*.xml")
        result = repo.commit("second")

        assert result.nothing_to_commit
        assert repo.rev_parse() == head

    def test_push(self, repo):
        (repo.repo_path / "IpSets.xml").write_text("<list/>\n")
        repo.stage("*.xml")
        repo.commit("export")

        result = repo.push("origin", "master")

        assert result.success
        remote_head = git(repo.repo_path, "ls-remote", "origin", "refs/heads/master").stdout.split()[0]
        assert remote_head == repo.rev_parse()

    def test_push_failure_reported(self, repo):
        git(repo.repo_path, "remote", "set-url", "origin", str(repo.repo_path.parent / "missing.git"))

        result = repo.push("origin", "master")

        assert not result.success
        assert result.output


class TestGitErrors:
    """Tests for git executable failures."""

    def test_missing_executable(self, tmp_path):
        manager = GitManager(tmp_path, str(tmp_path / "no-such-git"))

        with pytest.raises(GitError):
            manager.is_work_tree()

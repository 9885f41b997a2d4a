import shutil
import sys

import pytest

from pmu_cli.core.git_ops import GitError, create_annotated_tag, create_branch, run_command

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def _git_identity(monkeypatch):
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")


def _git(path, *args):
    code, _, stderr = run_command(["git", *args], cwd=path)
    assert code == 0, stderr


@pytest.fixture
def repo(tmp_path, _git_identity):
    path = tmp_path / "repo"
    path.mkdir()
    _git(path, "init", "--initial-branch=main")
    (path / "README.md").write_text("hello", encoding="utf-8")
    _git(path, "add", ".")
    _git(path, "commit", "-m", "Initial")
    return path


def test_run_command_captures_stdout():
    code, stdout, stderr = run_command([sys.executable, "-c", "print('hello world')"])
    assert code == 0
    assert stdout == "hello world"
    assert stderr == ""


def test_run_command_returns_nonzero_exit():
    code, _, stderr = run_command([sys.executable, "-c", "import sys; sys.stderr.write('boom\\n'); sys.exit(3)"])
    assert code == 3
    assert stderr == "boom"


@requires_git
def test_create_branch_checks_out_new_branch(repo):
    create_branch("release/v2.0.0", cwd=repo)

    _, stdout, _ = run_command(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=repo)
    assert stdout == "release/v2.0.0"


@requires_git
def test_create_branch_twice_raises(repo):
    create_branch("v1.2.0", cwd=repo)

    with pytest.raises(GitError, match="git checkout -b failed"):
        create_branch("v1.2.0", cwd=repo)


@requires_git
def test_create_annotated_tag(repo):
    create_annotated_tag("v1.2.0", "Release v1.2.0", cwd=repo)

    _, stdout, _ = run_command(["git", "cat-file", "-t", "v1.2.0"], cwd=repo)
    assert stdout == "tag"

    with pytest.raises(GitError, match="git tag failed"):
        create_annotated_tag("v1.2.0", "Release v1.2.0", cwd=repo)


def test_missing_git_executable(monkeypatch):
    def fake_run(*args, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr("pmu_cli.core.git_ops.subprocess.run", fake_run)

    with pytest.raises(GitError, match="git executable not found"):
        create_branch("v1.0.0")

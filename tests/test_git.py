import os
import subprocess
from pathlib import Path

import pytest

from crate_release import git
from crate_release.git import GitError


def _git(cwd, *args):
    proc = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)
    return proc.stdout.decode().strip()


def _head(cwd):
    return _git(cwd, "rev-parse", "HEAD")


def _commit_change(cwd, name="README.md", text="more\n"):
    with (Path(cwd) / name).open("a") as handle:
        handle.write(text)
    _git(cwd, "add", name)
    _git(cwd, "commit", "-m", f"change {name}")


@pytest.fixture(autouse=True)
def git_env(monkeypatch, tmp_path):
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")


def _make_repo(path):
    path.mkdir()
    _git(path, "init")
    _git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(path, "config", "commit.gpgsign", "false")
    _git(path, "config", "tag.gpgsign", "false")
    (path / "README.md").write_text("hello\n")
    _git(path, "add", "README.md")
    _git(path, "commit", "-m", "initial")
    return path


@pytest.fixture
def repo(tmp_path):
    return _make_repo(tmp_path / "repo")


@pytest.fixture
def clone(tmp_path, repo):
    target = tmp_path / "clone"
    _git(tmp_path, "clone", str(repo), str(target))
    _git(target, "config", "commit.gpgsign", "false")
    return target


def test_current_branch(repo):
    assert git.current_branch(repo) == "main"


def test_top_level_from_subdirectory(repo):
    sub = repo / "sub"
    sub.mkdir()
    assert git.top_level(sub).resolve() == repo.resolve()


def test_not_a_repository_raises(tmp_path):
    plain = tmp_path / "plain"
    plain.mkdir()
    with pytest.raises(GitError):
        git.current_branch(plain)


def test_is_dirty_clean(repo):
    assert git.is_dirty(repo) is None


def test_is_dirty_untracked(repo):
    (repo / "new.txt").write_text("x\n")
    assert git.is_dirty(repo) == ["new.txt (WT_NEW)"]


def test_is_dirty_modified(repo):
    (repo / "README.md").write_text("changed\n")
    entries = git.is_dirty(repo)
    assert len(entries) == 1
    assert entries[0].startswith("README.md (")


def test_commit_all_dry_run_keeps_head(repo):
    before = _head(repo)
    (repo / "README.md").write_text("changed\n")
    assert git.commit_all(repo, "msg", False, True) is True
    assert _head(repo) == before
    assert git.is_dirty(repo) is not None and len(git.is_dirty(repo)) == 1


def test_commit_all_commits(repo):
    before = _head(repo)
    (repo / "README.md").write_text("changed\n")
    assert git.commit_all(repo, "chore: Release", False, False) is True
    assert _head(repo) != before
    assert git.is_dirty(repo) is None
    assert _git(repo, "log", "-1", "--format=%s") == "chore: Release"


def test_commit_all_nothing_to_commit(repo):
    before = _head(repo)
    assert git.commit_all(repo, "msg", False, False) is True
    assert _head(repo) == before


def test_tag_and_find_last_tag(repo):
    assert git.tag(repo, "v1.0.0", "release", False, False) is True
    assert git.tag_exists(repo, "v1.0.0") is True
    assert git.tag_exists(repo, "v9.9.9") is False
    assert git.find_last_tag(repo, "v*") == "v1.0.0"
    assert git.find_last_tag(repo, "other-*") is None


def test_tag_dry_run_creates_nothing(repo):
    assert git.tag(repo, "v2.0.0", "release", False, True) is True
    assert git.tag_exists(repo, "v2.0.0") is False


def test_lightweight_tag_is_not_last_tag(repo):
    assert git.tag(repo, "w1", "", False, False) is True
    assert git.tag_exists(repo, "w1") is True
    assert git.find_last_tag(repo, "w*") is None


def test_find_last_tag_prefers_nearest(repo):
    git.tag(repo, "v1", "first", False, False)
    _commit_change(repo)
    git.tag(repo, "v2", "second", False, False)
    _commit_change(repo)
    assert git.find_last_tag(repo, "v*") == "v2"


def test_changed_files(repo):
    git.tag(repo, "v1", "first", False, False)
    assert git.changed_files(repo, "v1") == []
    _commit_change(repo)
    changed = git.changed_files(repo, "v1")
    assert [p.resolve() for p in changed] == [(repo / "README.md").resolve()]


def test_changed_files_missing_tag(repo):
    assert git.changed_files(repo, "missing-tag") is None


def test_push_without_refs_succeeds(repo):
    assert git.push(repo, "origin", [], [], False) is True


def test_push_dry_run(clone, repo):
    before = _head(repo)
    _commit_change(clone)
    assert git.push(clone, "origin", ["main"], ["ci.skip"], True) is True
    assert _head(repo) == before


def test_missing_remote_branch_warns(repo, capsys):
    assert git.is_behind_remote(repo, "origin", "main") is False
    assert "doesn't exist" in capsys.readouterr().err
    assert git.is_local_unchanged(repo, "origin", "main") is False


def test_remote_comparison(clone, repo):
    assert git.is_behind_remote(clone, "origin", "main") is False
    assert git.is_local_unchanged(clone, "origin", "main") is True

    _commit_change(clone)
    assert git.is_behind_remote(clone, "origin", "main") is False
    assert git.is_local_unchanged(clone, "origin", "main") is False

    _commit_change(repo, "other.txt", "x\n")
    git.fetch(clone, "origin", "main")
    assert git.is_behind_remote(clone, "origin", "main") is True


def test_missing_git(monkeypatch, tmp_path):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(GitError, match="not found"):
        git.git_version()
    with pytest.raises(GitError, match="not found"):
        git.fetch(tmp_path, "origin", "main")
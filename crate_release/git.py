"""Queries and actions on a git repository, driven through the git command."""

from __future__ import annotations

import fnmatch
import logging
import os
import subprocess
from collections.abc import Iterable
from pathlib import Path

from crate_release import shell
from crate_release.cmd import call_on_path

_logger = logging.getLogger(__name__)

_CONFLICTS = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}
_INDEX_FLAGS = {
    "M": "INDEX_MODIFIED",
    "A": "INDEX_NEW",
    "D": "INDEX_DELETED",
    "R": "INDEX_RENAMED",
    "T": "INDEX_TYPECHANGE",
}
_WORKTREE_FLAGS = {
    "M": "WT_MODIFIED",
    "D": "WT_DELETED",
    "T": "WT_TYPECHANGE",
    "R": "WT_RENAMED",
}


class GitError(Exception):
    """Raised when git is missing or a repository query fails."""


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _run(
    args: list[str], cwd: str | os.PathLike | None = None, check: bool = True
) -> subprocess.CompletedProcess[bytes]:
    try:
        proc = subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=False)
    except OSError as exc:
        raise GitError("`git` not found") from exc
    if check and proc.returncode != 0:
        message = _decode(proc.stderr).strip()
        raise GitError(f"`git {' '.join(args)}` failed: {message}")
    return proc


def _output(args: list[str], cwd: str | os.PathLike | None = None) -> str:
    return _decode(_run(args, cwd).stdout).strip()


def _rev(path: str | os.PathLike, rev: str) -> str:
    proc = _run(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"], path, check=False)
    if proc.returncode != 0:
        raise GitError(f"revision `{rev}` not found")
    return _decode(proc.stdout).strip()


def _git_dir(path: str | os.PathLike) -> Path:
    return Path(_output(["rev-parse", "--absolute-git-dir"], path))


def _compare_with_remote(
    path: str | os.PathLike, remote: str, branch: str
) -> tuple[str, str, str] | None:
    """Return (branch id, remote branch id, merge base), or ``None`` without a remote branch."""
    branch_id = _rev(path, branch)
    remote_branch = f"{remote}/{branch}"
    try:
        remote_id = _rev(path, remote_branch)
    except GitError as exc:
        shell.warn(f"push target `{remote_branch}` doesn't exist")
        _logger.debug("error %s", exc)
        return None
    base_id = _output(["merge-base", remote_id, branch_id], path)
    _logger.debug("%s: %s", remote_branch, remote_id)
    _logger.debug("merge base: %s", base_id)
    return branch_id, remote_id, base_id


def fetch(path: str | os.PathLike, remote: str, branch: str) -> None:
    """Fetch ``branch`` from ``remote``; only a missing git is an error."""
    _run(["fetch", remote, branch], path, check=False)


def is_behind_remote(path: str | os.PathLike, remote: str, branch: str) -> bool:
    """Whether the remote branch has commits the local branch lacks."""
    compared = _compare_with_remote(path, remote, branch)
    if compared is None:
        return False
    _, remote_id, base_id = compared
    return base_id != remote_id


def is_local_unchanged(path: str | os.PathLike, remote: str, branch: str) -> bool:
    """Whether the local branch has no commits beyond the remote branch."""
    compared = _compare_with_remote(path, remote, branch)
    if compared is None:
        return False
    branch_id, _, base_id = compared
    return base_id == branch_id


def current_branch(path: str | os.PathLike) -> str:
    """The checked-out branch's short name, or ``HEAD`` when detached."""
    name = _output(["rev-parse", "--abbrev-ref", "HEAD"], path)
    return name or "HEAD"


def _repository_state(git_dir: Path) -> str | None:
    rebase_merge = git_dir / "rebase-merge"
    if rebase_merge.is_dir():
        return "RebaseInteractive" if (rebase_merge / "interactive").exists() else "RebaseMerge"
    rebase_apply = git_dir / "rebase-apply"
    if rebase_apply.is_dir():
        if (rebase_apply / "rebasing").exists():
            return "Rebase"
        if (rebase_apply / "applying").exists():
            return "ApplyMailbox"
        return "ApplyMailboxOrRebase"
    sequence = (git_dir / "sequencer" / "todo").exists()
    if (git_dir / "MERGE_HEAD").exists():
        return "Merge"
    if (git_dir / "REVERT_HEAD").exists():
        return "RevertSequence" if sequence else "Revert"
    if (git_dir / "CHERRY_PICK_HEAD").exists():
        return "CherryPickSequence" if sequence else "CherryPick"
    if (git_dir / "BISECT_LOG").exists():
        return "Bisect"
    return None


def _status_flags(code: str) -> str:
    if code == "??":
        return "WT_NEW"
    if code in _CONFLICTS:
        return "CONFLICTED"
    flags = []
    if code[0] in _INDEX_FLAGS:
        flags.append(_INDEX_FLAGS[code[0]])
    if code[1] in _WORKTREE_FLAGS:
        flags.append(_WORKTREE_FLAGS[code[1]])
    return " | ".join(flags)


def _statuses(path: str | os.PathLike) -> list[tuple[str, str]]:
    raw = _decode(_run(["status", "--porcelain=v1", "-z"], path).stdout)
    parts = iter(raw.split("\0"))
    entries = []
    for part in parts:
        if len(part) < 4:
            continue
        code, name = part[:2], part[3:]
        if code[0] in "RC":
            next(parts, None)  # the original path of a rename or copy
        entries.append((name, _status_flags(code)))
    return entries


def is_dirty(path: str | os.PathLike) -> list[str] | None:
    """Reasons the working tree is not clean, or ``None`` if it is."""
    entries = []
    state = _repository_state(_git_dir(path))
    if state is not None:
        entries.append(f"Dirty because of state {state}")
    entries.extend(f"{Path(name)} ({flags})" for name, flags in _statuses(path))
    return entries or None


def changed_files(path: str | os.PathLike, tag: str) -> list[Path] | None:
    """Files under ``path`` changed since ``tag``; ``None`` if git cannot tell."""
    root = top_level(path)
    proc = _run(
        ["diff", f"{tag}..HEAD", "--name-only", "--exit-code", "--", "."], path, check=False
    )
    if proc.returncode == 0:
        return []
    if proc.returncode == 1:
        return [root / line for line in _decode(proc.stdout).splitlines() if line]
    return None


def commit_all(path: str | os.PathLike, msg: str, sign: bool, dry_run: bool) -> bool:
    """Commit all tracked changes; return whether git succeeded."""
    if _statuses(path) or dry_run:
        return call_on_path(["git", "commit", "-S" if sign else "", "-am", msg], path, dry_run)
    _logger.debug("No files changed, skipping commit")
    return True


def tag(path: str | os.PathLike, name: str, msg: str, sign: bool, dry_run: bool) -> bool:
    """Create a tag, annotated when ``msg`` is not empty."""
    command = ["git", "tag", name]
    if msg:
        command += ["-a", "-m", msg]
        if sign:
            command.append("-s")
    return call_on_path(command, path, dry_run)


def tag_exists(path: str | os.PathLike, name: str) -> bool:
    """Whether a tag matching ``name`` exists."""
    return bool(_output(["tag", "--list", name], path))


def find_last_tag(path: str | os.PathLike, glob: str) -> str | None:
    """The annotated tag matching ``glob`` nearest to HEAD along first parents."""
    try:
        refs = _output(
            [
                "for-each-ref",
                "refs/tags",
                "--format=%(objecttype)%09%(*objecttype)%09%(*objectname)%09%(refname)",
            ],
            path,
        )
        tags: dict[str, str] = {}
        for line in refs.splitlines():
            objtype, peeled_type, peeled_id, refname = line.split("\t", 3)
            name = refname.removeprefix("refs/tags/")
            if objtype != "tag" or peeled_type != "commit":
                continue
            if fnmatch.fnmatchcase(name, glob):
                tags[peeled_id] = name
        history = _output(["rev-list", "--first-parent", "HEAD"], path)
    except (GitError, ValueError):
        return None
    return next((tags[c] for c in history.splitlines() if c in tags), None)


def push(
    path: str | os.PathLike,
    remote: str,
    refs: Iterable[str],
    options: Iterable[str],
    dry_run: bool,
) -> bool:
    """Atomically push ``refs`` to ``remote``; nothing to push counts as success."""
    # Atomic, so that a diverged branch also keeps its tag from being pushed.
    command = ["git", "push", "--atomic"]
    for option in options:
        command += ["--push-option", option]
    command.append(remote)
    refs = list(refs)
    if not refs:
        return True
    command += refs
    return call_on_path(command, path, dry_run)


def top_level(path: str | os.PathLike) -> Path:
    """The working-tree root of the repository holding ``path``."""
    if _output(["rev-parse", "--is-bare-repository"], path) == "true":
        raise GitError("bare repos are unsupported")
    return Path(_output(["rev-parse", "--show-toplevel"], path))


def git_version() -> None:
    """Check that git can be run."""
    _run(["--version"], check=False)
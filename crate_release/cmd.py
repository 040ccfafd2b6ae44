"""Running external commands, with a dry-run mode that only logs."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable, Mapping
from pathlib import Path

_logger = logging.getLogger(__name__)


def _do_call(
    command: Iterable[str],
    path: str | os.PathLike | None,
    envs: Mapping[str, str] | None,
    dry_run: bool,
) -> bool:
    args = [os.fspath(part) if isinstance(part, os.PathLike) else str(part) for part in command]
    if dry_run:
        if path is not None:
            _logger.debug("cd %s", Path(path))
        _logger.debug("%s", " ".join(args))
        return True
    if not args:
        raise ValueError("cannot run an empty command")
    name, *rest = args
    argv = [name, *(arg for arg in rest if arg)]
    env = None
    if envs is not None:
        env = {**os.environ, **{os.fsdecode(k): os.fsdecode(v) for k, v in envs.items()}}
    try:
        completed = subprocess.run(argv, cwd=path, env=env, check=False)
    except OSError as exc:
        raise RuntimeError(f"failed to launch `{name}`: {exc}") from exc
    return completed.returncode == 0


def call(command: Iterable[str], dry_run: bool) -> bool:
    """Run a command; return whether it succeeded."""
    return _do_call(command, None, None, dry_run)


def call_on_path(command: Iterable[str], path: str | os.PathLike, dry_run: bool) -> bool:
    """Run a command in ``path``; return whether it succeeded."""
    return _do_call(command, path, None, dry_run)


def call_with_env(
    command: Iterable[str],
    envs: Mapping[str, str],
    path: str | os.PathLike,
    dry_run: bool,
) -> bool:
    """Run a command in ``path`` with extra environment variables."""
    return _do_call(command, path, envs, dry_run)
"""Unified diffs of text files."""

from __future__ import annotations

import difflib
import os
import re

_LINE = re.compile(r"[^\n]*\n|[^\n]+")
_NO_NEWLINE = "\\ No newline at end of file"


def _lines(text: str) -> list[str]:
    return _LINE.findall(text)


def unified_diff(old: str, new: str, path: str | os.PathLike, new_description: str) -> str:
    """Return a unified diff of ``old`` and ``new``; empty when they agree."""
    name = os.fspath(path)
    diff = difflib.unified_diff(
        _lines(old),
        _lines(new),
        fromfile=f"{name}\toriginal",
        tofile=f"{name}\t{new_description}",
    )
    out = []
    for line in diff:
        if not line.endswith("\n"):
            line = f"{line}\n{_NO_NEWLINE}\n"
        out.append(line)
    return "".join(out)
"""Templated regex replacements in files."""

from __future__ import annotations

import datetime
import logging
import os
import re
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from crate_release import shell
from crate_release.config import Replace
from crate_release.diff import unified_diff

_logger = logging.getLogger(__name__)

_REFERENCE = re.compile(r"\$(?:\$|\{([_0-9A-Za-z]+)\}|([_0-9A-Za-z]+))")


class ReplaceError(Exception):
    """Raised when a replacement cannot be carried out as configured."""


def today() -> str:
    """Today's UTC date as ``YYYY-MM-DD``."""
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d")


def _render_var(text: str, name: str, value: str | None) -> str:
    if value is not None:
        return text.replace(name, value)
    if name in text:
        _logger.debug("Unrendered %s present in template %r", name, text)
    return text


@dataclass(frozen=True)
class Template:
    """Values substituted for ``{{name}}`` placeholders."""

    prev_version: str | None = None
    prev_metadata: str | None = None
    version: str | None = None
    metadata: str | None = None
    crate_name: str | None = None
    date: str | None = None
    prefix: str | None = None
    tag_name: str | None = None

    def render(self, text: str) -> str:
        """Substitute every placeholder that has a value."""
        for name in (
            "prev_version",
            "prev_metadata",
            "version",
            "metadata",
            "crate_name",
            "date",
            "prefix",
            "tag_name",
        ):
            text = _render_var(text, f"{{{{{name}}}}}", getattr(self, name))
        return text


def _expand(match: re.Match[str], replacement: str) -> str:
    """Expand ``$1``, ``$name``, ``${name}`` and ``$$`` against ``match``."""

    def substitute(ref: re.Match[str]) -> str:
        if ref.group(0) == "$$":
            return "$"
        name = ref.group(1) or ref.group(2)
        key: int | str = int(name) if name.isdigit() else name
        try:
            value = match.group(key)
        except IndexError:
            value = None
        return value or ""

    return _REFERENCE.sub(substitute, replacement)


def _read(path: Path) -> str:
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def _write(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(text)


def do_file_replacements(
    replace_config: Iterable[Replace],
    template: Template,
    cwd: str | os.PathLike,
    prerelease: bool,
    noisy: bool,
    dry_run: bool,
) -> bool:
    """Apply the configured replacements to files under ``cwd``.

    Files are processed in sorted order; in a dry run nothing is written.
    """
    by_file: dict[Path, list[Replace]] = {}
    for replace in replace_config:
        by_file.setdefault(Path(replace.file), []).append(replace)

    for path in sorted(by_file):
        file = Path(cwd) / path
        _logger.debug("processing replacements for file %s", file)
        if not file.exists():
            raise ReplaceError(f"unable to find file {file} to perform replace")
        data = _read(file)
        replaced = data

        for replace in by_file[path]:
            if prerelease and not replace.prerelease:
                _logger.debug("pre-release, not replacing %s", replace.search)
                continue
            pattern = replace.search
            try:
                regex = re.compile(pattern, re.MULTILINE)
            except re.error as exc:
                raise ReplaceError(f"invalid pattern `{pattern}`: {exc}") from exc

            minimum = next((n for n in (replace.min, replace.exactly) if n is not None), 1)
            maximum = next((n for n in (replace.max, replace.exactly) if n is not None), sys.maxsize)
            actual = sum(1 for _ in regex.finditer(replaced))
            if actual < minimum:
                raise ReplaceError(
                    f"for `{pattern}` in '{path}', at least {minimum} "
                    f"replacements expected, found {actual}"
                )
            if maximum < actual:
                raise ReplaceError(
                    f"for `{pattern}` in '{path}', at most {maximum} "
                    f"replacements expected, found {actual}"
                )

            rendered = template.render(replace.replace)
            replaced = regex.sub(lambda m: _expand(m, rendered), replaced)

        if data == replaced:
            _logger.debug("%s is unchanged", file)
        elif dry_run:
            if noisy:
                diff = unified_diff(data, replaced, path, "replaced")
                shell.status("Replacing", f"in {path}\n{diff}")
            else:
                shell.status("Replacing", f"in {path}")
        else:
            _write(file, replaced)
    return True
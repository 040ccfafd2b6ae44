"""Classifying commits by their conventional-commit messages."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from pathlib import Path

from crate_release import shell
from crate_release.shell import Color, ColorSpec
from crate_release.version import Version

_SUMMARY = re.compile(
    r"(?P<type>[A-Za-z0-9_-]+)(?:\((?P<scope>[^()\r\n]+)\))?(?P<bang>!)?: (?P<desc>\S.*)"
)
_FOOTER = re.compile(r"(?P<token>BREAKING CHANGE|[A-Za-z0-9-]+)(?:: | #)(?P<value>.*)")
_BREAKING_TOKENS = {"BREAKING CHANGE", "BREAKING-CHANGE"}

_IGNORE_TYPES = {"chore", "test", "style", "refactor", "revert"}
_FIX_TYPES = {"docs", "perf", "fix"}
_FEATURE_TYPES = {"feat"}


class CommitStatus(enum.IntEnum):
    """How much a commit matters for the next version, least first."""

    IGNORE = 0
    FIX = 1
    FEATURE = 2
    BREAKING = 3


def _parse_footers(paragraph: str) -> list[tuple[str, str]]:
    lines = paragraph.splitlines()
    if not lines or not _FOOTER.fullmatch(lines[0]):
        return []
    footers: list[tuple[str, str]] = []
    for line in lines:
        match = _FOOTER.fullmatch(line)
        if match:
            footers.append((match["token"], match["value"]))
        else:
            token, value = footers[-1]
            footers[-1] = (token, f"{value}\n{line}")
    return footers


@dataclass(frozen=True)
class ConventionalCommit:
    """The parts of a ``type(scope)!: description`` commit message."""

    type: str
    description: str
    scope: str | None = None
    body: str | None = None
    footers: tuple[tuple[str, str], ...] = ()
    exclamation: bool = False

    @staticmethod
    def parse(message: str) -> ConventionalCommit:
        """Parse a commit message; raise ``ValueError`` if it is not conventional."""
        summary, _, rest = message.strip("\n").partition("\n")
        match = _SUMMARY.fullmatch(summary.rstrip("\r"))
        if match is None:
            raise ValueError(f"not a conventional commit: {summary!r}")
        paragraphs = [p.strip("\n") for p in re.split(r"\n\s*\n", rest.strip("\n")) if p.strip()]
        footers: list[tuple[str, str]] = []
        if paragraphs:
            footers = _parse_footers(paragraphs[-1])
            if footers:
                paragraphs = paragraphs[:-1]
        return ConventionalCommit(
            type=match["type"],
            description=match["desc"],
            scope=match["scope"],
            body="\n\n".join(paragraphs) or None,
            footers=tuple(footers),
            exclamation=match["bang"] is not None,
        )

    @property
    def breaking(self) -> bool:
        return self.exclamation or any(token in _BREAKING_TOKENS for token, _ in self.footers)


@dataclass(frozen=True)
class PackageCommit:
    """A commit touching a package's files."""

    id: str
    short_id: str
    summary: str
    message: str
    paths: frozenset[Path] = field(default_factory=frozenset)

    def status(self) -> CommitStatus | None:
        """The commit's weight; ``None`` for an unrecognised or unconventional commit."""
        try:
            parts = ConventionalCommit.parse(self.message)
        except ValueError:
            return None
        if parts.breaking:
            return CommitStatus.BREAKING
        kind = parts.type.lower()
        if kind in _IGNORE_TYPES:
            return CommitStatus.IGNORE
        if kind in _FIX_TYPES:
            return CommitStatus.FIX
        if kind in _FEATURE_TYPES:
            return CommitStatus.FEATURE
        return None


def suggest_bump(status: CommitStatus | None, version: Version, bumped: bool) -> str | None:
    """The release level to suggest after changes of ``status`` since ``version``.

    ``bumped`` tells whether the version was already raised since the last tag.
    Pre-releases get no suggestion.
    """
    if status is None or version.is_prerelease():
        return None
    major, minor, patch = version.major, version.minor, version.patch
    if status is CommitStatus.BREAKING:
        if major == 0 and minor == 0:
            return None if bumped else "patch"
        if major == 0:
            return None if bumped and patch == 0 else "minor"
        return None if bumped and minor == 0 and patch == 0 else "major"
    if status is CommitStatus.FEATURE:
        if major == 0:
            return None if bumped else "patch"
        return None if bumped and patch == 0 else "minor"
    if status is CommitStatus.FIX:
        return None if bumped else "patch"
    return None


def write_status(status: CommitStatus | None) -> None:
    """Write a coloured status suffix such as `` (fix)`` to stderr."""
    if status is None:
        return
    suffix, spec = {
        CommitStatus.BREAKING: (" (breaking)", ColorSpec(Color.RED)),
        CommitStatus.FEATURE: (" (feature)", ColorSpec(Color.YELLOW)),
        CommitStatus.FIX: (" (fix)", ColorSpec(Color.GREEN)),
        CommitStatus.IGNORE: ("", ColorSpec()),
    }[status]
    shell.write_stderr(suffix, spec)
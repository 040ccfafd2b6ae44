"""Semantic versions, version requirements and release-level bumps."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field, replace
from functools import total_ordering


class VersionError(ValueError):
    """Raised for malformed versions or unsupported version operations."""


_ALPHA = "alpha"
_BETA = "beta"
_RC = "rc"

_VERSION_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)(?:-([^+]*))?(?:\+(.*))?", re.ASCII)
_IDENT_RE = re.compile(r"[0-9A-Za-z-]+", re.ASCII)
_IDENT_CHARS = re.compile(r"[0-9A-Za-z.-]*", re.ASCII)
_DIGITS = re.compile(r"\d+", re.ASCII)
_WILDCARDS = "*xX"


def _number(digits: str, what: str) -> int:
    if len(digits) > 1 and digits.startswith("0"):
        raise VersionError(f"invalid leading zero in {what} version number")
    return int(digits)


def _check_identifiers(text: str, what: str, allow_leading_zero: bool) -> None:
    if not text:
        return
    for ident in text.split("."):
        if not ident:
            raise VersionError(f"empty identifier segment in {what}")
        if not _IDENT_RE.fullmatch(ident):
            raise VersionError(f"unexpected character in {what} identifier {ident!r}")
        if (
            not allow_leading_zero
            and ident.isdigit()
            and len(ident) > 1
            and ident.startswith("0")
        ):
            raise VersionError(f"invalid leading zero in {what} identifier {ident!r}")


def _pre_key(pre: str) -> tuple:
    """Sort key for a pre-release; an empty pre-release sorts last."""
    if not pre:
        return (1,)
    return (
        0,
        tuple((0, int(i), "") if i.isdigit() else (1, 0, i) for i in pre.split(".")),
    )


@total_ordering
@dataclass
class Version:
    """A semantic version: ``major.minor.patch[-pre][+build]``."""

    major: int
    minor: int
    patch: int
    pre: str = ""
    build: str = ""

    def __post_init__(self) -> None:
        if min(self.major, self.minor, self.patch) < 0:
            raise VersionError("version numbers must not be negative")
        _check_identifiers(self.pre, "pre-release", False)
        _check_identifiers(self.build, "build metadata", True)

    @staticmethod
    def parse(text: str) -> Version:
        """Parse a version string."""
        match = _VERSION_RE.fullmatch(text)
        if match is None:
            raise VersionError(f"invalid version {text!r}")
        major, minor, patch, pre, build = match.groups()
        if pre == "":
            raise VersionError("empty identifier segment in pre-release")
        if build == "":
            raise VersionError("empty identifier segment in build metadata")
        return Version(
            _number(major, "major"),
            _number(minor, "minor"),
            _number(patch, "patch"),
            pre or "",
            build or "",
        )

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += f"-{self.pre}"
        if self.build:
            text += f"+{self.build}"
        return text

    def _sort_key(self) -> tuple:
        build_key = (0,) if not self.build else (1, tuple(self.build.split(".")))
        return (self.major, self.minor, self.patch, _pre_key(self.pre), build_key)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def increment_major(self) -> None:
        """Bump the major number and clear everything after it."""
        self.major += 1
        self.minor = 0
        self.patch = 0
        self.pre = ""
        self.build = ""

    def increment_minor(self) -> None:
        """Bump the minor number and clear everything after it."""
        self.minor += 1
        self.patch = 0
        self.pre = ""
        self.build = ""

    def increment_patch(self) -> None:
        """Bump the patch number and clear pre-release and build metadata."""
        self.patch += 1
        self.pre = ""
        self.build = ""

    def _prerelease_id_version(self) -> tuple[str, int | None] | None:
        if not self.pre:
            return None
        name, sep, numeric = self.pre.partition(".")
        if not sep:
            return name, None
        if not numeric.isdigit():
            raise VersionError(
                f"pre-release `{self.pre}` version scheme is not supported.  "
                "Use format like `pre`, `dev`, or `alpha.1` for prerelease"
            )
        return name, int(numeric)

    def _increment_level(self, level: str, higher: tuple[str, ...]) -> None:
        current = self._prerelease_id_version()
        if current is None:
            self.increment_patch()
            self.pre = f"{level}.1"
            return
        name, number = current
        if name in higher:
            raise VersionError(
                f"unsupported release level {level}, "
                "only major, minor, and patch are supported"
            )
        new_number = (number or 0) + 1 if name == level else 1
        self.pre = f"{level}.{new_number}"

    def increment_alpha(self) -> None:
        """Move to the next alpha pre-release; fails past alpha."""
        self._increment_level(_ALPHA, (_BETA, _RC))

    def increment_beta(self) -> None:
        """Move to the next beta pre-release; fails past beta."""
        self._increment_level(_BETA, (_RC,))

    def increment_rc(self) -> None:
        """Move to the next release-candidate pre-release."""
        self._increment_level(_RC, ())

    def set_metadata(self, build: str) -> None:
        """Replace the build metadata."""
        _check_identifiers(build, "build metadata", True)
        self.build = build

    def is_prerelease(self) -> bool:
        """Whether the version carries a pre-release tag."""
        return bool(self.pre)


class Op(enum.Enum):
    """Operator of a requirement comparator."""

    EXACT = "="
    GREATER = ">"
    GREATER_EQ = ">="
    LESS = "<"
    LESS_EQ = "<="
    TILDE = "~"
    CARET = "^"
    WILDCARD = "*"

    @property
    def symbol(self) -> str:
        return "" if self is Op.WILDCARD else self.value


_PARSE_ORDER = (Op.GREATER_EQ, Op.LESS_EQ, Op.GREATER, Op.LESS, Op.EXACT, Op.TILDE, Op.CARET)


@dataclass
class Comparator:
    """One operator applied to a possibly partial version."""

    op: Op
    major: int
    minor: int | None = None
    patch: int | None = None
    pre: str = ""

    def __str__(self) -> str:
        text = f"{self.op.symbol}{self.major}"
        if self.minor is not None:
            text += f".{self.minor}"
            if self.patch is not None:
                text += f".{self.patch}"
                if self.pre:
                    text += f"-{self.pre}"
            elif self.op is Op.WILDCARD:
                text += ".*"
        elif self.op is Op.WILDCARD:
            text += ".*"
        return text

    def matches(self, version: Version) -> bool:
        """Whether ``version`` satisfies this comparator alone."""
        return self._matches_impl(version) and (
            not version.pre or self._pre_is_compatible(version)
        )

    def _pre_is_compatible(self, ver: Version) -> bool:
        return (
            self.major == ver.major
            and self.minor == ver.minor
            and self.patch == ver.patch
            and bool(self.pre)
        )

    def _matches_impl(self, ver: Version) -> bool:
        match self.op:
            case Op.EXACT | Op.WILDCARD:
                return self._matches_exact(ver)
            case Op.GREATER:
                return self._matches_greater(ver)
            case Op.GREATER_EQ:
                return self._matches_exact(ver) or self._matches_greater(ver)
            case Op.LESS:
                return self._matches_less(ver)
            case Op.LESS_EQ:
                return self._matches_exact(ver) or self._matches_less(ver)
            case Op.TILDE:
                return self._matches_tilde(ver)
            case Op.CARET:
                return self._matches_caret(ver)
        raise AssertionError(self.op)

    def _matches_exact(self, ver: Version) -> bool:
        if ver.major != self.major:
            return False
        if self.minor is not None and ver.minor != self.minor:
            return False
        if self.patch is not None and ver.patch != self.patch:
            return False
        return ver.pre == self.pre

    def _matches_greater(self, ver: Version) -> bool:
        if ver.major != self.major:
            return ver.major > self.major
        if self.minor is None:
            return False
        if ver.minor != self.minor:
            return ver.minor > self.minor
        if self.patch is None:
            return False
        if ver.patch != self.patch:
            return ver.patch > self.patch
        return _pre_key(ver.pre) > _pre_key(self.pre)

    def _matches_less(self, ver: Version) -> bool:
        if ver.major != self.major:
            return ver.major < self.major
        if self.minor is None:
            return False
        if ver.minor != self.minor:
            return ver.minor < self.minor
        if self.patch is None:
            return False
        if ver.patch != self.patch:
            return ver.patch < self.patch
        return _pre_key(ver.pre) < _pre_key(self.pre)

    def _matches_tilde(self, ver: Version) -> bool:
        if ver.major != self.major:
            return False
        if self.minor is not None and ver.minor != self.minor:
            return False
        if self.patch is not None and ver.patch != self.patch:
            return ver.patch > self.patch
        return _pre_key(ver.pre) >= _pre_key(self.pre)

    def _matches_caret(self, ver: Version) -> bool:
        if ver.major != self.major:
            return False
        minor = self.minor
        if minor is None:
            return True
        patch = self.patch
        if patch is None:
            return ver.minor >= minor if self.major > 0 else ver.minor == minor
        if self.major > 0:
            if ver.minor != minor:
                return ver.minor > minor
            if ver.patch != patch:
                return ver.patch > patch
        elif minor > 0:
            if ver.minor != minor:
                return False
            if ver.patch != patch:
                return ver.patch > patch
        elif ver.minor != minor or ver.patch != patch:
            return False
        return _pre_key(ver.pre) >= _pre_key(self.pre)


def _strip_wildcard(text: str) -> str | None:
    if text[:1] and text[0] in _WILDCARDS:
        return text[1:]
    return None


def _numeric(text: str) -> tuple[int, str]:
    match = _DIGITS.match(text)
    if match is None:
        raise VersionError(f"unexpected input {text!r}, expected a version number")
    return _number(match.group(), "requirement"), text[match.end():]


def _identifier(text: str, what: str, allow_leading_zero: bool) -> tuple[str, str]:
    match = _IDENT_CHARS.match(text)
    ident = match.group()
    if not ident:
        raise VersionError(f"empty identifier segment in {what}")
    _check_identifiers(ident, what, allow_leading_zero)
    return ident, text[match.end():]


def _parse_comparator(text: str) -> tuple[Comparator, str]:
    op = None
    for candidate in _PARSE_ORDER:
        if text.startswith(candidate.value):
            op = candidate
            text = text[len(candidate.value):]
            break
    default_op = op is None
    if op is None:
        op = Op.CARET
    text = text.lstrip(" ")
    major, text = _numeric(text)
    minor = patch = None
    has_wildcard = False
    if text.startswith("."):
        text = text[1:]
        rest = _strip_wildcard(text)
        if rest is not None:
            has_wildcard = True
            text = rest
            if default_op:
                op = Op.WILDCARD
        else:
            minor, text = _numeric(text)
    if text.startswith("."):
        text = text[1:]
        rest = _strip_wildcard(text)
        if rest is not None:
            has_wildcard = True
            text = rest
            if default_op:
                op = Op.WILDCARD
        elif has_wildcard:
            raise VersionError("unexpected character after wildcard in version req")
        else:
            patch, text = _numeric(text)
    pre = ""
    if patch is not None and text.startswith("-"):
        pre, text = _identifier(text[1:], "pre-release", False)
    if patch is not None and text.startswith("+"):
        _, text = _identifier(text[1:], "build metadata", True)
    return Comparator(op, major, minor, patch, pre), text.lstrip(" ")


@dataclass
class VersionReq:
    """A comma-separated set of comparators; empty matches everything."""

    comparators: list[Comparator] = field(default_factory=list)

    @staticmethod
    def parse(text: str) -> VersionReq:
        """Parse a requirement such as ``^1.2``, ``~1.0.3`` or ``>=1, <2``."""
        text = text.lstrip(" ")
        rest = _strip_wildcard(text)
        if rest is not None:
            rest = rest.lstrip(" ")
            if not rest:
                return VersionReq()
            raise VersionError(f"unexpected input after wildcard in {text!r}")
        if not text:
            raise VersionError("empty string, expected a semver version")
        comparators = []
        while True:
            comparator, text = _parse_comparator(text)
            comparators.append(comparator)
            if not text:
                break
            if not text.startswith(","):
                raise VersionError(f"unexpected character {text[0]!r} in version req")
            text = text[1:].lstrip(" ")
        return VersionReq(comparators)

    def __str__(self) -> str:
        if not self.comparators:
            return "*"
        return ", ".join(str(c) for c in self.comparators)

    def matches(self, version: Version) -> bool:
        """Whether ``version`` satisfies every comparator."""
        if not all(c._matches_impl(version) for c in self.comparators):
            return False
        if not version.pre:
            return True
        return any(c._pre_is_compatible(version) for c in self.comparators)


def _set_comparator(pred: Comparator, version: Version) -> Comparator:
    if pred.op is Op.WILDCARD:
        return replace(
            pred,
            major=version.major,
            minor=version.minor if pred.minor is not None else None,
            patch=version.patch if pred.patch is not None else None,
        )
    if pred.op in (Op.EXACT, Op.TILDE, Op.CARET):
        return replace(
            pred,
            major=version.major,
            minor=version.minor if pred.minor is not None else None,
            patch=version.patch if pred.patch is not None else None,
            pre=version.pre,
        )
    raise VersionError(f"support for modifying {pred} is currently unsupported")


def upgrade_requirement(req: str, version: Version) -> str | None:
    """Rewrite ``req`` to admit ``version``; ``None`` if it needs no change."""
    raw = VersionReq.parse(req)
    if not raw.comparators:
        return None
    new_req = VersionReq([_set_comparator(c, version) for c in raw.comparators])
    text = str(new_req)
    if text.startswith("^") and not req.startswith("^"):
        text = text[1:]
    return None if text == req else text
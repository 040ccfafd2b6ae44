import pytest

from crate_release.commits import (
    CommitStatus,
    ConventionalCommit,
    PackageCommit,
    suggest_bump,
    write_status,
)
from crate_release.version import Version


def _commit(message):
    return PackageCommit(id="abc", short_id="abc", summary=message.splitlines()[0], message=message)


def test_parse_simple():
    parts = ConventionalCommit.parse("feat: add thing")
    assert parts.type == "feat"
    assert parts.description == "add thing"
    assert parts.scope is None
    assert parts.breaking is False


def test_parse_scope_and_bang():
    parts = ConventionalCommit.parse("fix(parser)!: drop old syntax")
    assert parts.type == "fix"
    assert parts.scope == "parser"
    assert parts.description == "drop old syntax"
    assert parts.breaking is True


def test_parse_body_and_breaking_footer():
    message = "refactor: rework\n\nLonger explanation.\n\nBREAKING CHANGE: api removed\n"
    parts = ConventionalCommit.parse(message)
    assert parts.body == "Longer explanation."
    assert parts.footers == (("BREAKING CHANGE", "api removed"),)
    assert parts.breaking is True


def test_parse_rejects_unconventional():
    with pytest.raises(ValueError):
        ConventionalCommit.parse("Just some change")
    with pytest.raises(ValueError):
        ConventionalCommit.parse("feat: ")


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("chore: Release", CommitStatus.IGNORE),
        ("test: more", CommitStatus.IGNORE),
        ("style: fmt", CommitStatus.IGNORE),
        ("refactor: move", CommitStatus.IGNORE),
        ("revert: undo", CommitStatus.IGNORE),
        ("docs: typo", CommitStatus.FIX),
        ("perf: faster", CommitStatus.FIX),
        ("fix: bug", CommitStatus.FIX),
        ("FIX: bug", CommitStatus.FIX),
        ("feat: thing", CommitStatus.FEATURE),
        ("chore!: drop msrv", CommitStatus.BREAKING),
        ("build: tweak", None),
        ("Update readme", None),
    ],
)
def test_status(message, expected):
    assert _commit(message).status() == expected


def test_status_ordering():
    messages = ["fix: bug", "feat!: new api", "chore: tidy", "feat: thing"]
    statuses = [_commit(message).status() for message in messages]
    assert max(statuses) is CommitStatus.BREAKING
    assert min(statuses) is CommitStatus.IGNORE
    assert sorted(statuses) == [
        CommitStatus.IGNORE,
        CommitStatus.FIX,
        CommitStatus.FEATURE,
        CommitStatus.BREAKING,
    ]


@pytest.mark.parametrize(
    ("status", "version", "bumped", "expected"),
    [
        (CommitStatus.BREAKING, "1.2.3", True, "major"),
        (CommitStatus.BREAKING, "1.0.0", True, None),
        (CommitStatus.BREAKING, "1.0.0", False, "major"),
        (CommitStatus.BREAKING, "0.2.0", True, None),
        (CommitStatus.BREAKING, "0.2.1", True, "minor"),
        (CommitStatus.BREAKING, "0.2.0", False, "minor"),
        (CommitStatus.BREAKING, "0.0.3", True, None),
        (CommitStatus.BREAKING, "0.0.3", False, "patch"),
        (CommitStatus.FEATURE, "1.2.3", True, "minor"),
        (CommitStatus.FEATURE, "1.2.0", True, None),
        (CommitStatus.FEATURE, "0.3.1", False, "patch"),
        (CommitStatus.FEATURE, "0.3.1", True, None),
        (CommitStatus.FIX, "1.2.3", True, None),
        (CommitStatus.FIX, "1.2.3", False, "patch"),
        (CommitStatus.IGNORE, "1.2.3", False, None),
        (None, "1.2.3", False, None),
        (CommitStatus.BREAKING, "1.2.3-alpha.1", False, None),
    ],
)
def test_suggest_bump(status, version, bumped, expected):
    assert suggest_bump(status, Version.parse(version), bumped) == expected


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (CommitStatus.BREAKING, " (breaking)"),
        (CommitStatus.FEATURE, " (feature)"),
        (CommitStatus.FIX, " (fix)"),
        (CommitStatus.IGNORE, ""),
        (None, ""),
    ],
)
def test_write_status(status, expected, capsys):
    write_status(status)
    assert capsys.readouterr().err == expected
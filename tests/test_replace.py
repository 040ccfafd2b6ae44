import datetime
import re

import pytest

from crate_release.config import Replace
from crate_release.replace import ReplaceError, Template, do_file_replacements, today


def make(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_render_fills_known_placeholders():
    template = Template(crate_name="demo", version="1.2.3")
    assert template.render("chore: Release {{crate_name}} version {{version}}") == (
        "chore: Release demo version 1.2.3"
    )


def test_render_keeps_unset_placeholders():
    template = Template(version="2.0.0")
    assert template.render("{{prefix}}v{{version}}") == "{{prefix}}v2.0.0"


def test_render_prefix_and_tag_name():
    template = Template(prefix="demo-", tag_name="demo-v1.0.0")
    assert template.render("{{prefix}}|{{tag_name}}") == "demo-|demo-v1.0.0"


def test_today_is_iso_date():
    value = today()
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", value)
    assert datetime.date.fromisoformat(value).isoformat() == value


def test_replaces_with_template(tmp_path):
    path = make(tmp_path, "README.md", "demo = \"0.1.0\"\n")
    replaces = [Replace.from_dict({"file": "README.md", "search": r"0\.1\.0", "replace": "{{version}}"})]
    assert do_file_replacements(replaces, Template(version="1.0.0"), tmp_path, False, False, False)
    assert path.read_text(encoding="utf-8") == "demo = \"1.0.0\"\n"


def test_capture_group_references(tmp_path):
    path = make(tmp_path, "f.txt", "name-1.0\n")
    replaces = [
        Replace.from_dict(
            {"file": "f.txt", "search": r"(?P<n>\w+)-(\d)\.0", "replace": "${n}:$2 costs $$"}
        )
    ]
    do_file_replacements(replaces, Template(), tmp_path, False, False, False)
    assert path.read_text(encoding="utf-8") == "name:1 costs $\n"


def test_missing_group_expands_to_nothing(tmp_path):
    path = make(tmp_path, "f.txt", "abc\n")
    replaces = [Replace.from_dict({"file": "f.txt", "search": "b", "replace": "[$missing]"})]
    do_file_replacements(replaces, Template(), tmp_path, False, False, False)
    assert path.read_text(encoding="utf-8") == "a[]c\n"


def test_multiline_anchor(tmp_path):
    path = make(tmp_path, "CHANGELOG.md", "## Unreleased\ntext\n## Unreleased\n")
    replaces = [
        Replace.from_dict(
            {"file": "CHANGELOG.md", "search": "^## Unreleased$", "replace": "## {{version}}", "exactly": 2}
        )
    ]
    do_file_replacements(replaces, Template(version="0.2.0"), tmp_path, False, False, False)
    assert path.read_text(encoding="utf-8") == "## 0.2.0\ntext\n## 0.2.0\n"


def test_too_few_matches(tmp_path):
    make(tmp_path, "f.txt", "nothing here\n")
    replaces = [Replace.from_dict({"file": "f.txt", "search": "absent", "replace": "x"})]
    with pytest.raises(ReplaceError, match="at least 1 replacements expected, found 0"):
        do_file_replacements(replaces, Template(), tmp_path, False, False, False)


def test_too_many_matches(tmp_path):
    make(tmp_path, "f.txt", "a a a\n")
    replaces = [Replace.from_dict({"file": "f.txt", "search": "a", "replace": "b", "max": 2})]
    with pytest.raises(ReplaceError, match="at most 2 replacements expected, found 3"):
        do_file_replacements(replaces, Template(), tmp_path, False, False, False)


def test_missing_file(tmp_path):
    replaces = [Replace.from_dict({"file": "gone.txt", "search": "a", "replace": "b"})]
    with pytest.raises(ReplaceError, match="unable to find file"):
        do_file_replacements(replaces, Template(), tmp_path, False, False, False)


def test_prerelease_skips_unmarked(tmp_path):
    path = make(tmp_path, "f.txt", "one two\n")
    replaces = [
        Replace.from_dict({"file": "f.txt", "search": "one", "replace": "1"}),
        Replace.from_dict({"file": "f.txt", "search": "two", "replace": "2", "prerelease": True}),
    ]
    do_file_replacements(replaces, Template(), tmp_path, True, False, False)
    assert path.read_text(encoding="utf-8") == "one 2\n"


def test_replacements_apply_in_sequence(tmp_path):
    path = make(tmp_path, "f.txt", "x\n")
    replaces = [
        Replace.from_dict({"file": "f.txt", "search": "x", "replace": "y"}),
        Replace.from_dict({"file": "f.txt", "search": "y", "replace": "z"}),
    ]
    do_file_replacements(replaces, Template(), tmp_path, False, False, False)
    assert path.read_text(encoding="utf-8") == "z\n"


def test_dry_run_leaves_file_and_reports(tmp_path, capsys):
    path = make(tmp_path, "f.txt", "old\n")
    replaces = [Replace.from_dict({"file": "f.txt", "search": "old", "replace": "new"})]
    assert do_file_replacements(replaces, Template(), tmp_path, False, True, True)
    assert path.read_text(encoding="utf-8") == "old\n"
    err = capsys.readouterr().err
    assert "Replacing" in err
    assert "-old" in err and "+new" in err


def test_crlf_preserved(tmp_path):
    path = tmp_path / "f.txt"
    path.write_bytes(b"a\r\nb\r\n")
    replaces = [Replace.from_dict({"file": "f.txt", "search": "b", "replace": "c"})]
    do_file_replacements(replaces, Template(), tmp_path, False, False, False)
    assert path.read_bytes() == b"a\r\nc\r\n"
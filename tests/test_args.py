import pytest

from crate_release.args import (
    CommitArgs,
    ConfigArgs,
    PublishArgs,
    PushArgs,
    TagArgs,
    resolve_bool_arg,
)
from crate_release.config import DependentVersion


@pytest.mark.parametrize(
    "yes, no, expected",
    [(True, False, True), (False, True, False), (False, False, None)],
)
def test_resolve_bool_arg(yes, no, expected):
    assert resolve_bool_arg(yes, no) is expected


def test_resolve_bool_arg_both():
    with pytest.raises(ValueError):
        resolve_bool_arg(True, True)


def test_commit_args():
    assert CommitArgs(sign_commit=True).to_config().sign_commit is True
    assert CommitArgs(no_sign_commit=True).to_config().sign_commit is False
    assert CommitArgs().to_config().to_dict() == {}


def test_publish_args():
    config = PublishArgs(no_publish=True, no_verify=True, registry="alt").to_config()
    assert config.publish is False
    assert config.verify is False
    assert config.registry == "alt"
    assert config.enable_features is None
    assert config.enable_all_features is None


def test_publish_args_features():
    config = PublishArgs(features=["x"], all_features=True, target="wasm").to_config()
    assert config.enable_features == ["x"]
    assert config.enable_all_features is True
    assert config.target == "wasm"


def test_tag_args():
    config = TagArgs(no_tag=True, sign_tag=True, tag_prefix="p-", tag_name="n").to_config()
    assert config.tag is False
    assert config.sign_tag is True
    assert config.tag_prefix == "p-"
    assert config.tag_name == "n"


def test_push_args():
    config = PushArgs(no_push=True, push_remote="up").to_config()
    assert config.push is False
    assert config.push_remote == "up"


def test_config_args_sign_applies_to_both():
    config = ConfigArgs(sign=True).to_config()
    assert config.sign_commit is True
    assert config.sign_tag is True


def test_config_args_specific_flags_win():
    config = ConfigArgs(sign=True, commit=CommitArgs(no_sign_commit=True)).to_config()
    assert config.sign_commit is False
    assert config.sign_tag is True


def test_config_args_merges_sections():
    args = ConfigArgs(
        allow_branch=["main", "release/*"],
        dependent_version=DependentVersion.FIX,
        push=PushArgs(push_remote="up"),
        publish=PublishArgs(no_publish=True),
    )
    config = args.to_config()
    assert config.allow_branch == ["main", "release/*"]
    assert config.dependent_version is DependentVersion.FIX
    assert config.push_remote == "up"
    assert config.publish is False
    assert config.sign_commit is None


def test_config_args_empty():
    assert ConfigArgs().to_config().to_dict() == {}
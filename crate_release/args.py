"""Command-line flags that override configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from crate_release.config import Config, DependentVersion


def resolve_bool_arg(yes: bool, no: bool) -> bool | None:
    """Combine a ``--flag``/``--no-flag`` pair into a setting, or ``None``."""
    if yes and no:
        raise ValueError("a flag and its negation cannot both be given")
    if yes:
        return True
    if no:
        return False
    return None


@dataclass
class CommitArgs:
    """Flags for committing."""

    sign_commit: bool = False
    no_sign_commit: bool = False

    def to_config(self) -> Config:
        return Config(sign_commit=resolve_bool_arg(self.sign_commit, self.no_sign_commit))


@dataclass
class PublishArgs:
    """Flags for publishing."""

    publish: bool = False
    no_publish: bool = False
    registry: str | None = None
    verify: bool = False
    no_verify: bool = False
    features: list[str] = field(default_factory=list)
    all_features: bool = False
    target: str | None = None

    def to_config(self) -> Config:
        return Config(
            publish=resolve_bool_arg(self.publish, self.no_publish),
            registry=self.registry,
            verify=resolve_bool_arg(self.verify, self.no_verify),
            enable_features=list(self.features) if self.features else None,
            enable_all_features=True if self.all_features else None,
            target=self.target,
        )


@dataclass
class TagArgs:
    """Flags for tagging."""

    tag: bool = False
    no_tag: bool = False
    sign_tag: bool = False
    no_sign_tag: bool = False
    tag_prefix: str | None = None
    tag_name: str | None = None

    def to_config(self) -> Config:
        return Config(
            tag=resolve_bool_arg(self.tag, self.no_tag),
            sign_tag=resolve_bool_arg(self.sign_tag, self.no_sign_tag),
            tag_prefix=self.tag_prefix,
            tag_name=self.tag_name,
        )


@dataclass
class PushArgs:
    """Flags for pushing."""

    push: bool = False
    no_push: bool = False
    push_remote: str | None = None

    def to_config(self) -> Config:
        return Config(
            push=resolve_bool_arg(self.push, self.no_push),
            push_remote=self.push_remote,
        )


@dataclass
class ConfigArgs:
    """All configuration-related flags of a command."""

    custom_config: Path | None = None
    isolated: bool = False
    sign: bool = False
    no_sign: bool = False
    dependent_version: DependentVersion | None = None
    allow_branch: list[str] | None = None
    commit: CommitArgs = field(default_factory=CommitArgs)
    publish: PublishArgs = field(default_factory=PublishArgs)
    tag: TagArgs = field(default_factory=TagArgs)
    push: PushArgs = field(default_factory=PushArgs)

    def _sign(self) -> bool | None:
        return resolve_bool_arg(self.sign, self.no_sign)

    def to_config(self) -> Config:
        """The settings these flags impose."""
        sign = self._sign()
        config = Config(
            allow_branch=list(self.allow_branch) if self.allow_branch is not None else None,
            sign_commit=sign,
            sign_tag=sign,
            dependent_version=self.dependent_version,
        )
        config.update(self.commit.to_config())
        config.update(self.publish.to_config())
        config.update(self.tag.to_config())
        config.update(self.push.to_config())
        return config
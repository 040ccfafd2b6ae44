"""Release configuration: its fields, defaults and merging."""

from __future__ import annotations

import copy
import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar


class ConfigError(ValueError):
    """Raised for configuration data of the wrong shape."""


class DependentVersion(enum.Enum):
    """How workspace dependents' requirements on a released crate change."""

    UPGRADE = "upgrade"  # always upgrade dependents
    FIX = "fix"  # upgrade only when the old requirement no longer applies


class MetadataPolicy(enum.Enum):
    """How version build metadata is handled."""

    OPTIONAL = "optional"
    REQUIRED = "required"
    IGNORE = "ignore"
    PERSISTENT = "persistent"


@dataclass(frozen=True)
class SharedVersion:
    """Either a flag enabling the default shared group, or a group name."""

    value: bool | str

    WORKSPACE: ClassVar[str] = "workspace"

    @classmethod
    def from_value(cls, value: Any) -> SharedVersion:
        if isinstance(value, (bool, str)):
            return cls(value)
        raise ConfigError("`shared-version`: expected a boolean or a string")

    def as_name(self) -> str | None:
        """The name of the shared-version group, if any."""
        if self.value is True:
            return "default"
        if self.value is False:
            return None
        return self.value


def _count(key: str, value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"`{key}`: expected a non-negative integer")
    return value


_REPLACE_KEYS = {"file", "search", "replace", "min", "max", "exactly", "prerelease"}


@dataclass
class Replace:
    """A regex replacement applied to a file during release."""

    file: Path
    search: str
    replace: str
    min: int | None = None
    max: int | None = None
    exactly: int | None = None
    prerelease: bool = False

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> Replace:
        """Build a replacement from a table, rejecting unknown keys."""
        if not isinstance(data, Mapping):
            raise ConfigError("replacement: expected a table")
        unknown = set(data) - _REPLACE_KEYS
        if unknown:
            raise ConfigError(f"replacement: unknown field `{sorted(unknown)[0]}`")
        for key in ("file", "search", "replace"):
            if key not in data:
                raise ConfigError(f"replacement: missing field `{key}`")
            if not isinstance(data[key], str):
                raise ConfigError(f"replacement: `{key}` must be a string")
        prerelease = data.get("prerelease", False)
        if not isinstance(prerelease, bool):
            raise ConfigError("replacement: `prerelease` must be a boolean")
        return Replace(
            file=Path(data["file"]),
            search=data["search"],
            replace=data["replace"],
            min=_count("min", data.get("min")),
            max=_count("max", data.get("max")),
            exactly=_count("exactly", data.get("exactly")),
            prerelease=prerelease,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "file": str(self.file),
            "search": self.search,
            "replace": self.replace,
        }
        for key in ("min", "max", "exactly"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        out["prerelease"] = self.prerelease
        return out


@dataclass(frozen=True)
class Command:
    """A hook command: a single command line or an argument list."""

    value: str | tuple[str, ...]

    @staticmethod
    def from_value(value: Any) -> Command:
        if isinstance(value, str):
            return Command(value)
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            return Command(tuple(value))
        raise ConfigError("`pre-release-hook`: expected a string or a list of strings")

    def args(self) -> list[str]:
        """The command as an argument list."""
        if isinstance(self.value, str):
            return [self.value]
        return list(self.value)

    def to_value(self) -> str | list[str]:
        return self.value if isinstance(self.value, str) else list(self.value)


@dataclass(frozen=True)
class Features:
    """Which cargo features to enable: none, a selection, or all."""

    all_features: bool = False
    selected: tuple[str, ...] = ()

    @property
    def is_none(self) -> bool:
        return not self.all_features and not self.selected


def _bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"`{key}`: expected a boolean")
    return value


def _str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"`{key}`: expected a string")
    return value


def _str_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"`{key}`: expected a list of strings")
    return list(value)


def _replacements(key: str, value: Any) -> list[Replace]:
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"`{key}`: expected a list of tables")
    return [Replace.from_dict(item) for item in value]


def _enum(cls: type[enum.Enum]) -> Callable[[str, Any], Any]:
    def parse(key: str, value: Any) -> Any:
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigError(f"`{key}`: expected one of {choices}") from None

    return parse


_PARSERS: dict[str, Callable[[str, Any], Any]] = {
    "allow_branch": _str_list,
    "sign_commit": _bool,
    "sign_tag": _bool,
    "push_remote": _str,
    "registry": _str,
    "release": _bool,
    "publish": _bool,
    "verify": _bool,
    "owners": _str_list,
    "push": _bool,
    "push_options": _str_list,
    "shared_version": lambda key, v: SharedVersion.from_value(v),
    "consolidate_commits": _bool,
    "pre_release_commit_message": _str,
    "pre_release_replacements": _replacements,
    "pre_release_hook": lambda key, v: Command.from_value(v),
    "tag_message": _str,
    "tag_prefix": _str,
    "tag_name": _str,
    "tag": _bool,
    "enable_features": _str_list,
    "enable_all_features": _bool,
    "dependent_version": _enum(DependentVersion),
    "metadata": _enum(MetadataPolicy),
    "target": _str,
}


def _serialize(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, SharedVersion):
        return value.value
    if isinstance(value, Command):
        return value.to_value()
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if isinstance(value, Replace):
        return value.to_dict()
    return value


_DEFAULT_MESSAGE = "chore: Release {{crate_name}} version {{version}}"


@dataclass
class Config:
    """Release settings; ``None`` means unset, falling back to a default."""

    is_workspace: bool = False
    allow_branch: list[str] | None = None
    sign_commit: bool | None = None
    sign_tag: bool | None = None
    push_remote: str | None = None
    registry: str | None = None
    release: bool | None = None
    publish: bool | None = None
    verify: bool | None = None
    owners: list[str] | None = None
    push: bool | None = None
    push_options: list[str] | None = None
    shared_version: SharedVersion | None = None
    consolidate_commits: bool | None = None
    pre_release_commit_message: str | None = None
    pre_release_replacements: list[Replace] | None = None
    pre_release_hook: Command | None = None
    tag_message: str | None = None
    tag_prefix: str | None = None
    tag_name: str | None = None
    tag: bool | None = None
    enable_features: list[str] | None = None
    enable_all_features: bool | None = None
    dependent_version: DependentVersion | None = None
    metadata: MetadataPolicy | None = None
    target: str | None = None

    @classmethod
    def _setting_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name != "is_workspace"]

    @staticmethod
    def from_defaults() -> Config:
        """A configuration with every location-independent default spelled out."""
        empty = Config()
        shared = empty.value("shared_version")
        return Config(
            is_workspace=True,
            allow_branch=empty.value("allow_branch"),
            sign_commit=empty.value("sign_commit"),
            sign_tag=empty.value("sign_tag"),
            push_remote=empty.value("push_remote"),
            registry=empty.value("registry"),
            release=empty.value("release"),
            publish=empty.value("publish"),
            verify=empty.value("verify"),
            owners=empty.value("owners"),
            push=empty.value("push"),
            push_options=empty.value("push_options"),
            shared_version=SharedVersion(shared) if shared is not None else None,
            consolidate_commits=empty.value("consolidate_commits"),
            pre_release_commit_message=empty.value("pre_release_commit_message"),
            pre_release_replacements=empty.value("pre_release_replacements"),
            pre_release_hook=empty.value("pre_release_hook"),
            tag_message=empty.value("tag_message"),
            tag_prefix=None,  # depends on the crate's location
            tag_name=empty.value("tag_name"),
            tag=empty.value("tag"),
            enable_features=empty.value("enable_features"),
            enable_all_features=empty.value("enable_all_features"),
            dependent_version=empty.value("dependent_version"),
            metadata=empty.value("metadata"),
            target=None,
        )

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> Config:
        """Build a configuration from a kebab-case table, rejecting unknown keys."""
        if not isinstance(data, Mapping):
            raise ConfigError("configuration: expected a table")
        config = Config()
        for key, raw in data.items():
            name = str(key).replace("-", "_")
            parser = _PARSERS.get(name)
            if parser is None or "_" in str(key):
                raise ConfigError(f"unknown field `{key}`")
            setattr(config, name, parser(str(key), raw))
        return config

    def to_dict(self) -> dict[str, Any]:
        """The set fields as a kebab-case table."""
        out: dict[str, Any] = {}
        for name in self._setting_names():
            value = getattr(self, name)
            if value is not None:
                out[name.replace("_", "-")] = _serialize(value)
        return out

    def update(self, source: Config) -> None:
        """Overwrite fields with those set in ``source``."""
        for name in self._setting_names():
            value = getattr(source, name)
            if value is not None:
                setattr(self, name, copy.deepcopy(value))

    def value(self, name: str) -> Any:
        """The effective value of a setting, applying its default when unset."""
        name = name.replace("-", "_")
        match name:
            case "allow_branch":
                return list(self.allow_branch) if self.allow_branch is not None else ["*", "!HEAD"]
            case "sign_commit" | "sign_tag" | "enable_all_features":
                return bool(getattr(self, name))
            case "push_remote":
                return self.push_remote if self.push_remote is not None else "origin"
            case "registry" | "target":
                return getattr(self, name)
            case "release" | "publish" | "verify" | "push" | "tag":
                current = getattr(self, name)
                return True if current is None else current
            case "owners" | "push_options" | "enable_features":
                return list(getattr(self, name) or [])
            case "pre_release_replacements":
                return copy.deepcopy(self.pre_release_replacements or [])
            case "shared_version":
                return self.shared_version.as_name() if self.shared_version is not None else None
            case "consolidate_commits":
                if self.consolidate_commits is None:
                    return self.is_workspace
                return self.consolidate_commits
            case "pre_release_commit_message":
                if self.pre_release_commit_message is not None:
                    return self.pre_release_commit_message
                if self.value("consolidate_commits"):
                    return "chore: Release"
                return _DEFAULT_MESSAGE
            case "pre_release_hook":
                return self.pre_release_hook
            case "tag_message":
                return self.tag_message if self.tag_message is not None else _DEFAULT_MESSAGE
            case "tag_name":
                return self.tag_name if self.tag_name is not None else "{{prefix}}v{{version}}"
            case "dependent_version":
                return self.dependent_version or DependentVersion.UPGRADE
            case "metadata":
                return self.metadata or MetadataPolicy.OPTIONAL
            case "tag_prefix":
                raise KeyError("`tag_prefix` depends on location; use tag_prefix_for()")
        raise KeyError(f"unknown configuration field {name!r}")

    def tag_prefix_for(self, is_root: bool) -> str:
        """The tag prefix; by default the crate name for non-root crates."""
        if self.tag_prefix is not None:
            return self.tag_prefix
        return "" if is_root else "{{crate_name}}-"

    def features(self) -> Features:
        """The cargo features to build with."""
        if self.value("enable_all_features"):
            return Features(all_features=True)
        return Features(selected=tuple(self.value("enable_features")))
"""Finding and merging release configuration from files, manifests and flags."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import platformdirs

from crate_release.args import ConfigArgs
from crate_release.config import Config, ConfigError, SharedVersion

_APP_DIR = "cargo-release"
_RELEASE_FILE = "release.toml"
_MANIFEST_FILE = "Cargo.toml"


def _load_toml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse `{path}`") from exc


def _table(value: Any, what: str, path: Path) -> Mapping[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ConfigError(f"Failed to parse `{path}`: `{what}` must be a table")
    return value


def _release_section(section: Mapping[str, Any], what: str, path: Path) -> Config | None:
    metadata = _table(section.get("metadata"), f"{what}.metadata", path)
    if metadata is None:
        return None
    release = metadata.get("release")
    if release is None:
        return None
    try:
        return Config.from_dict(release)
    except ConfigError as exc:
        raise ConfigError(f"Failed to parse `{path}`: {exc}") from exc


def _manifest_config(manifest_path: Path, section_name: str) -> Config | None:
    if not manifest_path.exists():
        return None
    manifest = _load_toml(manifest_path)
    section = _table(manifest.get(section_name), section_name, manifest_path)
    if section is None:
        return None
    return _release_section(section, section_name, manifest_path)


def _config_from_file(file_path: Path) -> Config | None:
    if not file_path.exists():
        return None
    data = _load_toml(file_path)
    try:
        return Config.from_dict(data)
    except ConfigError as exc:
        raise ConfigError(f"Failed to parse `{file_path}`: {exc}") from exc


def resolve_custom_config(file_path: str | os.PathLike) -> Config | None:
    """Load a release configuration file; ``None`` if it does not exist."""
    return _config_from_file(Path(file_path))


def _user_config_files() -> list[Path]:
    paths = []
    try:
        paths.append(Path.home() / ".release.toml")
    except RuntimeError:
        pass
    paths.append(platformdirs.user_config_path() / _APP_DIR / _RELEASE_FILE)
    return paths


def resolve_workspace_config(workspace_root: str | os.PathLike) -> Config:
    """Merge user configuration, the workspace ``release.toml`` and
    ``workspace.metadata.release`` from the workspace manifest, in that order."""
    root = Path(workspace_root)
    config = Config()
    for path in _user_config_files():
        found = _config_from_file(path)
        if found is not None:
            config.update(found)
    found = _config_from_file(root / _RELEASE_FILE)
    if found is not None:
        config.update(found)
    found = _manifest_config(root / _MANIFEST_FILE, "workspace")
    if found is not None:
        config.update(found)
    return config


def resolve_config(
    workspace_root: str | os.PathLike, manifest_path: str | os.PathLike
) -> Config:
    """Workspace configuration, then the crate's ``release.toml`` and
    ``package.metadata.release`` from its manifest."""
    config = resolve_workspace_config(workspace_root)
    manifest = Path(manifest_path)
    crate_root = manifest.parent
    found = _config_from_file(crate_root / _RELEASE_FILE)
    if found is not None:
        config.update(found)
    found = _manifest_config(manifest, "package")
    if found is not None:
        config.update(found)
    return config


def _is_workspace_ref(value: Any) -> bool:
    return isinstance(value, Mapping) and isinstance(value.get("workspace"), bool)


def _publishable(value: Any, path: Path) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return bool(value)
    raise ConfigError(f"Failed to parse `{path}`: `publish` must be a boolean or a list")


def _workspace_publish(workspace_root: Path) -> bool:
    path = workspace_root / _MANIFEST_FILE
    manifest = _load_toml(path)
    workspace = _table(manifest.get("workspace"), "workspace", path)
    if workspace is None:
        return True
    package = _table(workspace.get("package"), "workspace.package", path)
    if package is None or package.get("publish") is None:
        return True
    return _publishable(package["publish"], path)


def resolve_overrides(
    workspace_root: str | os.PathLike, manifest_path: str | os.PathLike
) -> Config:
    """Settings forced by the manifest itself: unpublishable crates, crates
    without a version and crates inheriting the workspace version."""
    root = Path(workspace_root)
    path = Path(manifest_path)
    config = Config()
    manifest = _load_toml(path)
    package = _table(manifest.get("package"), "package", path)
    if package is None:
        return config

    publish_field = package.get("publish")
    if publish_field is None:
        publish = True
    elif _is_workspace_ref(publish_field):
        publish = _workspace_publish(root) if publish_field["workspace"] else True
    else:
        publish = _publishable(publish_field, path)
    if not publish:
        config.publish = False

    version = package.get("version")
    if version is None:
        # Nothing to release without a version to update.
        config.release = False
    elif _is_workspace_ref(version):
        if version["workspace"]:
            config.shared_version = SharedVersion(SharedVersion.WORKSPACE)
            # Changing the version in one crate changes it in all of them.
            config.consolidate_commits = True
    elif not isinstance(version, str):
        raise ConfigError(f"Failed to parse `{path}`: `version` must be a string")
    return config


def _is_workspace(ws_meta: Any) -> bool:
    return len(ws_meta.workspace_members) > 1


def _apply_custom(config: Config, args: ConfigArgs) -> None:
    if args.custom_config is not None:
        custom = resolve_custom_config(args.custom_config) or Config()
        config.update(custom)


def load_workspace_config(args: ConfigArgs, ws_meta: Any) -> Config:
    """The configuration for the workspace as a whole.

    ``ws_meta`` has ``workspace_root``, ``workspace_members`` and ``packages``;
    each package has ``id`` and ``manifest_path``.
    """
    is_workspace = _is_workspace(ws_meta)
    config = Config(is_workspace=is_workspace)
    root = Path(ws_meta.workspace_root)
    if not args.isolated:
        if is_workspace:
            found = resolve_workspace_config(root)
        else:
            # A lone package's configuration serves as the workspace's.
            members = set(ws_meta.workspace_members)
            pkg = next((p for p in ws_meta.packages if p.id in members), None)
            if pkg is None:
                raise ConfigError("no workspace member found among the packages")
            found = resolve_config(root, pkg.manifest_path)
        config.update(found)
    _apply_custom(config, args)
    config.update(args.to_config())
    return config


def load_package_config(args: ConfigArgs, ws_meta: Any, pkg: Any) -> Config:
    """The configuration for one package, with manifest overrides applied last."""
    config = Config(is_workspace=_is_workspace(ws_meta))
    root = Path(ws_meta.workspace_root)
    manifest_path = Path(pkg.manifest_path)
    if not args.isolated:
        config.update(resolve_config(root, manifest_path))
    _apply_custom(config, args)
    config.update(args.to_config())
    config.update(resolve_overrides(root, manifest_path))
    return config
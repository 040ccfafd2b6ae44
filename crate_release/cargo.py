"""Driving cargo and editing manifests: publishing, owners, versions and ordering."""

from __future__ import annotations

import datetime
import logging
import os
import subprocess
import time
from collections.abc import Iterable, Mapping, MutableMapping
from pathlib import Path
from typing import Any

import tomlkit

from crate_release import shell
from crate_release.cmd import call
from crate_release.config import DependentVersion, Features
from crate_release.diff import unified_diff
from crate_release.version import Version, VersionError, VersionReq, upgrade_requirement

_logger = logging.getLogger(__name__)

_DEP_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")
_WORK_FILE = "Cargo.toml.work"


class CargoError(Exception):
    """Raised when cargo fails or a manifest cannot be handled."""


def _cargo() -> str:
    return os.environ.get("CARGO", "cargo")


def _field(obj: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an object's attribute."""
    if isinstance(obj, Mapping):
        return obj[name]
    return getattr(obj, name)


def _read(path: Path) -> str:
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def _atomic_write(path: Path, data: str) -> None:
    temp_path = path.parent / _WORK_FILE
    with temp_path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(data)
    os.replace(temp_path, path)


def _parse_manifest(path: Path, text: str) -> tomlkit.TOMLDocument:
    try:
        return tomlkit.parse(text)
    except tomlkit.exceptions.ParseError as exc:
        raise CargoError(f"Failed to parse `{path}`") from exc


def _subtable(container: MutableMapping, key: str) -> MutableMapping:
    value = container.get(key)
    if value is None:
        value = tomlkit.table()
        container[key] = value
        value = container[key]
    if not isinstance(value, MutableMapping):
        raise CargoError(f"`{key}` is not a table")
    return value


def _finish_edit(path: Path, original: str, updated: str, dry_run: bool) -> None:
    if updated == original:
        return
    if dry_run:
        diff = unified_diff(original, updated, path, "updated")
        _logger.debug("change:\n%s", diff)
    else:
        _atomic_write(path, updated)


def package_content(manifest_path: str | os.PathLike) -> list[Path]:
    """The files cargo would package for the crate, as paths beside the manifest."""
    manifest = Path(manifest_path)
    argv = [
        _cargo(),
        "package",
        "--manifest-path",
        os.fspath(manifest),
        "--list",
        # Only a file list is wanted, so a dirty tree does not matter.
        "--allow-dirty",
    ]
    output = subprocess.run(argv, capture_output=True, check=False)
    if output.returncode != 0:
        stderr = output.stderr.decode("utf-8", errors="replace")
        raise CargoError(f"failed to get package content for {manifest}: {stderr}")
    stdout = output.stdout.decode("utf-8", errors="replace")
    return [manifest.parent / line for line in stdout.splitlines()]


def publish(
    dry_run: bool,
    verify: bool,
    manifest_path: str | os.PathLike,
    pkgid: str | None,
    features: Features,
    registry: str | None,
    target: str | None,
) -> bool:
    """Run ``cargo publish``; return whether it succeeded."""
    command = [_cargo(), "publish", "--manifest-path", os.fspath(manifest_path)]
    if pkgid is not None:
        command += ["--package", pkgid]
    if registry is not None:
        command += ["--registry", registry]
    if dry_run:
        command += ["--dry-run", "--allow-dirty"]
    if not verify:
        command.append("--no-verify")
    if target is not None:
        command += ["--target", target]
    if features.all_features:
        command.append("--all-features")
    elif features.selected:
        command += ["--features", " ".join(features.selected)]
    return call(command, False)


def is_published(index: Any, registry: str | None, name: str, version: str) -> bool:
    """Whether the index lists ``version`` of ``name``; lookup failures count as no."""
    try:
        return bool(index.has_krate_version(registry, name, version))
    except Exception as exc:  # noqa: BLE001 - any index failure is only reported
        _logger.warning("failed to read metadata for %s: %s", name, exc)
        return False


def wait_for_publish(
    index: Any,
    registry: str | None,
    name: str,
    version: str,
    timeout: float | datetime.timedelta,
    dry_run: bool,
) -> None:
    """Poll the index until ``version`` of ``name`` shows up or ``timeout`` passes."""
    if dry_run:
        return
    if registry is not None:
        # The index never reports crates of alternative registries as present.
        _logger.debug(
            "Not waiting for publish as that is only supported for crates.io; "
            "ensure you are using at least cargo v1.66 which will wait for you."
        )
        return
    limit = timeout.total_seconds() if isinstance(timeout, datetime.timedelta) else float(timeout)
    start = time.monotonic()
    logged = False
    while True:
        index.update_krate(registry, name)
        if is_published(index, registry, name, version):
            return
        if limit < time.monotonic() - start:
            raise CargoError("timeout waiting for crate to be published")
        if not logged:
            shell.status("Waiting", f"on {name} to propagate to index")
            logged = True
        time.sleep(1)


def set_workspace_version(manifest_path: str | os.PathLike, version: str, dry_run: bool) -> None:
    """Set ``workspace.package.version`` in a manifest."""
    path = Path(manifest_path)
    original = _read(path)
    doc = _parse_manifest(path, original)
    package = _subtable(_subtable(doc, "workspace"), "package")
    package["version"] = version
    _finish_edit(path, original, tomlkit.dumps(doc), dry_run)


def set_package_version(manifest_path: str | os.PathLike, version: str, dry_run: bool) -> None:
    """Set ``package.version`` in a manifest."""
    path = Path(manifest_path)
    original = _read(path)
    doc = _parse_manifest(path, original)
    _subtable(doc, "package")["version"] = version
    _finish_edit(path, original, tomlkit.dumps(doc), dry_run)


def _owner_command(name: str, registry: str | None, *extra: str) -> list[str]:
    argv = [_cargo(), "owner", name, "--color=never", *extra]
    if registry is not None:
        argv += ["--registry", registry]
    return argv


def ensure_owners(
    name: str, logins: Iterable[str], registry: str | None, dry_run: bool
) -> None:
    """Add any of ``logins`` that are not yet owners of the crate."""
    # Look before leaping: the user may publish but not be allowed to set owners.
    output = subprocess.run(
        _owner_command(name, registry, "--list"), capture_output=True, check=False
    )
    if output.returncode != 0:
        stderr = output.stderr.decode("utf-8", errors="replace")
        raise CargoError(f"failed talking to registry about crate owners: {stderr}")
    try:
        raw = output.stdout.decode("utf-8")
    except UnicodeDecodeError:
        raise CargoError("unrecognized response from registry") from None

    current = set()
    for line in raw.splitlines():
        owner, sep, _ = line.partition(" ")
        if sep and owner:
            current.add(owner)
    expected = set(logins)

    missing = sorted(expected - current)
    if missing:
        shell.status("Adding", f"owners for {name}: {', '.join(missing)}")
        if not dry_run:
            adds = [arg for login in missing for arg in ("--add", login)]
            result = subprocess.run(
                _owner_command(name, registry, *adds), capture_output=True, check=False
            )
            if result.returncode != 0:
                # The user may lack permission; this is not worth failing over.
                stderr = result.stderr.decode("utf-8", errors="replace")
                shell.warn(f"failed to set owners for {name}: {stderr}")

    extra = sorted(current - expected)
    if extra:
        _logger.debug("extra owners for %s: %s", name, ", ".join(extra))


def _dependency_tables(doc: Mapping) -> list[MutableMapping]:
    tables: list[MutableMapping] = []
    for key, value in doc.items():
        if not isinstance(value, MutableMapping):
            continue
        if key in _DEP_TABLES:
            tables.append(value)
        elif key == "workspace":
            deps = value.get("dependencies")
            if isinstance(deps, MutableMapping):
                tables.append(deps)
        elif key == "target":
            for platform in value.values():
                if not isinstance(platform, Mapping):
                    continue
                for dep_key, deps in platform.items():
                    if dep_key in _DEP_TABLES and isinstance(deps, MutableMapping):
                        tables.append(deps)
    return tables


def _is_relevant(dep: Mapping, dep_crate_root: Path, crate_root: Path) -> bool:
    if "version" not in dep:
        return False
    relpath = dep.get("path")
    if not isinstance(relpath, str):
        return False
    try:
        dep_path = (dep_crate_root / relpath).resolve(strict=True)
    except OSError:
        return False
    return dep_path == crate_root


def _upgrade_req(
    manifest_name: str,
    dep: MutableMapping,
    name: str,
    version: Version,
    upgrade: DependentVersion,
) -> bool:
    existing = dep.get("version")
    if existing is None:
        _logger.debug("not updating path-only dependency on %s", name)
        return False
    if not isinstance(existing, str):
        _logger.debug("unsupported dependency %s", name)
        return False
    existing = str(existing)
    try:
        existing_req = VersionReq.parse(existing)
    except VersionError:
        _logger.debug("unsupported dependency req %s=%s", name, existing)
        return False
    if upgrade is DependentVersion.FIX and existing_req.matches(version):
        return False
    try:
        new_req = upgrade_requirement(existing, version)
    except VersionError:
        return False
    if new_req is None:
        return False
    shell.status(
        "Updating", f"{manifest_name}'s dependency from {existing} to {new_req}"
    )
    dep["version"] = new_req
    return True


def upgrade_dependency_req(
    manifest_name: str,
    manifest_path: str | os.PathLike,
    root: str | os.PathLike,
    name: str,
    version: Version | str,
    upgrade: DependentVersion,
    dry_run: bool,
) -> None:
    """Update requirements on the crate at ``root`` to admit ``version``."""
    path = Path(manifest_path)
    if isinstance(version, str):
        version = Version.parse(version)
    manifest_root = path.parent
    crate_root = Path(root).resolve()
    original = _read(path)
    doc = _parse_manifest(path, original)
    for table in _dependency_tables(doc):
        for dep in table.values():
            if isinstance(dep, MutableMapping) and _is_relevant(dep, manifest_root, crate_root):
                _upgrade_req(manifest_name, dep, name, version, upgrade)
    _finish_edit(path, original, tomlkit.dumps(doc), dry_run)


def update_lock(manifest_path: str | os.PathLike) -> None:
    """Have cargo refresh the lock file by reading the workspace metadata."""
    argv = [
        _cargo(),
        "metadata",
        "--format-version",
        "1",
        "--manifest-path",
        os.fspath(manifest_path),
    ]
    output = subprocess.run(argv, capture_output=True, check=False)
    if output.returncode != 0:
        stderr = output.stderr.decode("utf-8", errors="replace")
        raise CargoError(f"`cargo metadata` failed: {stderr}")


def sort_workspace(ws_meta: Any) -> list[Any]:
    """Workspace member ids ordered so that dependencies come first.

    Dev-only dependencies are ignored, which breaks dev-dependency cycles.
    ``ws_meta`` follows the layout of ``cargo metadata`` output, as mappings
    or objects with the same field names.
    """
    members = list(_field(ws_meta, "workspace_members"))
    member_set = set(members)
    resolve = _field(ws_meta, "resolve")
    if resolve is None:
        raise CargoError("cargo metadata has no resolved dependencies")

    dep_tree: dict[Any, list[Any]] = {}
    for node in _field(resolve, "nodes"):
        node_id = _field(node, "id")
        if node_id not in member_set:
            continue
        deps = []
        for dep in _field(node, "deps"):
            kinds = [_field(info, "kind") for info in _field(dep, "dep_kinds")]
            if not all(kind == "dev" for kind in kinds):
                deps.append(_field(dep, "pkg"))
        dep_tree[node_id] = deps

    ordered: list[Any] = []
    processed: set[Any] = set()

    def visit(pkg_id: Any) -> None:
        if pkg_id in processed:
            return
        processed.add(pkg_id)
        try:
            deps = dep_tree[pkg_id]
        except KeyError:
            raise CargoError(f"workspace member {pkg_id} is not resolved") from None
        for dep_id in deps:
            if dep_id in dep_tree:
                visit(dep_id)
        ordered.append(pkg_id)

    for pkg_id in members:
        visit(pkg_id)
    return ordered
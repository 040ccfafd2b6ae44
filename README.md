# crate_release

A library of building blocks for automating releases of Rust crates:
reading release configuration, bumping semantic versions, rewriting
dependency requirements, applying templated file replacements, and
driving `git` and `cargo`.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `crate_release.version`: `Version` (`parse`, `increment_major`,
  `increment_minor`, `increment_patch`, `increment_alpha`,
  `increment_beta`, `increment_rc`, `set_metadata`, `is_prerelease`),
  `VersionReq` and `Comparator` with `matches`, the `Op` enum, and
  `upgrade_requirement`, which rewrites a requirement such as `^1.0` to
  admit a new version or returns `None` when no change is needed.
  Malformed input raises `VersionError`.
- `crate_release.config`: the `Config` dataclass. Unset fields are
  `None`; `Config.value(name)` gives the effective value with its default
  applied, `tag_prefix_for(is_root)` the tag prefix, and `features()` a
  `Features` value. `Config.update` merges set fields from another
  config, and `from_dict` / `to_dict` convert kebab-case tables, rejecting
  unknown keys with `ConfigError`. Also `DependentVersion`,
  `MetadataPolicy`, `SharedVersion`, `Replace` and `Command`.
- `crate_release.args`: flag groups (`ConfigArgs`, `CommitArgs`,
  `PublishArgs`, `TagArgs`, `PushArgs`) whose `to_config()` returns the
  settings they impose, and `resolve_bool_arg` for `--x`/`--no-x` pairs.
- `crate_release.loader`: merges configuration from `~/.release.toml`,
  the user config directory's `cargo-release/release.toml`, the workspace
  and crate `release.toml` files and `Cargo.toml` metadata
  (`resolve_workspace_config`, `resolve_config`, `resolve_custom_config`),
  derives manifest-forced settings (`resolve_overrides`), and combines
  everything with flags (`load_workspace_config`, `load_package_config`).
- `crate_release.replace`: `Template.render` for `{{prev_version}}`,
  `{{prev_metadata}}`, `{{version}}`, `{{metadata}}`, `{{crate_name}}`,
  `{{date}}`, `{{prefix}}` and `{{tag_name}}`; `today()`; and
  `do_file_replacements`, which applies regex replacements with
  `min`/`max`/`exactly` match counts and raises `ReplaceError` on a
  mismatch.
- `crate_release.cargo`: `set_package_version`, `set_workspace_version`
  and `upgrade_dependency_req` edit manifests while keeping their
  formatting; `publish`, `package_content`, `ensure_owners` and
  `update_lock` run `cargo` (the `CARGO` environment variable overrides
  the executable); `wait_for_publish` and `is_published` poll an index;
  `sort_workspace` orders workspace members dependencies-first, ignoring
  dev-only dependencies.
- `crate_release.git`: branch, remote, dirty-state, tag, commit and push
  helpers run through the `git` command; failures raise `GitError`.
- `crate_release.index`: `CratesIoIndex` and `RemoteIndex` look crates up
  in the crates.io sparse index, caching results and reusing ETags.
  Lookups for any other registry return `None`.
- `crate_release.commits`: `ConventionalCommit.parse`, `PackageCommit.status`
  giving a `CommitStatus`, `suggest_bump` for the next release level, and
  `write_status`.
- `crate_release.shell`: cargo-style coloured status messages on stderr
  (`status`, `warn`, `error`, `note`, `log`, `write_stderr`) and a
  `confirm` prompt.
- `crate_release.cmd`: `call`, `call_on_path` and `call_with_env` run a
  command and return whether it succeeded; in a dry run they only log it.
- `crate_release.diff`: `unified_diff` of two texts.
- `crate_release.error`: `CliError`, carrying an exit code, and `report`,
  which prints an error and returns the code to exit with.

## Example

```python
from crate_release.version import Version, upgrade_requirement

v = Version.parse("1.0.0")
v.increment_alpha()
print(v)                                                    # 1.0.1-alpha.1
print(upgrade_requirement("^1.0", Version.parse("2.0.0")))  # ^2.0
```

```python
from crate_release.replace import Template

template = Template(crate_name="demo", version="0.2.0")
print(template.render("chore: Release {{crate_name}} version {{version}}"))
```

Functions that edit files take a `dry_run` flag; when it is set they log
a diff or report the change instead of writing. `cmd`'s functions and the
git helpers built on them only log the command in a dry run, while
`cargo.publish` passes `--dry-run` on to cargo.

## What this package does not do

There is no command-line program and no end-to-end release workflow: the
package provides the pieces (configuration, versions, replacements, git,
cargo and index operations) but nothing that strings them into release
steps, plans which packages to release, or walks git history to list the
changes since a tag. `commits` classifies messages it is given; it does
not read them from a repository.
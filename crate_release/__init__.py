"""Building blocks for automating Rust crate releases: configuration, versions,
file replacements, and git, cargo and crates.io index operations."""

__version__ = "0.1.0"
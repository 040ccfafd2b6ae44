[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "crate_release"
version = "0.1.0"
description = "Building blocks for automating Rust crate releases: configuration, versioning, file replacements, git and cargo operations"
requires-python = ">=3.11"
keywords = ["release", "cargo", "semver", "git", "automation", "crates"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Environment :: Console",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "tomlkit",
    "platformdirs",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["crate_release"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

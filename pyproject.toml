[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vendsync"
version = "0.1.0"
description = "Building blocks for vendoring directory contents: semver selection, path scoping, helm, HTTP and inline sources"
requires-python = ">=3.10"
keywords = ["vendoring", "semver", "helm", "git", "dependencies", "checksums"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vendsync"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

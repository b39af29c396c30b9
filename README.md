# vendsync

A library of building blocks for syncing vendored directory contents:
semver-based version selection, path scoping and moves, helm chart and HTTP
fetching, inline file sources, release-notes checksum discovery and
extraction of PGP signatures from git objects.

## Installation

```
pip install vendsync
```

## Selecting a version

```python
from vendsync.selection import VersionSelection, VersionSelectionSemver
from vendsync.selector import highest_constrained_version

config = VersionSelection(semver=VersionSelectionSemver(constraints=">0.1.0 <3.0.0"))
print(highest_constrained_version(["0.0.1", "v2.0.0", "2.3.0-rc.1"], config))
# v2.0.0
```

Prereleases are excluded unless a `VersionSelectionSemverPrereleases` is given;
a non-empty `identifiers` list keeps only prereleases carrying one of those
identifiers. Extra named filters over the original version strings can be
added with `ConstraintCallback` and
`highest_constrained_version_with_additional_constraints`. When nothing is left,
a `ValueError` is raised whose message lists how many versions survived each
filter. `VersionSelection.description()` gives the selection as compact JSON.

Lower-level helpers live in `vendsync.semvers`:

- `parse_version(text)` parses a strict `MAJOR.MINOR.PATCH[-PRE][+BUILD]`
  string into a `Version`; build metadata takes part in ordering.
- `parse_range(text)` turns a range such as `>=1.0.0 <2.0.0 || 3.x` into a
  predicate over `Version`.
- `new_semver`, `new_relaxed_semver` (accepts a leading `v`) and
  `new_relaxed_semvers_no_err` (drops strings that do not parse) build
  `SemverWrap` values and `Semvers` collections.
- `Semvers` offers `sorted()`, `filter_constraints()`, `filter_prereleases()`,
  `filter()`, `highest()` (original text, or `None` when empty), `all()` and
  `len()`.

## Paths and moves

```python
from vendsync.move import scoped_path, move_dir, move_file

scoped_path("/root", "sub/file")        # "/root/sub/file"
scoped_path("/root", "../root-trick")   # raises ValueError
```

`move_dir` replaces a destination with another directory; `move_file`
replaces the destination with a fresh `0700` directory holding the moved file.

## Secrets, config maps and temporary space

`vendsync.refs` provides `Secret` (binary values), `ConfigMap` (text values),
`SingleSecretRefFetcher` (resolves at most one known secret and raises
`RefNotFoundError` otherwise) and `TempArea`, which creates temporary
directories and files under an optional root.

## Sources

- `vendsync.inline.InlineSync` writes files from `InlineContents` — direct
  paths plus secrets and config maps named by `InlineSource` — into a
  destination directory, refusing paths that escape it.
- `vendsync.helm.HelmChartSync` fetches a chart by running the `helm`
  executable (`helm3` when `helm_version` is `"3"`), moves it into place and
  returns its `ChartMeta` read from `Chart.yaml`. Basic-auth credentials come
  from the repository's secret.
- `vendsync.http_fetch.HttpSync` downloads a URL, checks an optional sha256,
  and either unpacks a zip or tar archive into the destination or, with
  `disable_unpack`, places the raw file in a fresh directory.

## Other helpers

- `vendsync.image_ref.GuessedRefParts.parse("docker.io/foo:tag@sha256:abc")`
  splits an image reference into repository, tag and digest.
- `vendsync.checksums.find_release_notes_checksums(assets, body)` finds the
  sha256 checksum of each `ReleaseAsset` in release notes text.
- `vendsync.sections.LineSectionReader` splits text into the lines inside and
  outside a delimited section.
- `vendsync.git_signature` splits raw git commit and tag objects into signed
  contents and armored signature (`extract_commit_signature`,
  `extract_tag_signature`), reads an object with `git cat-file`
  (`read_signed_object`), and shortens multi-line titles
  (`single_line_title`).

## What it does not do

- There is no command-line tool and no reading of configuration or lock files;
  the pieces are meant to be called from your own code.
- Git and Mercurial repositories are not cloned, and container images or
  image bundles are not pulled; only image references are parsed.
- Signatures are extracted from git objects but not verified against public
  keys.
- Helm charts from `oci://` repositories are rejected with `HelmError`.

## Running the tests

```
pip install -e ".[test]"
pytest
```
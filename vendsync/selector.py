"""Picking the highest version that satisfies a selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from vendsync.selection import VersionSelection
from vendsync.semvers import new_relaxed_semvers_no_err


@dataclass(frozen=True)
class ConstraintCallback:
    """An extra named filter over original version strings."""

    constraint: Callable[[str], bool]
    name: str


def highest_constrained_version(versions: Iterable[str], config: VersionSelection) -> str:
    return highest_constrained_version_with_additional_constraints(versions, config, [])


def highest_constrained_version_with_additional_constraints(
    versions: Iterable[str],
    config: VersionSelection,
    additional_constraints: Sequence[ConstraintCallback] = (),
) -> str:
    """Return the highest version passing every filter, or raise ValueError."""
    if config.semver is None:
        raise ValueError("Unsupported version selection type (currently supported: semver)")

    semver = config.semver
    matched = new_relaxed_semvers_no_err(versions)
    details = [f"all={len(matched)}"]

    matched = matched.filter_prereleases(semver.prereleases)
    details.append(f"after-prereleases-filter={len(matched)}")

    for check in additional_constraints:
        matched = matched.filter(check.constraint)
        details.append(f"after-{check.name}={len(matched)}")

    if semver.constraints:
        try:
            matched = matched.filter_constraints(semver.constraints)
        except ValueError as err:
            raise ValueError(f"Selecting versions: {err}") from err
        details.append(f"after-constraints-filter={len(matched)}")

    highest = matched.highest()
    if highest is None:
        raise ValueError(
            "Expected to find at least one version, but did not "
            f"(details: {' -> '.join(details)})"
        )
    return highest
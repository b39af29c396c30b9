"""Configuration for choosing a version out of a list."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class VersionSelectionSemverPrereleases:
    """Which prerelease identifiers are acceptable; empty means any."""

    identifiers: list[str] = field(default_factory=list)

    def identifiers_as_set(self) -> set[str]:
        return set(self.identifiers)

    def _as_json(self) -> dict[str, Any]:
        return {"identifiers": list(self.identifiers)} if self.identifiers else {}


@dataclass(frozen=True)
class VersionSelectionSemver:
    """Semver constraints, and whether prereleases take part."""

    constraints: str = ""
    prereleases: VersionSelectionSemverPrereleases | None = None

    def _as_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.constraints:
            result["constraints"] = self.constraints
        if self.prereleases is not None:
            result["prereleases"] = self.prereleases._as_json()
        return result


@dataclass(frozen=True)
class VersionSelection:
    """A version selection strategy; only semver is supported."""

    semver: VersionSelectionSemver | None = None

    def _as_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.semver is not None:
            result["semver"] = self.semver._as_json()
        return result

    def description(self) -> str:
        """Compact JSON form of the selection, without HTML escaping."""
        text = json.dumps(self._as_json(), separators=(",", ":"), ensure_ascii=False)
        return text.replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")
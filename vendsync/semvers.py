"""Semantic version parsing, ranges and ordered version collections."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from vendsync.selection import VersionSelectionSemverPrereleases

_IDENT_CHARS = re.compile(r"^[0-9A-Za-z-]+$")
_WILDCARDS = ("x", "X", "*")


def _is_numeric(text: str) -> bool:
    return text.isascii() and text.isdigit()


def _parse_number(text: str, what: str) -> int:
    if not _is_numeric(text):
        raise ValueError(f"Invalid character(s) found in {what} number {text!r}")
    if len(text) > 1 and text.startswith("0"):
        raise ValueError(f"{what.capitalize()} number must not contain leading zeroes {text!r}")
    return int(text)


def _parse_prerelease_part(text: str) -> int | str:
    if not text:
        raise ValueError("Prerelease is empty")
    if _is_numeric(text):
        if len(text) > 1 and text.startswith("0"):
            raise ValueError(f"Leading zeroes for numeric prerelease versions not allowed: {text!r}")
        return int(text)
    if not _IDENT_CHARS.match(text):
        raise ValueError(f"Invalid character(s) found in prerelease {text!r}")
    return text


def _parse_build_part(text: str) -> str:
    if not text:
        raise ValueError("Buildversion is empty")
    if not _IDENT_CHARS.match(text):
        raise ValueError(f"Invalid character(s) found in build meta data {text!r}")
    return text


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _cmp_ident(a: int | str, b: int | str) -> int:
    a_num, b_num = isinstance(a, int), isinstance(b, int)
    if a_num and b_num:
        return _cmp(a, b)
    if a_num:
        return -1
    if b_num:
        return 1
    return _cmp(a, b)


def _cmp_idents(a: tuple, b: tuple) -> int:
    for left, right in zip(a, b):
        result = _cmp_ident(left, right)
        if result:
            return result
    return _cmp(len(a), len(b))


def _build_ident(text: str) -> int | str:
    return int(text) if _is_numeric(text) else text


@dataclass(frozen=True)
class Version:
    """A parsed semantic version; build metadata takes part in ordering."""

    major: int
    minor: int
    patch: int
    pre: tuple[int | str, ...] = ()
    build: tuple[str, ...] = ()

    def compare(self, other: Version) -> int:
        """Return -1, 0 or 1 as self sorts before, equal to, or after other."""
        core = _cmp((self.major, self.minor, self.patch), (other.major, other.minor, other.patch))
        if core:
            return core

        if self.pre or other.pre:
            if not self.pre:
                return 1
            if not other.pre:
                return -1
            result = _cmp_idents(self.pre, other.pre)
            if result:
                return result

        if self.build or other.build:
            if not self.build:
                return -1
            if not other.build:
                return 1
            return _cmp_idents(
                tuple(map(_build_ident, self.build)),
                tuple(map(_build_ident, other.build)),
            )
        return 0

    def __lt__(self, other: Version) -> bool:
        return self.compare(other) < 0

    def __le__(self, other: Version) -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: Version) -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: Version) -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(str(p) for p in self.pre)
        if self.build:
            text += "+" + ".".join(self.build)
        return text


def parse_version(text: str) -> Version:
    """Parse a strict MAJOR.MINOR.PATCH[-PRE][+BUILD] string."""
    if not text:
        raise ValueError("Version string empty")

    parts = text.split(".", 2)
    if len(parts) != 3:
        raise ValueError("No Major.Minor.Patch elements found")

    major = _parse_number(parts[0], "major")
    minor = _parse_number(parts[1], "minor")

    patch_str = parts[2]
    build: tuple[str, ...] = ()
    pre: tuple[int | str, ...] = ()
    if "+" in patch_str:
        patch_str, build_str = patch_str.split("+", 1)
        build = tuple(_parse_build_part(p) for p in build_str.split("."))
    if "-" in patch_str:
        patch_str, pre_str = patch_str.split("-", 1)
        pre = tuple(_parse_prerelease_part(p) for p in pre_str.split("."))

    patch = _parse_number(patch_str, "patch")
    return Version(major, minor, patch, pre, build)


def _split_and_trim(text: str) -> list[str]:
    # A space right after an operator character does not end the token.
    result = []
    last = 0
    last_char = ""
    for i, ch in enumerate(text):
        if ch == " " and last_char not in (">", "<", "="):
            if last < i:
                result.append(text[last:i])
            last = i + 1
        elif ch != " ":
            last_char = ch
    if last < len(text):
        result.append(text[last:])
    return [token.replace(" ", "") for token in result if token.replace(" ", "")]


def _split_or_parts(tokens: list[str]) -> list[list[str]]:
    groups = []
    last = 0
    for i, token in enumerate(tokens):
        if token == "||":
            if i == 0:
                raise ValueError("First element in range is '||'")
            groups.append(tokens[last:i])
            last = i + 1
    if tokens and last == len(tokens):
        raise ValueError("Last element in range is '||'")
    groups.append(tokens[last:])
    return groups


def _wildcard_bounds(version_str: str) -> tuple[Version, Version] | None:
    parts = version_str.split(".")
    if not any(part in _WILDCARDS for part in parts):
        return None

    def number(part: str) -> int:
        if not _is_numeric(part):
            raise ValueError(f"Invalid wildcard version {version_str!r}")
        return int(part)

    if len(parts) == 2 and parts[1] in _WILDCARDS:
        major = number(parts[0])
        return Version(major, 0, 0), Version(major + 1, 0, 0)
    if len(parts) == 3 and parts[1] in _WILDCARDS and parts[2] in _WILDCARDS:
        major = number(parts[0])
        return Version(major, 0, 0), Version(major + 1, 0, 0)
    if len(parts) == 3 and parts[2] in _WILDCARDS:
        major, minor = number(parts[0]), number(parts[1])
        return Version(major, minor, 0), Version(major, minor + 1, 0)
    raise ValueError(f"Invalid wildcard version {version_str!r}")


_OPERATORS: dict[str, Callable[[int], bool]] = {
    "": lambda c: c == 0,
    "=": lambda c: c == 0,
    "==": lambda c: c == 0,
    "!": lambda c: c != 0,
    "!=": lambda c: c != 0,
    ">": lambda c: c > 0,
    ">=": lambda c: c >= 0,
    "<": lambda c: c < 0,
    "<=": lambda c: c <= 0,
}


def _comparator(token: str) -> Callable[[Version], bool]:
    index = next((i for i, ch in enumerate(token) if ch.isdigit()), None)
    if index is None:
        raise ValueError(f"Could not get version from string: {token!r}")
    op, version_str = token[:index].strip(), token[index:]
    if op not in _OPERATORS:
        raise ValueError(f"Could not parse comparator {op!r} in {token!r}")

    bounds = _wildcard_bounds(version_str)
    if bounds is not None:
        lower, upper = bounds
        if op == ">":
            return lambda v: v >= upper
        if op == ">=":
            return lambda v: v >= lower
        if op == "<":
            return lambda v: v < lower
        if op == "<=":
            return lambda v: v < upper
        if op in ("!", "!="):
            return lambda v: not (lower <= v < upper)
        return lambda v: lower <= v < upper

    target = parse_version(version_str)
    check = _OPERATORS[op]
    return lambda v: check(v.compare(target))


def parse_range(text: str) -> Callable[[Version], bool]:
    """Parse a range such as '>=1.0.0 <2.0.0 || 3.x' into a predicate."""
    alternatives = [
        [_comparator(token) for token in group]
        for group in _split_or_parts(_split_and_trim(text))
    ]
    return lambda version: any(all(check(version) for check in group) for group in alternatives)


@dataclass(frozen=True)
class SemverWrap:
    """A parsed version together with the text it came from."""

    version: Version
    original: str


def new_semver(version: str) -> SemverWrap:
    return SemverWrap(parse_version(version), version)


def new_relaxed_semver(version: str) -> SemverWrap:
    """Like new_semver, but accepts a leading 'v'."""
    return SemverWrap(parse_version(version.removeprefix("v")), version)


def new_relaxed_semvers_no_err(versions: Iterable[str]) -> Semvers:
    """Collect the versions that parse, silently dropping the rest."""
    parsed = []
    for text in versions:
        try:
            parsed.append(new_relaxed_semver(text))
        except ValueError:
            continue
    return Semvers(tuple(parsed))


@dataclass(frozen=True)
class Semvers:
    """An immutable, ordered collection of versions."""

    versions: tuple[SemverWrap, ...] = ()

    def sorted(self) -> Semvers:
        """Ascending order; equal versions keep their relative order."""
        return Semvers(tuple(sorted(self.versions, key=lambda wrap: wrap.version)))

    def filter_constraints(self, constraint_list: str) -> Semvers:
        try:
            matches = parse_range(constraint_list)
        except ValueError as err:
            raise ValueError(f"Parsing version constraint '{constraint_list}': {err}") from err
        return Semvers(tuple(w for w in self.versions if matches(w.version)))

    def filter_prereleases(self, prereleases: VersionSelectionSemverPrereleases | None) -> Semvers:
        """Drop prereleases unless allowed, optionally only named identifiers."""
        if prereleases is None:
            return Semvers(tuple(w for w in self.versions if not w.version.pre))

        allowed = prereleases.identifiers_as_set()
        return Semvers(
            tuple(
                w
                for w in self.versions
                if not w.version.pre or self._keep_prerelease(w.version, allowed)
            )
        )

    @staticmethod
    def _keep_prerelease(version: Version, allowed: set[str]) -> bool:
        if not allowed:
            return True
        return any(isinstance(part, str) and part in allowed for part in version.pre)

    def filter(self, predicate: Callable[[str], bool]) -> Semvers:
        """Keep versions whose original text satisfies predicate."""
        return Semvers(tuple(w for w in self.versions if predicate(w.original)))

    def highest(self) -> str | None:
        """Original text of the highest version, or None if empty."""
        ordered = self.sorted().versions
        return ordered[-1].original if ordered else None

    def all(self) -> list[str]:
        return [w.original for w in self.versions]

    def __len__(self) -> int:
        return len(self.versions)

    def __iter__(self) -> Iterator[SemverWrap]:
        return iter(self.versions)
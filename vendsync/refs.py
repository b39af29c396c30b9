"""Secret and config map lookup, plus a scratch area for temporary files."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, TypeVar


class RefNotFoundError(LookupError):
    """Raised when a referenced secret or config map does not exist."""


@dataclass(frozen=True)
class Secret:
    """A named set of binary values."""

    name: str
    data: dict[str, bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class ConfigMap:
    """A named set of text values."""

    name: str
    data: dict[str, str] = field(default_factory=dict)


_Named = TypeVar("_Named", Secret, ConfigMap)


def _find_named(candidates: Iterable[_Named | None], name: str) -> _Named:
    for candidate in candidates:
        if candidate is not None and candidate.name == name:
            return candidate
    raise RefNotFoundError("Not found")


@dataclass(frozen=True)
class SingleSecretRefFetcher:
    """Resolves references against at most one known secret."""

    secret: Secret | None = None

    def get_secret(self, name: str) -> Secret:
        return _find_named((self.secret,), name)

    def get_config_map(self, name: str) -> ConfigMap:
        known_config_maps: tuple[ConfigMap, ...] = ()
        return _find_named(known_config_maps, name)


class TempArea:
    """Hands out fresh temporary directories and files under one root."""

    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self.root = os.fspath(root) if root is not None else None

    def _ensure_root(self) -> None:
        if self.root is not None:
            os.makedirs(self.root, exist_ok=True)

    def new_temp_dir(self, name: str) -> str:
        """Create an empty directory and return its path."""
        self._ensure_root()
        return tempfile.mkdtemp(prefix=f"{name}-", dir=self.root)

    def new_temp_file(self, name: str) -> BinaryIO:
        """Create an empty file and return it opened for binary writing."""
        self._ensure_root()
        fd, path = tempfile.mkstemp(prefix=f"{name}-", dir=self.root)
        os.close(fd)
        return open(path, "w+b")
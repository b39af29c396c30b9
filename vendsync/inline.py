"""Writing inline contents, secrets and config maps into a directory."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Protocol

from vendsync.move import scoped_path
from vendsync.refs import ConfigMap, Secret


class _RefFetcher(Protocol):
    def get_secret(self, name: str) -> Secret: ...

    def get_config_map(self, name: str) -> ConfigMap: ...


@dataclass(frozen=True)
class InlineSourceRef:
    """A named secret or config map and the subdirectory its keys go to."""

    name: str
    directory_path: str = ""


@dataclass(frozen=True)
class InlineSource:
    """One source of files: exactly one of the refs should be set."""

    secret_ref: InlineSourceRef | None = None
    config_map_ref: InlineSourceRef | None = None


@dataclass(frozen=True)
class InlineContents:
    """Files given directly, plus files taken from secrets and config maps."""

    paths: dict[str, str] = field(default_factory=dict)
    paths_from: list[InlineSource] = field(default_factory=list)


def _write_file(dst_path: str, sub_path: str, content: str | bytes) -> None:
    new_path = scoped_path(dst_path, sub_path)
    parent = os.path.dirname(new_path)

    try:
        os.makedirs(parent, 0o700, exist_ok=True)
    except OSError as err:
        raise OSError(f"Making parent directory '{parent}': {err}") from err

    data = content.encode() if isinstance(content, str) else content
    try:
        fd = os.open(new_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
    except OSError as err:
        raise OSError(f"Writing file '{new_path}': {err}") from err


@dataclass
class InlineSync:
    """Materialises inline contents under a destination directory."""

    opts: InlineContents
    ref_fetcher: _RefFetcher

    def sync(self, dst_path: str) -> None:
        """Write every configured file; paths may not escape dst_path."""
        for path, content in self.opts.paths.items():
            _write_file(dst_path, path, content)

        for source in self.opts.paths_from:
            if source.secret_ref is not None:
                self._write_from_secret(dst_path, source.secret_ref)
            elif source.config_map_ref is not None:
                self._write_from_config_map(dst_path, source.config_map_ref)
            else:
                raise ValueError("Expected either secretRef or configMapRef as a source")

    def _write_from_secret(self, dst_path: str, ref: InlineSourceRef) -> None:
        secret = self.ref_fetcher.get_secret(ref.name)
        for name, value in secret.data.items():
            _write_file(dst_path, os.path.join(ref.directory_path, name), value)

    def _write_from_config_map(self, dst_path: str, ref: InlineSourceRef) -> None:
        config_map = self.ref_fetcher.get_config_map(ref.name)
        for name, value in config_map.data.items():
            _write_file(dst_path, os.path.join(ref.directory_path, name), value)
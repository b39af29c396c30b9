"""Downloading a file over HTTP, checking its digest and unpacking it."""

from __future__ import annotations

import base64
import hashlib
import os
import posixpath
import shutil
import tarfile
import urllib.error
import urllib.request
import zipfile
from dataclasses import dataclass
from typing import BinaryIO, Protocol

from vendsync.move import move_dir, move_file, scoped_path
from vendsync.refs import ConfigMap, Secret, SingleSecretRefFetcher, TempArea

USERNAME_KEY = "username"
PASSWORD_KEY = "password"


class HttpFetchError(RuntimeError):
    """Raised when a download, digest check or unpack fails."""


class _RefFetcher(Protocol):
    def get_secret(self, name: str) -> Secret: ...

    def get_config_map(self, name: str) -> ConfigMap: ...


@dataclass(frozen=True)
class HttpContents:
    """A URL to fetch; secret_ref names a secret with basic auth credentials."""

    url: str = ""
    sha256: str = ""
    secret_ref: str | None = None
    disable_unpack: bool = False


class _TeeWriter:
    def __init__(self, dst: BinaryIO, digest) -> None:
        self._dst = dst
        self._digest = digest

    def write(self, data: bytes) -> int:
        self._digest.update(data)
        return self._dst.write(data)


def _unpack(archive_path: str, dst: str) -> None:
    if zipfile.is_zipfile(archive_path):
        with zipfile.ZipFile(archive_path) as archive:
            for name in archive.namelist():
                scoped_path(dst, name)
            archive.extractall(dst)
        return

    if tarfile.is_tarfile(archive_path):
        with tarfile.open(archive_path) as archive:
            members = archive.getmembers()
            for member in members:
                scoped_path(dst, member.name)
                if member.issym():
                    scoped_path(dst, os.path.join(os.path.dirname(member.name), member.linkname))
                elif member.islnk():
                    scoped_path(dst, member.linkname)
                elif member.isdev():
                    raise ValueError(f"Unsupported device entry in archive: {member.name}")
            extra = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}
            archive.extractall(dst, members, **extra)
        return

    raise ValueError(f"Unknown archive format: {os.path.basename(archive_path)}")


class HttpSync:
    """Fetches one URL into a destination directory."""

    def __init__(self, opts: HttpContents, ref_fetcher: _RefFetcher | None = None) -> None:
        self.opts = opts
        self.ref_fetcher = ref_fetcher if ref_fetcher is not None else SingleSecretRefFetcher()

    def sync(self, dst_path: str, temp_area: TempArea) -> None:
        """Replace dst_path with the unpacked download, or a dir holding the raw file."""
        if not self.opts.url:
            raise ValueError("Expected non-empty URL")

        tmp_file = temp_area.new_temp_file("vendir-http")
        tmp_name = tmp_file.name
        unpack_dir: str | None = None
        try:
            try:
                self._download_and_checksum(tmp_file)
            except HttpFetchError as err:
                raise HttpFetchError(f"Downloading URL: {err}") from err
            finally:
                tmp_file.close()

            incoming_dir = os.path.dirname(tmp_name)
            archive_path = os.path.join(incoming_dir, posixpath.basename(self.opts.url))
            os.rename(tmp_name, archive_path)

            if self.opts.disable_unpack:
                move_file(archive_path, dst_path)
                return

            unpack_dir = temp_area.new_temp_dir("http")
            try:
                _unpack(archive_path, unpack_dir)
            except (OSError, ValueError, tarfile.TarError, zipfile.BadZipFile) as err:
                raise HttpFetchError(f"Unpacking archive: {err}") from err
            move_dir(unpack_dir, dst_path)
        finally:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            if unpack_dir is not None:
                shutil.rmtree(unpack_dir, ignore_errors=True)

    def _download_and_checksum(self, dst: BinaryIO) -> None:
        expected = self.opts.sha256
        if not expected:
            self.download(dst)
            return

        digest = hashlib.sha256()
        self.download(_TeeWriter(dst, digest))
        actual = digest.hexdigest()
        if actual != expected:
            raise HttpFetchError(
                f"Expected digest to match 'sha256:{expected}', but was 'sha256:{actual}'"
            )

    def download(self, dst) -> None:
        """Stream the URL's body into dst, which needs only a write method."""
        try:
            request = urllib.request.Request(self.opts.url, method="GET")
        except ValueError as err:
            raise HttpFetchError(f"Building request: {err}") from err

        try:
            header = self.auth_header()
        except (ValueError, LookupError) as err:
            raise HttpFetchError(f"Adding auth to request: {err}") from err
        if header is not None:
            request.add_header("Authorization", header)

        try:
            response = urllib.request.urlopen(request)
        except urllib.error.HTTPError as err:
            err.close()
            raise HttpFetchError(f"Expected 200 OK, but was '{err.code} {err.reason}'") from err
        except (urllib.error.URLError, OSError, ValueError) as err:
            raise HttpFetchError(f"Initiating URL download: {err}") from err

        with response:
            if response.status != 200:
                raise HttpFetchError(
                    f"Expected 200 OK, but was '{response.status} {response.reason}'"
                )
            try:
                shutil.copyfileobj(response, dst)
            except OSError as err:
                raise HttpFetchError(f"Writing downloaded content: {err}") from err

    def auth_header(self) -> str | None:
        """Basic Authorization value from the configured secret, if any."""
        if self.opts.secret_ref is None:
            return None

        secret = self.ref_fetcher.get_secret(self.opts.secret_ref)
        for name in secret.data:
            if name not in (USERNAME_KEY, PASSWORD_KEY):
                raise ValueError(f"Unknown secret field '{name}' in secret '{secret.name}'")

        if USERNAME_KEY not in secret.data:
            return None
        credentials = secret.data[USERNAME_KEY] + b":" + secret.data.get(PASSWORD_KEY, b"")
        return "Basic " + base64.b64encode(credentials).decode("ascii")
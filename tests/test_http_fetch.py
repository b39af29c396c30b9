import base64
import hashlib
import io
import os
import stat
import tarfile
import threading
import zipfile
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace

import pytest

from vendsync.http_fetch import HttpContents, HttpFetchError, HttpSync
from vendsync.refs import RefNotFoundError, Secret, SingleSecretRefFetcher, TempArea


@pytest.fixture
def server(monkeypatch):
    for var in ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)

    routes: dict[str, bytes] = {}
    seen: list[dict[str, str]] = []

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            seen.append(dict(self.headers))
            body = routes.get(self.path)
            if body is None:
                self.send_response(404)
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    base = f"http://127.0.0.1:{httpd.server_address[1]}"
    yield SimpleNamespace(base=base, routes=routes, seen=seen)
    httpd.shutdown()
    httpd.server_close()


@pytest.fixture
def temp_area(tmp_path):
    return TempArea(tmp_path / "scratch")


def _tgz(files):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as archive:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def _zip(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for name, data in files.items():
            archive.writestr(name, data)
    return buf.getvalue()


def test_sync_raw_file_without_unpack(server, temp_area, tmp_path):
    server.routes["/files/data.txt"] = b"hello"
    dst = tmp_path / "dst"
    HttpSync(HttpContents(url=server.base + "/files/data.txt", disable_unpack=True)).sync(str(dst), temp_area)

    assert os.listdir(dst) == ["data.txt"]
    assert (dst / "data.txt").read_bytes() == b"hello"
    assert stat.S_IMODE(os.stat(dst).st_mode) == 0o700


def test_sync_unpacks_tgz(server, temp_area, tmp_path):
    server.routes["/release.tgz"] = _tgz({"a.txt": b"A", "sub/b.txt": b"B"})
    dst = tmp_path / "dst"
    dst.mkdir()
    (dst / "stale").write_text("old")

    HttpSync(HttpContents(url=server.base + "/release.tgz")).sync(str(dst), temp_area)

    assert sorted(os.listdir(dst)) == ["a.txt", "sub"]
    assert (dst / "sub" / "b.txt").read_bytes() == b"B"


def test_sync_unpacks_zip(server, temp_area, tmp_path):
    server.routes["/release.zip"] = _zip({"x/y.txt": b"Y"})
    dst = tmp_path / "dst"
    HttpSync(HttpContents(url=server.base + "/release.zip")).sync(str(dst), temp_area)
    assert (dst / "x" / "y.txt").read_bytes() == b"Y"


def test_sync_rejects_archive_escaping_root(server, temp_area, tmp_path):
    server.routes["/evil.tgz"] = _tgz({"../outside.txt": b"no"})
    with pytest.raises(HttpFetchError, match="Unpacking archive"):
        HttpSync(HttpContents(url=server.base + "/evil.tgz")).sync(str(tmp_path / "dst"), temp_area)
    assert not (tmp_path / "outside.txt").exists()


def test_sync_non_archive_fails_to_unpack(server, temp_area, tmp_path):
    server.routes["/plain.txt"] = b"just text"
    with pytest.raises(HttpFetchError, match="Unpacking archive"):
        HttpSync(HttpContents(url=server.base + "/plain.txt")).sync(str(tmp_path / "dst"), temp_area)


def test_sync_matching_sha256(server, temp_area, tmp_path):
    content = b"checked content"
    server.routes["/c.bin"] = content
    opts = HttpContents(
        url=server.base + "/c.bin", sha256=hashlib.sha256(content).hexdigest(), disable_unpack=True
    )
    HttpSync(opts).sync(str(tmp_path / "dst"), temp_area)
    assert (tmp_path / "dst" / "c.bin").read_bytes() == content


def test_sync_mismatching_sha256(server, temp_area, tmp_path):
    server.routes["/c.bin"] = b"content"
    opts = HttpContents(url=server.base + "/c.bin", sha256="0" * 64, disable_unpack=True)
    with pytest.raises(HttpFetchError, match="Expected digest to match 'sha256:0+', but was 'sha256:"):
        HttpSync(opts).sync(str(tmp_path / "dst"), temp_area)
    assert not (tmp_path / "dst").exists()


def test_sync_not_found(server, temp_area, tmp_path):
    opts = HttpContents(url=server.base + "/missing.tgz")
    with pytest.raises(HttpFetchError, match="Downloading URL: Expected 200 OK, but was '404"):
        HttpSync(opts).sync(str(tmp_path / "dst"), temp_area)


def test_sync_requires_url(temp_area, tmp_path):
    with pytest.raises(ValueError, match="Expected non-empty URL"):
        HttpSync(HttpContents()).sync(str(tmp_path / "dst"), temp_area)


def test_sync_cleans_temp_file(server, temp_area, tmp_path):
    server.routes["/f.txt"] = b"x"
    HttpSync(HttpContents(url=server.base + "/f.txt", disable_unpack=True)).sync(str(tmp_path / "dst"), temp_area)
    assert os.listdir(temp_area.root) == []


def test_sync_sends_basic_auth(server, temp_area, tmp_path):
    password = "password"
    server.routes["/secure.txt"] = b"ok"
    entry = Secret("creds", {"username": b"user", "password": password.encode()})
    opts = HttpContents(url=server.base + "/secure.txt", secret_ref="creds", disable_unpack=True)
    HttpSync(opts, SingleSecretRefFetcher(entry)).sync(str(tmp_path / "dst"), temp_area)

    header = server.seen[-1]["Authorization"]
    scheme, _, encoded = header.partition(" ")
    assert scheme == "Basic"
    assert base64.b64decode(encoded) == b"user:password"


def test_auth_header_none_without_secret_ref():
    assert HttpSync(HttpContents(url="http://example.com/x")).auth_header() is None


def test_auth_header_username_only():
    entry = Secret("creds", {"username": b"user"})
    sync = HttpSync(HttpContents(url="http://example.com/x", secret_ref="creds"), SingleSecretRefFetcher(entry))
    scheme, _, encoded = sync.auth_header().partition(" ")
    assert scheme == "Basic"
    assert base64.b64decode(encoded) == b"user:"


def test_auth_header_password_only_sends_nothing():
    password = "password"
    entry = Secret("creds", {"password": password.encode()})
    sync = HttpSync(HttpContents(url="http://example.com/x", secret_ref="creds"), SingleSecretRefFetcher(entry))
    assert sync.auth_header() is None


def test_auth_header_unknown_field():
    entry = Secret("creds", {"token": b"token"})
    sync = HttpSync(HttpContents(url="http://example.com/x", secret_ref="creds"), SingleSecretRefFetcher(entry))
    with pytest.raises(ValueError, match="Unknown secret field 'token' in secret 'creds'"):
        sync.auth_header()


def test_auth_header_missing_secret():
    sync = HttpSync(HttpContents(url="http://example.com/x", secret_ref="creds"))
    with pytest.raises(RefNotFoundError):
        sync.auth_header()


def test_download_wraps_auth_errors(server):
    sync = HttpSync(HttpContents(url=server.base + "/x", secret_ref="creds"))
    with pytest.raises(HttpFetchError, match="Adding auth to request"):
        sync.download(io.BytesIO())


def test_download_writes_body(server):
    server.routes["/body"] = b"payload bytes"
    out = io.BytesIO()
    HttpSync(HttpContents(url=server.base + "/body")).download(out)
    assert out.getvalue() == b"payload bytes"


def test_download_bad_url():
    with pytest.raises(HttpFetchError, match="Building request"):
        HttpSync(HttpContents(url="not a url")).download(io.BytesIO())
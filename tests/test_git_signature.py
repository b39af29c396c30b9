import subprocess
from unittest import mock

import pytest

from vendsync.git_signature import (
    GitCommandError,
    SignedObject,
    extract_commit_signature,
    extract_tag_signature,
    read_signed_object,
    single_line_title,
)

COMMIT_HEADER = [
    "tree f903fdfd4a595927b4b5eb392813b6f43ef55400",
    "parent 733d814eb2de09f0af7246a58351dd4b7106c48d",
    "author Git Git <git@example.com> 1604343706 +0000",
    "committer Git Git <git@example.com> 1604343706 +0000",
]
COMMIT_SIG_LINES = [
    "gpgsig -----BEGIN PGP SIGNATURE-----",
    " Version: GnuPG v1",
    " ",
    " iQEcBAABAgAGBQJfoFeaAAoJEIEYa81u6pVfLQQIAJJPuS5y47MB50HhmHrdF28T",
    " =hg/4",
    " -----END PGP SIGNATURE-----",
]
COMMIT_TAIL = ["", "signed-stranger-commit-msg", ""]
COMMIT_OBJ = "\n".join(COMMIT_HEADER + COMMIT_SIG_LINES + COMMIT_TAIL)

TAG_BODY = [
    "object 733d814eb2de09f0af7246a58351dd4b7106c48d",
    "type commit",
    "tag signed-trusted-tag",
    "tagger Git Git <git@example.com> 1604343706 +0000",
    "",
    "signed-trusted-tag-msg",
]
TAG_SIG_LINES = [
    "-----BEGIN PGP SIGNATURE-----",
    "Version: GnuPG v1",
    "",
    "iQEcBAABAgAGBQJfoFeaAAoJEHRsovO6vWHiLSkH/1/4dS1cm1Mq/cLaoeAJJUP7",
    "=fAAV",
    "-----END PGP SIGNATURE-----",
]
TAG_OBJ = "\n".join(TAG_BODY + TAG_SIG_LINES + [""])


def _completed(returncode, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_extract_commit_signature_strips_header_and_indent():
    result = extract_commit_signature(COMMIT_OBJ)
    assert result.contents == "\n".join(COMMIT_HEADER + COMMIT_TAIL)
    assert result.signature == "\n".join(TAG_SIG_LINES[:3] + [
        "iQEcBAABAgAGBQJfoFeaAAoJEIEYa81u6pVfLQQIAJJPuS5y47MB50HhmHrdF28T",
        "=hg/4",
        "-----END PGP SIGNATURE-----",
    ])


def test_extract_tag_signature_keeps_signature_verbatim():
    result = extract_tag_signature(TAG_OBJ)
    assert result == SignedObject(
        contents="\n".join(TAG_BODY + [""]),
        signature="\n".join(TAG_SIG_LINES),
    )


def test_unsigned_commit_raises():
    obj = "\n".join(COMMIT_HEADER + COMMIT_TAIL)
    with pytest.raises(ValueError) as info:
        extract_commit_signature(obj)
    assert "Expected to find commit signature:" in str(info.value)
    assert "Expected to find section 'PGP SIGNATURE', but did not" in str(info.value)


def test_unsigned_tag_raises():
    obj = "\n".join(TAG_BODY + [""])
    with pytest.raises(ValueError) as info:
        extract_tag_signature(obj)
    assert "Expected to find tag signature:" in str(info.value)
    assert "Expected to find section 'PGP SIGNATURE', but did not" in str(info.value)


def test_unterminated_tag_signature_raises():
    obj = "\n".join(TAG_BODY + TAG_SIG_LINES[:-1])
    with pytest.raises(ValueError, match="Expected section to be closed before ending"):
        extract_tag_signature(obj)


@mock.patch("vendsync.git_signature.subprocess.run")
def test_read_prefers_tag(run):
    run.return_value = _completed(0, stdout=TAG_OBJ)
    result = read_signed_object("/repo", "signed-trusted-tag")
    assert result == extract_tag_signature(TAG_OBJ)
    assert run.call_count == 1
    assert run.call_args.args[0] == ["git", "cat-file", "tag", "signed-trusted-tag"]
    assert run.call_args.kwargs["cwd"] == "/repo"


@mock.patch("vendsync.git_signature.subprocess.run")
def test_read_falls_back_to_commit(run):
    run.side_effect = [_completed(128, stderr="not a tag"), _completed(0, stdout=COMMIT_OBJ)]
    result = read_signed_object("/repo", "abc")
    assert result == extract_commit_signature(COMMIT_OBJ)
    assert run.call_args_list[1].args[0] == ["git", "cat-file", "commit", "abc"]


@mock.patch("vendsync.git_signature.subprocess.run")
def test_read_reports_failure(run):
    run.return_value = _completed(128, stderr="bad object")
    with pytest.raises(GitCommandError) as info:
        read_signed_object("/repo", "abc")
    assert "Reading git object for 'abc'" in str(info.value)
    assert "bad object" in str(info.value)


@mock.patch("vendsync.git_signature.subprocess.run")
def test_read_reports_missing_git(run):
    run.side_effect = FileNotFoundError("git")
    with pytest.raises(GitCommandError, match="Reading git object for 'abc'"):
        read_signed_object("/repo", "abc")


def test_single_line_title_keeps_single_line():
    assert single_line_title("title") == "title"


def test_single_line_title_marks_truncation():
    assert single_line_title("title\nmore\nlines") == "title..."


def test_single_line_title_empty():
    assert single_line_title("") == ""
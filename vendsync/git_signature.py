"""Reading signed git objects and splitting them into content and signature."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Sequence

from vendsync.sections import LineSectionReader

_COMMIT_SIGNATURE = LineSectionReader(
    start_line="gpgsig -----BEGIN PGP SIGNATURE-----",
    end_line=" -----END PGP SIGNATURE-----",
    description="PGP SIGNATURE",
)

_TAG_SIGNATURE = LineSectionReader(
    start_line="-----BEGIN PGP SIGNATURE-----",
    end_line="-----END PGP SIGNATURE-----",
    description="PGP SIGNATURE",
)


class GitCommandError(RuntimeError):
    """Raised when a git command fails or git cannot be started."""


@dataclass(frozen=True)
class SignedObject:
    """The signed bytes of a git object and its armored signature."""

    contents: str
    signature: str


def extract_commit_signature(obj: str) -> SignedObject:
    """Split a raw commit object; the signature lives in its gpgsig header."""
    try:
        non_sig, sig = _COMMIT_SIGNATURE.read(obj, True)
    except ValueError as err:
        raise ValueError(f"Expected to find commit signature: {err}") from err

    sig = sig.removeprefix("gpgsig ").replace("\n ", "\n")
    return SignedObject(contents=non_sig, signature=sig)


def extract_tag_signature(obj: str) -> SignedObject:
    """Split a raw tag object; the signature is appended to its body."""
    try:
        non_sig, sig = _TAG_SIGNATURE.read(obj, True)
    except ValueError as err:
        raise ValueError(f"Expected to find tag signature: {err}") from err

    return SignedObject(contents=non_sig, signature=sig)


def _run_git(repo_path: str, args: Sequence[str]) -> str:
    desc = "[" + " ".join(args) + "]"
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=repo_path,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as err:
        raise GitCommandError(f"Git {desc}: {err} (stderr: )") from err

    if result.returncode != 0:
        raise GitCommandError(
            f"Git {desc}: exit status {result.returncode} (stderr: {result.stderr})"
        )
    return result.stdout


def read_signed_object(repo_path: str, ref: str) -> SignedObject:
    """Read ref as a tag if possible, otherwise as a commit, and split it."""
    # A tag is tried first: "cat-file commit <tag>" would resolve to the
    # commit, which may not be signed itself.
    try:
        out = _run_git(repo_path, ["cat-file", "tag", ref])
    except GitCommandError:
        pass
    else:
        return extract_tag_signature(out)

    try:
        out = _run_git(repo_path, ["cat-file", "commit", ref])
    except GitCommandError as err:
        raise GitCommandError(f"Reading git object for '{ref}': {err}") from err
    return extract_commit_signature(out)


def single_line_title(text: str) -> str:
    """First line of a commit or changeset title, with '...' if more followed."""
    first, sep, _ = text.partition("\n")
    return first + "..." if sep else first
"""Best-effort splitting of an image reference into repo, tag and digest."""

from __future__ import annotations

import re
from dataclasses import dataclass

_IMAGE_REF_PARTS = re.compile(r"\A(.+?)(:[0-9a-zA-Z_\-.]+)?(@[0-9a-z]+:[0-9a-z]+)?\Z")


@dataclass(frozen=True)
class GuessedRefParts:
    """Parts of an image reference, guessed from its text alone."""

    repo: str = ""
    tag: str = ""
    digest: str = ""

    @classmethod
    def parse(cls, ref: str) -> GuessedRefParts:
        """Split ref; a reference that does not match yields empty parts."""
        match = _IMAGE_REF_PARTS.match(ref)
        if match is None:
            return cls()
        repo, tag, digest = match.groups()
        return cls(
            repo=repo,
            tag=(tag or "").removeprefix(":"),
            digest=(digest or "").removeprefix("@"),
        )
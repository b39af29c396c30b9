"""Finding sha256 checksums of release assets in release notes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class ReleaseAsset:
    """A file attached to a release."""

    name: str


def find_release_notes_checksums(assets: Iterable[ReleaseAsset], body: str) -> dict[str, str]:
    """Map each asset name to the sha256 listed for it in body.

    Raises ValueError naming the first asset whose checksum is missing.
    """
    lines = body.split("\n")
    results: dict[str, str] = {}

    for asset in assets:
        pattern = re.compile(
            r"^\s*([a-f0-9]{64})\s+(/|\./)?" + re.escape(asset.name) + r"\s*\Z"
        )
        for line in lines:
            match = pattern.match(line)
            if match:
                results[asset.name] = match.group(1)
                break
        else:
            raise ValueError(f"Expected to find sha256 checksum for file '{asset.name}'")

    return results
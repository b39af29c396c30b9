"""Splitting text into the lines of one delimited section and the rest."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LineSectionReader:
    """Finds a section that starts and ends with exact marker lines."""

    start_line: str
    end_line: str
    description: str

    def read(self, contents: str, required: bool = False) -> tuple[str, str]:
        """Return (lines outside the section, lines of the section), each newline-joined.

        The marker lines belong to the section. Raises ValueError when the
        markers are unbalanced, or when the section is required but absent.
        """
        outside: list[str] = []
        section: list[str] = []
        opened = closed = False

        for line in contents.split("\n"):
            if line == self.start_line:
                if opened:
                    raise ValueError("Expected section to be closed before opening")
                opened = True
                section.append(line)
            elif line == self.end_line:
                if not opened:
                    raise ValueError("Expected section to be opened before closing")
                closed = True
                section.append(line)
            elif opened and not closed:
                section.append(line)
            else:
                outside.append(line)

        if opened and not closed:
            raise ValueError("Expected section to be closed before ending")
        if required and not opened:
            raise ValueError(f"Expected to find section '{self.description}', but did not")

        return "\n".join(outside), "\n".join(section)
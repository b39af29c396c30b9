"""Building blocks for vendoring directory contents: version selection, paths, and helm, HTTP and inline sources."""

__version__ = "0.1.0"
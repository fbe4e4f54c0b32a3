"""
Exception types raised by the gallery build.

Per-file problems never use these; they are logged and the file degrades
to defaults. These are reserved for failures that abort a run.
"""


class GalleryError(Exception):
    """Base class for fatal gallery build errors."""


class ScanRootError(GalleryError):
    """The photo root exists but cannot be listed."""

    def __init__(self, root, reason: str = ""):
        self.root = root
        message = f"Cannot scan photo directory {root}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ScanRootMissing(ScanRootError):
    """The photo root does not exist."""

    def __init__(self, root):
        super().__init__(root, "directory does not exist")


class ManifestError(GalleryError):
    """The manifest could not be read or written."""

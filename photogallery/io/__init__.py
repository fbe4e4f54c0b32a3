"""File system discovery for the gallery build."""

from .scanner import DiscoveredFile, FileScanner, derive_category, derive_title

__all__ = ['DiscoveredFile', 'FileScanner', 'derive_category', 'derive_title']

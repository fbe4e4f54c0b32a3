"""
photogallery: build script for a static photo-gallery site

Scans a photo directory, normalizes images, generates thumbnails, extracts
EXIF metadata and writes the JSON manifest consumed by the front end.
"""

__version__ = "0.1.0"

from .config import GalleryConfig, load_config
from .pipeline import GalleryPipeline, RunSummary

__all__ = [
    "GalleryConfig",
    "GalleryPipeline",
    "RunSummary",
    "load_config",
]

"""EXIF reading and normalization."""

from .exif import (
    EMPTY_EXIF,
    UNKNOWN_CAMERA,
    UNKNOWN_LENS,
    ExifRecord,
    ExtractionResult,
    MetadataExtractor,
    format_aperture,
    format_shutter,
)
from .tags import load_tags

__all__ = [
    'EMPTY_EXIF',
    'UNKNOWN_CAMERA',
    'UNKNOWN_LENS',
    'ExifRecord',
    'ExtractionResult',
    'MetadataExtractor',
    'format_aperture',
    'format_shutter',
    'load_tags',
]

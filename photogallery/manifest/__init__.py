"""Manifest records and their persistence."""

from .builder import (
    MergeReport,
    PhotoRecord,
    ProcessedPhoto,
    build_full,
    load_manifest,
    merge,
    merge_with_report,
    serialize_manifest,
    write_manifest,
)

__all__ = [
    'MergeReport',
    'PhotoRecord',
    'ProcessedPhoto',
    'build_full',
    'load_manifest',
    'merge',
    'merge_with_report',
    'serialize_manifest',
    'write_manifest',
]

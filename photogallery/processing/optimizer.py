"""
Source normalization and thumbnail generation.

AssetOptimizer keeps full-resolution sources upright and bounded in size
(when enabled) and keeps a thumbnail per source up to date. Both steps are
best-effort: a codec failure is logged and the previous state on disk is
left untouched.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from photogallery.imaging.codec import ImageCodec, ImageInfo, PillowCodec
from photogallery.utils.files import atomic_write

logger = logging.getLogger(__name__)


class ThumbnailStatus(Enum):
    """What ensure_thumbnail did."""
    GENERATED = "generated"
    FRESH = "fresh"        # existing thumbnail is up to date
    FAILED = "failed"      # generation failed; any older thumbnail is kept


@dataclass(frozen=True)
class NormalizationPlan:
    """Whether a source needs rewriting, and why."""
    needs_rotation: bool
    is_too_large: bool

    @property
    def required(self) -> bool:
        return self.needs_rotation or self.is_too_large


@dataclass(frozen=True)
class NormalizationResult:
    data: bytes
    info: Optional[ImageInfo]
    rewritten: bool = False
    error: Optional[str] = None


def is_stale(source: Path, derived: Path) -> bool:
    """
    True when derived is missing or strictly older than source

    Raises:
        OSError: source cannot be stat'ed
    """
    source_mtime = source.stat().st_mtime
    try:
        derived_mtime = derived.stat().st_mtime
    except FileNotFoundError:
        return True
    return derived_mtime < source_mtime


class AssetOptimizer:
    """Normalizes sources and maintains thumbnails"""

    def __init__(self, codec: Optional[ImageCodec] = None,
                 max_dimension: int = 2500,
                 source_quality: int = 90,
                 thumbnail_width: int = 600,
                 thumbnail_format: str = 'webp',
                 thumbnail_quality: int = 75):
        """
        Initialize optimizer

        Args:
            codec: Image codec (Pillow by default)
            max_dimension: Ceiling for either side of a normalized source
            source_quality: Encoder quality when rewriting a source
            thumbnail_width: Target thumbnail width in pixels
            thumbnail_format: Thumbnail encoding (webp, jpeg, png)
            thumbnail_quality: Thumbnail encoder quality
        """
        self.codec = codec or PillowCodec()
        self.max_dimension = max_dimension
        self.source_quality = source_quality
        self.thumbnail_width = thumbnail_width
        self.thumbnail_format = thumbnail_format
        self.thumbnail_quality = thumbnail_quality

    def plan_normalization(self, info: ImageInfo) -> NormalizationPlan:
        return NormalizationPlan(
            needs_rotation=not info.is_upright,
            is_too_large=info.width > self.max_dimension or info.height > self.max_dimension,
        )

    def normalize_source(self, path: Path, data: bytes) -> NormalizationResult:
        """
        Rotate upright and downscale a source in place when needed

        Args:
            path: Source file, overwritten when a rewrite happens
            data: Current contents of path

        Returns:
            NormalizationResult carrying the buffer to use from here on:
            the rewritten bytes, or the original bytes when nothing was
            needed or anything failed.
        """
        try:
            info = self.codec.read_metadata(data)
        except Exception as e:
            logger.warning(f"Could not read image header of {path}: {e}")
            return NormalizationResult(data=data, info=None, error=str(e))

        plan = self.plan_normalization(info)
        if not plan.required:
            return NormalizationResult(data=data, info=info)

        try:
            image = self.codec.decode(data)
            image = self.codec.auto_rotate(image)
            if plan.is_too_large:
                image = self.codec.resize_to_fit(image, self.max_dimension, self.max_dimension)
            fmt = (info.format or path.suffix.lstrip('.')).lower()
            new_data = self.codec.encode(image, fmt, self.source_quality, keep_metadata=True)
            new_info = self.codec.read_metadata(new_data)
            atomic_write(path, new_data)
        except Exception as e:
            logger.warning(f"Could not normalize {path}, keeping original: {e}")
            return NormalizationResult(data=data, info=info, error=str(e))

        reasons = [r for r, hit in (('rotated', plan.needs_rotation),
                                    ('downscaled', plan.is_too_large)) if hit]
        logger.info(f"Normalized {path.name} ({', '.join(reasons)}): "
                    f"{info.width}x{info.height} -> {new_info.width}x{new_info.height}")
        return NormalizationResult(data=new_data, info=new_info, rewritten=True)

    def ensure_thumbnail(self, source: Path, thumbnail: Path,
                         data: Optional[bytes] = None) -> ThumbnailStatus:
        """
        Regenerate thumbnail if it is missing or older than source

        Args:
            source: Full-resolution file
            thumbnail: Where the thumbnail lives
            data: Contents of source, read from disk when None

        Returns:
            ThumbnailStatus
        """
        try:
            if not is_stale(source, thumbnail):
                return ThumbnailStatus.FRESH
        except OSError as e:
            logger.warning(f"Could not stat {source}: {e}")
            return ThumbnailStatus.FAILED

        try:
            if data is None:
                data = source.read_bytes()
            image = self.codec.decode(data)
            image = self.codec.auto_rotate(image)
            image = self.codec.resize_to_fit(image, self.thumbnail_width)
            encoded = self.codec.encode(image, self.thumbnail_format, self.thumbnail_quality)
            atomic_write(thumbnail, encoded)
        except Exception as e:
            logger.warning(f"Thumbnail generation failed for {source}: {e}")
            return ThumbnailStatus.FAILED

        logger.debug(f"Generated thumbnail: {thumbnail}")
        return ThumbnailStatus.GENERATED

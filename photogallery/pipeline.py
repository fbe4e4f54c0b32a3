"""
Gallery build pipeline

scan -> per-file work in bounded parallel chunks (normalize, thumbnail,
extract, measure) -> build or merge the manifest -> write it.

Per-file problems are logged and the file degrades to defaults. Only an
inaccessible photo root or a manifest read/write failure stops the run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import FrozenSet, List, Optional, Tuple

from photogallery.config import GalleryConfig
from photogallery.exceptions import ScanRootMissing
from photogallery.imaging.codec import ImageCodec, ImageInfo, PillowCodec
from photogallery.io.scanner import DiscoveredFile, FileScanner, find_stem_collisions
from photogallery.manifest.builder import (
    PhotoRecord,
    ProcessedPhoto,
    build_full,
    load_manifest,
    merge_with_report,
    write_manifest,
)
from photogallery.metadata.exif import ExtractionResult, MetadataExtractor
from photogallery.processing.optimizer import AssetOptimizer, ThumbnailStatus
from photogallery.processing.scheduler import BatchScheduler, ProgressCallback
from photogallery.utils.logging import RunStats

logger = logging.getLogger(__name__)

_THUMBNAIL_COUNTERS = {
    ThumbnailStatus.GENERATED: 'thumbnails_generated',
    ThumbnailStatus.FRESH: 'thumbnails_fresh',
    ThumbnailStatus.FAILED: 'thumbnails_failed',
}


@dataclass
class RunSummary:
    """Outcome of GalleryPipeline.run()."""
    records: List[PhotoRecord]
    stats: RunStats
    manifest_path: Path
    manifest_written: bool = False
    discovered: Tuple[DiscoveredFile, ...] = field(default_factory=tuple)


class GalleryPipeline:
    """Builds the gallery manifest from a photo directory"""

    def __init__(self, config: GalleryConfig,
                 codec: Optional[ImageCodec] = None,
                 extractor: Optional[MetadataExtractor] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        """
        Initialize the pipeline

        Args:
            config: Settings for this run
            codec: Image codec (Pillow by default)
            extractor: EXIF extractor (exifread-backed by default)
            progress_callback: Called with (completed, total) as files finish
        """
        self.config = config
        self.codec = codec or PillowCodec()
        self.extractor = extractor or MetadataExtractor()
        self.progress_callback = progress_callback
        self.optimizer = AssetOptimizer(
            codec=self.codec,
            max_dimension=config.max_dimension,
            source_quality=config.source_quality,
            thumbnail_width=config.thumbnail_width,
            thumbnail_format=config.thumbnail_format,
            thumbnail_quality=config.thumbnail_quality,
        )
        # Files whose thumbnail name keeps the source extension
        self._shared_stems: FrozenSet[str] = frozenset()

    def scanner(self) -> FileScanner:
        return FileScanner(self.config.photos_dir, self.config.extensions,
                           exclude=[self.config.thumbnails_dir])

    def discover(self) -> Tuple[DiscoveredFile, ...]:
        """
        Raises:
            ScanRootMissing: photo directory does not exist
            ScanRootError: photo directory cannot be listed
        """
        return self.scanner().scan()

    def source_url(self, file: DiscoveredFile) -> str:
        return f"{self.config.photos_url_prefix}/{file.relative_path}"

    def thumbnail_relative_path(self, file: DiscoveredFile) -> PurePosixPath:
        """
        Thumbnail location relative to the thumbnails root

        `travel/a.jpg` maps to `travel/a.webp`. When another photo in the same
        directory shares the stem, the source extension is kept
        (`travel/a.jpg.webp`) so the two never write the same thumbnail.
        """
        extension = self.config.thumbnail_extension
        if file.relative_path in self._shared_stems:
            return PurePosixPath(f"{file.relative_path}.{extension}")
        return PurePosixPath(file.relative_path).with_suffix(f".{extension}")

    def thumbnail_path(self, file: DiscoveredFile) -> Path:
        return self.config.thumbnails_dir.joinpath(*self.thumbnail_relative_path(file).parts)

    def thumbnail_url(self, file: DiscoveredFile) -> str:
        relative = self.thumbnail_relative_path(file)
        return f"{self.config.thumbnails_url_prefix}/{relative.as_posix()}"

    def process_file(self, file: DiscoveredFile, stats: RunStats) -> Optional[ProcessedPhoto]:
        """
        Run the per-file steps for one photo

        Returns:
            ProcessedPhoto, or None when the file cannot be read at all
        """
        name = file.relative_path
        try:
            data = file.absolute_path.read_bytes()
        except OSError as e:
            logger.warning(f"Skipping {name}: cannot read file: {e}")
            stats.add_warning(name, f"unreadable: {e}")
            return None

        info: Optional[ImageInfo] = None
        if self.config.normalize_sources:
            normalized = self.optimizer.normalize_source(file.absolute_path, data)
            data, info = normalized.data, normalized.info
            if normalized.rewritten:
                stats.increment('normalized_files')
            if normalized.error:
                stats.add_warning(name, f"normalization failed: {normalized.error}")

        thumbnail_file = self.thumbnail_path(file)
        if self.config.thumbnails_enabled:
            status = self.optimizer.ensure_thumbnail(file.absolute_path, thumbnail_file, data)
            stats.increment(_THUMBNAIL_COUNTERS[status])
            if status is ThumbnailStatus.FAILED:
                stats.add_warning(name, "thumbnail generation failed")
        # A thumbnail left over from an earlier run still beats the full-size image
        thumbnail = self.thumbnail_url(file) if thumbnail_file.is_file() else None

        extraction = self.extractor.extract(data, name)
        if not extraction.ok:
            stats.increment('metadata_failures')
            stats.add_warning(name, f"EXIF unreadable: {extraction.error}")
        else:
            logger.debug(f"Read {extraction.tag_count} EXIF tags from {name}")

        width, height = self._measure(data, info, extraction, name, stats)

        stats.increment('processed_files')
        return ProcessedPhoto(
            file=file,
            src=self.source_url(file),
            width=width,
            height=height,
            exif=extraction.exif,
            thumbnail=thumbnail,
        )

    def _measure(self, data: bytes, info: Optional[ImageInfo], extraction: ExtractionResult,
                 name: str, stats: RunStats) -> Tuple[int, int]:
        if info is None:
            try:
                info = self.codec.read_metadata(data)
            except Exception as e:
                logger.warning(f"Could not read dimensions of {name}: {e}")
                stats.add_warning(name, f"dimensions unreadable: {e}")
                return extraction.width, extraction.height
        return info.display_size

    def run(self) -> RunSummary:
        """
        Build the manifest and write it

        Returns:
            RunSummary

        Raises:
            ScanRootError: photo directory cannot be listed
            ManifestError: previous manifest unreadable, or the write failed
        """
        config = self.config
        stats = RunStats()

        try:
            files = self.discover()
        except ScanRootMissing:
            logger.warning(f"Photo directory {config.photos_dir} does not exist; "
                           f"no photos to process, manifest left untouched")
            return RunSummary(records=[], stats=stats, manifest_path=config.manifest_path)

        self._shared_stems = find_stem_collisions(files)
        for path in sorted(self._shared_stems):
            logger.warning(f"{path} shares its name with another photo in the same directory; "
                           f"its thumbnail keeps the source extension")

        # Read the previous manifest before any image work so a bad one fails fast
        previous = load_manifest(config.manifest_path) if config.incremental else []
        if previous:
            logger.info(f"Max existing id is {max(r.id for r in previous)}")

        stats.set_total(len(files))
        scheduler = BatchScheduler(config.concurrency, self.progress_callback)
        results = scheduler.run(files, lambda f: self.process_file(f, stats),
                                describe=lambda f: f.relative_path)
        photos = [photo for photo in results if photo is not None]
        stats.skipped_files = len(files) - len(photos)

        if config.incremental:
            report = merge_with_report(previous, photos, prune=config.prune,
                                       discovered_names={f.base_name for f in files})
            records = report.records
            stats.added_records = report.added
            stats.updated_records = report.updated
            stats.retained_records = report.retained
            stats.pruned_records = report.pruned
        else:
            records = build_full(photos)
            stats.added_records = len(records)

        write_manifest(config.manifest_path, records)
        stats.manifest_records = len(records)
        logger.info(f"Successfully generated gallery with {len(records)} photos")

        return RunSummary(records=records, stats=stats, manifest_path=config.manifest_path,
                          manifest_written=True, discovered=files)

"""
Manifest assembly, merging and persistence

The manifest is a pretty-printed JSON array of photo records, sorted by id,
that the front end fetches as-is. Two ways of producing it:

- build_full(): ids 1..N in scan order, previous manifest ignored
- merge(): previous records keep their ids (matched by file base name),
  new files get ids above the current maximum

Both are pure functions; load_manifest() and write_manifest() do the I/O.
"""

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from photogallery.exceptions import ManifestError
from photogallery.io.scanner import DiscoveredFile
from photogallery.metadata.exif import ExifRecord
from photogallery.utils.files import atomic_write

logger = logging.getLogger(__name__)

_KNOWN_KEYS = ('id', 'src', 'thumbnail', 'title', 'width', 'height', 'category', 'exif')


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class PhotoRecord:
    """One entry of the manifest."""

    id: int
    src: str
    title: str
    width: int
    height: int
    category: str
    exif: ExifRecord = field(default_factory=ExifRecord)
    thumbnail: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def base_name(self) -> str:
        """File name of src without extension; the key records are matched on."""
        return PurePosixPath(self.src).stem

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'id': self.id, 'src': self.src}
        if self.thumbnail:
            data['thumbnail'] = self.thumbnail
        data.update({
            'title': self.title,
            'width': self.width,
            'height': self.height,
            'category': self.category,
            'exif': self.exif.to_dict(),
        })
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhotoRecord":
        """
        Parse a manifest entry

        Raises:
            ManifestError: the entry has no usable id or src
        """
        if not isinstance(data, dict):
            raise ManifestError(f"Manifest entry is not an object: {data!r}")
        photo_id = _as_int(data.get('id'), default=-1)
        if photo_id < 1:
            raise ManifestError(f"Manifest entry has an invalid id: {data.get('id')!r}")
        src = data.get('src')
        if not isinstance(src, str) or not src:
            raise ManifestError(f"Manifest entry {photo_id} has no src")

        return cls(
            id=photo_id,
            src=src,
            title=str(data.get('title') or ''),
            width=_as_int(data.get('width')),
            height=_as_int(data.get('height')),
            category=str(data.get('category') or ''),
            exif=ExifRecord.from_dict(data.get('exif')),
            thumbnail=data.get('thumbnail') or None,
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )


@dataclass(frozen=True)
class ProcessedPhoto:
    """Everything learned about one discovered file during a run."""

    file: DiscoveredFile
    src: str
    width: int = 0
    height: int = 0
    exif: ExifRecord = field(default_factory=ExifRecord)
    thumbnail: Optional[str] = None

    @property
    def base_name(self) -> str:
        return self.file.base_name

    def to_record(self, photo_id: int) -> PhotoRecord:
        return PhotoRecord(
            id=photo_id,
            src=self.src,
            title=self.file.title,
            width=self.width,
            height=self.height,
            category=self.file.category,
            exif=self.exif,
            thumbnail=self.thumbnail,
        )

    def refresh(self, record: PhotoRecord) -> PhotoRecord:
        """Update an existing record with this run's data; id and title are kept."""
        return replace(
            record,
            src=self.src,
            thumbnail=self.thumbnail,
            width=self.width,
            height=self.height,
            category=self.file.category,
            exif=self.exif,
        )


@dataclass
class MergeReport:
    """Result of merging a run into a previous manifest."""
    records: List[PhotoRecord]
    added: int = 0
    updated: int = 0
    retained: int = 0
    pruned: int = 0


def sort_records(records: Iterable[PhotoRecord]) -> List[PhotoRecord]:
    return sorted(records, key=lambda r: r.id)


def build_full(photos: Sequence[ProcessedPhoto]) -> List[PhotoRecord]:
    """Fresh manifest: ids 1..N in the order photos were discovered."""
    return [photo.to_record(photo_id) for photo_id, photo in enumerate(photos, start=1)]


def merge_with_report(previous: Sequence[PhotoRecord], photos: Sequence[ProcessedPhoto],
                      prune: bool = False,
                      discovered_names: Optional[Set[str]] = None) -> MergeReport:
    """
    Merge this run's photos into a previous manifest

    Args:
        previous: Records of the previous manifest
        photos: Photos processed in this run, in discovery order
        prune: Drop previous records whose file is gone
        discovered_names: Base names of every file discovered in this run,
            including ones that could not be processed. Defaults to the
            base names of photos.

    Returns:
        MergeReport whose records are sorted by id
    """
    by_name: Dict[str, List[PhotoRecord]] = defaultdict(list)
    for record in sort_records(previous):
        by_name[record.base_name].append(record)

    next_id = max((r.id for r in previous), default=0)
    claimed: Set[int] = set()
    merged: Dict[int, PhotoRecord] = {}
    report = MergeReport(records=[])

    for photo in photos:
        # Files sharing a base name claim previous records in id order
        match = next((r for r in by_name.get(photo.base_name, ()) if r.id not in claimed), None)
        if match is not None:
            claimed.add(match.id)
            merged[match.id] = photo.refresh(match)
            report.updated += 1
            logger.debug(f"Updating existing entry for {photo.base_name} (id {match.id})")
        else:
            next_id += 1
            merged[next_id] = photo.to_record(next_id)
            report.added += 1
            logger.debug(f"Adding new entry for {photo.base_name} with id {next_id}")

    present = discovered_names if discovered_names is not None else {p.base_name for p in photos}
    for record in previous:
        if record.id in claimed:
            continue
        if prune and record.base_name not in present:
            report.pruned += 1
            logger.info(f"Pruning entry {record.id} ({record.src}): file no longer exists")
            continue
        merged[record.id] = record
        report.retained += 1

    report.records = sort_records(merged.values())
    return report


def merge(previous: Sequence[PhotoRecord], photos: Sequence[ProcessedPhoto],
          prune: bool = False, discovered_names: Optional[Set[str]] = None) -> List[PhotoRecord]:
    """Records of merge_with_report(); see there."""
    return merge_with_report(previous, photos, prune, discovered_names).records


def load_manifest(path: Path) -> List[PhotoRecord]:
    """
    Read a manifest written by an earlier run

    A missing file is an empty manifest.

    Raises:
        ManifestError: the file is unreadable, not a JSON array, or has
            duplicate ids
    """
    path = Path(path)
    if not path.exists():
        return []

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ManifestError(f"Could not read manifest {path}: {e}") from e

    if not isinstance(data, list):
        raise ManifestError(f"Manifest {path} is not a JSON array")

    records = [PhotoRecord.from_dict(entry) for entry in data]
    seen: Set[int] = set()
    for record in records:
        if record.id in seen:
            raise ManifestError(f"Manifest {path} has duplicate id {record.id}")
        seen.add(record.id)

    logger.info(f"Loaded {len(records)} existing photo entries from {path}")
    return records


def serialize_manifest(records: Iterable[PhotoRecord]) -> str:
    """Stable, pretty-printed JSON for the manifest, sorted by id."""
    payload = [record.to_dict() for record in sort_records(records)]
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def write_manifest(path: Path, records: Iterable[PhotoRecord]) -> None:
    """
    Persist the manifest atomically

    Raises:
        ManifestError: serialization or the write failed
    """
    path = Path(path)
    try:
        text = serialize_manifest(records)
        atomic_write(path, text.encode('utf-8'))
    except (OSError, TypeError, ValueError) as e:
        raise ManifestError(f"Could not write manifest {path}: {e}") from e
    logger.info(f"Manifest saved to {path}")

"""
Camera metadata extraction for manifest records

Turns a raw file buffer into the normalized exif block of a photo record.
Missing or malformed tags never fail a photo: every field falls back to an
empty string or an explicit "Unknown ..." sentinel.
"""

import math
import logging
from dataclasses import dataclass, asdict, field
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from photogallery.metadata.tags import load_tags

logger = logging.getLogger(__name__)

UNKNOWN_CAMERA = 'Unknown Camera'
UNKNOWN_LENS = 'Unknown Lens'

# First match wins; vendors disagree on where these live
CAMERA_TAGS = ('Image Model', 'EXIF Model', 'Image UniqueCameraModel', 'Image Make')
LENS_TAGS = ('EXIF LensModel', 'Image LensModel', 'EXIF Lens')
ISO_TAGS = ('EXIF ISOSpeedRatings', 'EXIF PhotographicSensitivity', 'EXIF ISOSpeed',
            'Image ISOSpeedRatings')
APERTURE_TAGS = ('EXIF FNumber', 'Image FNumber')
SHUTTER_TAGS = ('EXIF ExposureTime', 'Image ExposureTime')
WIDTH_TAGS = ('EXIF ExifImageWidth', 'Image ImageWidth')
HEIGHT_TAGS = ('EXIF ExifImageLength', 'Image ImageLength')


@dataclass(frozen=True)
class ExifRecord:
    """The exif block of a manifest record. Every field is a string."""

    camera: str = UNKNOWN_CAMERA
    lens: str = UNKNOWN_LENS
    iso: str = ''
    aperture: str = ''
    shutter: str = ''

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> "ExifRecord":
        data = data or {}
        defaults = cls()
        return cls(**{
            key: str(data[key]) if data.get(key) not in (None, '') else getattr(defaults, key)
            for key in ('camera', 'lens', 'iso', 'aperture', 'shutter')
        })


EMPTY_EXIF = ExifRecord()


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of reading metadata from one file."""

    exif: ExifRecord = EMPTY_EXIF
    width: int = 0
    height: int = 0
    error: Optional[str] = None
    tag_count: int = field(default=0, compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None


def first_tag(tags: Mapping[str, str], names: Sequence[str]) -> str:
    """Value of the first tag in names that is present and non-empty."""
    for name in names:
        value = tags.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ''


def format_shutter(value: Union[str, float, int, None]) -> str:
    """
    Display form of an exposure time

    Fractions pass through unchanged. Decimal seconds below one second are
    rewritten as 1/N; one second or longer (and zero) pass through as-is.

    >>> format_shutter(0.008)
    '1/125'
    >>> format_shutter('1/125')
    '1/125'
    """
    if value is None:
        return ''
    text = str(value).strip()
    if not text or '/' in text:
        return text
    try:
        seconds = float(text)
    except ValueError:
        return text
    if seconds >= 1 or seconds <= 0 or not math.isfinite(seconds):
        return text
    return f"1/{int(math.floor(1 / seconds + 0.5))}"


def format_aperture(value: Union[str, float, int, None]) -> str:
    """
    Display form of an f-number: prefixed with 'f/' unless it already starts with f

    >>> format_aperture(2.8)
    'f/2.8'
    >>> format_aperture('f/2.8')
    'f/2.8'
    """
    if value is None:
        return ''
    text = str(value).strip()
    if not text or text[0] in 'fF':
        return text
    return f"f/{text}"


def _parse_dimension(value: str) -> int:
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def exif_from_tags(tags: Mapping[str, str]) -> ExifRecord:
    """Normalize a tag mapping into an ExifRecord."""
    return ExifRecord(
        camera=first_tag(tags, CAMERA_TAGS) or UNKNOWN_CAMERA,
        lens=first_tag(tags, LENS_TAGS) or UNKNOWN_LENS,
        iso=first_tag(tags, ISO_TAGS),
        aperture=format_aperture(first_tag(tags, APERTURE_TAGS)),
        shutter=format_shutter(first_tag(tags, SHUTTER_TAGS)),
    )


def dimensions_from_tags(tags: Mapping[str, str]) -> Tuple[int, int]:
    return (_parse_dimension(first_tag(tags, WIDTH_TAGS)),
            _parse_dimension(first_tag(tags, HEIGHT_TAGS)))


class MetadataExtractor:
    """Reads the exif block and EXIF-declared dimensions from file buffers"""

    def __init__(self, tag_reader: Callable[[bytes], Mapping[str, str]] = load_tags):
        """
        Initialize extractor

        Args:
            tag_reader: Function loading a tag mapping from a buffer
        """
        self.tag_reader = tag_reader

    def extract(self, data: bytes, name: str = '') -> ExtractionResult:
        """
        Extract metadata from a raw file buffer

        Never raises: an unreadable EXIF segment gives EMPTY_EXIF with the
        error recorded on the result.
        """
        try:
            tags = self.tag_reader(data) or {}
        except Exception as e:  # exifread raises a wide variety on corrupt segments
            logger.warning(f"Could not read EXIF from {name or 'buffer'}: {e}")
            return ExtractionResult(error=str(e) or type(e).__name__)

        width, height = dimensions_from_tags(tags)
        return ExtractionResult(
            exif=exif_from_tags(tags),
            width=width,
            height=height,
            tag_count=len(tags),
        )

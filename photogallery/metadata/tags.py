"""
EXIF tag reading with exifread.

load_tags() turns a raw file buffer into a flat mapping of exifread tag
names ("Image Model", "EXIF FNumber", ...) to display strings.
"""

import io
import logging
from typing import Any, Dict

import exifread

logger = logging.getLogger(__name__)

_SKIPPED_TAGS = ('JPEGThumbnail', 'TIFFThumbnail', 'EXIF MakerNote')
# Exposure times read naturally as fractions; other rationals as decimals
_FRACTION_TAGS = ('ExposureTime',)


def _is_ratio(value: Any) -> bool:
    return hasattr(value, 'num') and hasattr(value, 'den')


def _format_decimal(num: int, den: int) -> str:
    if den == 0:
        return ''
    value = float(num) / float(den)
    return f"{value:.1f}".rstrip('0').rstrip('.') if value != int(value) else str(int(value))


def describe_tag(name: str, tag: Any) -> str:
    """Display string for one exifread tag."""
    values = getattr(tag, 'values', None)
    if isinstance(values, list) and len(values) == 1 and _is_ratio(values[0]):
        ratio = values[0]
        if name.endswith(_FRACTION_TAGS):
            return str(tag).strip()
        return _format_decimal(ratio.num, ratio.den)
    return str(tag).strip()


def load_tags(data: bytes) -> Dict[str, str]:
    """
    Load EXIF tags from an in-memory file

    Args:
        data: Complete file contents

    Returns:
        Mapping of tag name to display string. Empty when the file has no
        EXIF segment.

    Raises:
        Whatever exifread raises on a corrupt segment; callers decide how
        to degrade.
    """
    tags = exifread.process_file(io.BytesIO(data), details=False)
    described = {}
    for name, tag in tags.items():
        if name in _SKIPPED_TAGS:
            continue
        text = describe_tag(name, tag)
        if text:
            described[name] = text
    return described

"""
Image codec used by the gallery build.

ImageCodec is the interface the optimizer and pipeline depend on: decode,
read dimensions and orientation, auto-rotate, resize-to-fit and encode, all
on in-memory buffers. PillowCodec implements it with Pillow.
"""

import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

ORIENTATION_TAG = 0x0112
UPRIGHT = 1
# Orientations 5-8 include a quarter turn: stored width/height are swapped on display
TRANSPOSED_ORIENTATIONS = frozenset({5, 6, 7, 8})

_PIL_FORMATS = {
    'jpg': 'JPEG',
    'jpeg': 'JPEG',
    'mpo': 'JPEG',
    'png': 'PNG',
    'webp': 'WEBP',
}


@dataclass(frozen=True)
class ImageInfo:
    """Header-level facts about an encoded image."""

    width: int
    height: int
    orientation: Optional[int] = None
    format: Optional[str] = None

    @property
    def is_upright(self) -> bool:
        return self.orientation in (None, UPRIGHT)

    @property
    def display_size(self) -> Tuple[int, int]:
        """Width and height as a viewer honoring the orientation tag shows them."""
        if self.orientation in TRANSPOSED_ORIENTATIONS:
            return self.height, self.width
        return self.width, self.height


class ImageCodec(ABC):
    """Operations the gallery build needs from an image library."""

    @abstractmethod
    def read_metadata(self, data: bytes) -> ImageInfo:
        """Read dimensions and orientation without decoding pixels."""

    @abstractmethod
    def decode(self, data: bytes) -> Image.Image:
        """Decode a buffer into an image."""

    @abstractmethod
    def auto_rotate(self, image: Image.Image) -> Image.Image:
        """Apply the orientation tag to the pixels and reset the tag."""

    @abstractmethod
    def resize_to_fit(self, image: Image.Image, max_width: int,
                      max_height: Optional[int] = None) -> Image.Image:
        """Shrink to fit inside the box, preserving aspect ratio. Never upscales."""

    @abstractmethod
    def encode(self, image: Image.Image, fmt: str, quality: int,
               keep_metadata: bool = False) -> bytes:
        """Encode to the given format and quality."""


class PillowCodec(ImageCodec):
    """ImageCodec backed by Pillow"""

    def read_metadata(self, data: bytes) -> ImageInfo:
        with Image.open(io.BytesIO(data)) as img:
            orientation = None
            try:
                orientation = img.getexif().get(ORIENTATION_TAG)
            except (OSError, ValueError, SyntaxError) as e:
                logger.debug(f"Could not read orientation tag: {e}")
            return ImageInfo(
                width=img.width,
                height=img.height,
                orientation=int(orientation) if orientation else None,
                format=img.format,
            )

    def decode(self, data: bytes) -> Image.Image:
        img = Image.open(io.BytesIO(data))
        img.load()
        return img

    def auto_rotate(self, image: Image.Image) -> Image.Image:
        rotated = ImageOps.exif_transpose(image)
        return rotated if rotated is not None else image

    def resize_to_fit(self, image: Image.Image, max_width: int,
                      max_height: Optional[int] = None) -> Image.Image:
        if max_height is None:
            max_height = image.height
        if image.width <= max_width and image.height <= max_height:
            return image

        resized = image.copy()
        resized.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
        return resized

    def encode(self, image: Image.Image, fmt: str, quality: int,
               keep_metadata: bool = False) -> bytes:
        pil_format = _PIL_FORMATS.get(fmt.lower())
        if pil_format is None:
            raise ValueError(f"Unsupported output format: {fmt}")

        if pil_format == 'JPEG' and image.mode not in ('RGB', 'L'):
            image = image.convert('RGB')
        elif pil_format == 'WEBP' and image.mode not in ('RGB', 'RGBA'):
            image = image.convert('RGBA' if 'A' in image.getbands() else 'RGB')

        params = {}
        if pil_format in ('JPEG', 'WEBP'):
            params['quality'] = quality
        if pil_format == 'WEBP':
            params['method'] = 6
        else:
            params['optimize'] = True

        if keep_metadata:
            exif = image.getexif()
            if exif:
                if ORIENTATION_TAG in exif:
                    exif[ORIENTATION_TAG] = UPRIGHT
                params['exif'] = exif.tobytes()
            icc_profile = image.info.get('icc_profile')
            if icc_profile:
                params['icc_profile'] = icc_profile

        buffer = io.BytesIO()
        image.save(buffer, format=pil_format, **params)
        return buffer.getvalue()

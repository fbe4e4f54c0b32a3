"""
Shared fixtures: small generated photos and a throwaway gallery layout.
"""

import threading
import time
from pathlib import Path

import pytest
from PIL import Image
from PIL.TiffImagePlugin import IFDRational

from photogallery.config import GalleryConfig
from photogallery.imaging.codec import PillowCodec

TAG_MODEL = 0x0110
TAG_ORIENTATION = 0x0112
TAG_EXPOSURE_TIME = 0x829A
TAG_FNUMBER = 0x829D
TAG_ISO = 0x8827
TAG_LENS_MODEL = 0xA434

CAMERA_EXIF = {
    TAG_MODEL: "TestCam X100",
    TAG_LENS_MODEL: "TestLens 35mm F2",
    TAG_EXPOSURE_TIME: IFDRational(1, 125),
    TAG_FNUMBER: IFDRational(28, 10),
    TAG_ISO: 400,
}


def make_photo(path: Path, size=(64, 48), color=(200, 30, 30), exif_tags=None,
               fmt=None) -> Path:
    """Write a solid-color image, optionally with EXIF tags in IFD0."""
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.new('RGB', size, color)
    fmt = fmt or ('PNG' if path.suffix.lower() == '.png' else 'JPEG')
    params = {}
    if exif_tags:
        exif = Image.Exif()
        for tag, value in exif_tags.items():
            exif[tag] = value
        params['exif'] = exif.tobytes()
    if fmt == 'JPEG':
        params['quality'] = 90
    image.save(path, format=fmt, **params)
    return path


class InstrumentedCodec(PillowCodec):
    """PillowCodec that records how many decodes run at the same time."""

    def __init__(self, delay: float = 0.02):
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.decodes = 0
        self._lock = threading.Lock()

    def decode(self, data):
        with self._lock:
            self.in_flight += 1
            self.decodes += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delay)
            return super().decode(data)
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def gallery_root(tmp_path):
    """Site layout with empty photo and thumbnail directories."""
    (tmp_path / "photos").mkdir()
    (tmp_path / "thumbnails").mkdir()
    return tmp_path


@pytest.fixture
def gallery_config(gallery_root):
    return GalleryConfig(
        photos_dir=gallery_root / "photos",
        thumbnails_dir=gallery_root / "thumbnails",
        manifest_path=gallery_root / "photos.json",
    )


@pytest.fixture
def photos_dir(gallery_root):
    return gallery_root / "photos"


@pytest.fixture
def camera_photo(photos_dir):
    """A landscape JPEG in the travel category with full camera EXIF."""
    return make_photo(photos_dir / "travel" / "lisbon-tram.jpg", size=(80, 60),
                      exif_tags=CAMERA_EXIF)

"""
Tests for thumbnail maintenance and source normalization.
"""

import os

from PIL import Image

from photogallery.imaging.codec import PillowCodec
from photogallery.processing.optimizer import AssetOptimizer, ThumbnailStatus, is_stale

from conftest import TAG_ORIENTATION, make_photo


def age(path, seconds):
    """Move a file's mtime into the past."""
    stat = path.stat()
    os.utime(path, (stat.st_atime - seconds, stat.st_mtime - seconds))


class FailingCodec(PillowCodec):
    def encode(self, image, fmt, quality, keep_metadata=False):
        raise OSError("encoder exploded")


class TestStaleness:
    """Test the regenerate-when-older rule."""

    def test_missing_thumbnail_is_stale(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg")
        assert is_stale(source, tmp_path / "a.webp")

    def test_newer_thumbnail_is_fresh(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg")
        thumb = make_photo(tmp_path / "a.webp", fmt="WEBP")
        age(source, 60)
        assert not is_stale(source, thumb)

    def test_equal_mtime_is_fresh(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg")
        thumb = make_photo(tmp_path / "a.webp", fmt="WEBP")
        mtime = source.stat().st_mtime
        os.utime(thumb, (mtime, mtime))
        assert not is_stale(source, thumb)

    def test_older_thumbnail_is_stale(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg")
        thumb = make_photo(tmp_path / "a.webp", fmt="WEBP")
        age(thumb, 60)
        assert is_stale(source, thumb)


class TestEnsureThumbnail:
    """Test thumbnail generation."""

    def test_generates_webp_at_target_width(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg", size=(1200, 800))
        thumb = tmp_path / "thumbs" / "a.webp"

        status = AssetOptimizer(thumbnail_width=600).ensure_thumbnail(source, thumb)

        assert status is ThumbnailStatus.GENERATED
        with Image.open(thumb) as img:
            assert img.format == "WEBP"
            assert img.size == (600, 400)

    def test_never_upscales(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg", size=(300, 200))
        thumb = tmp_path / "a.webp"

        AssetOptimizer(thumbnail_width=600).ensure_thumbnail(source, thumb)

        with Image.open(thumb) as img:
            assert img.size == (300, 200)

    def test_fresh_thumbnail_is_left_alone(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg")
        thumb = tmp_path / "a.webp"
        optimizer = AssetOptimizer()
        optimizer.ensure_thumbnail(source, thumb)
        age(source, 60)
        before = thumb.stat().st_mtime_ns

        assert optimizer.ensure_thumbnail(source, thumb) is ThumbnailStatus.FRESH
        assert thumb.stat().st_mtime_ns == before

    def test_touched_source_regenerates_only_its_thumbnail(self, tmp_path):
        first = make_photo(tmp_path / "a.jpg")
        second = make_photo(tmp_path / "b.jpg")
        optimizer = AssetOptimizer()
        for source in (first, second):
            optimizer.ensure_thumbnail(source, source.with_suffix(".webp"))
            age(source, 60)
        first_thumb = first.with_suffix(".webp")
        second_thumb = second.with_suffix(".webp")
        age(first_thumb, 120)
        untouched = second_thumb.stat().st_mtime_ns

        assert optimizer.ensure_thumbnail(first, first_thumb) is ThumbnailStatus.GENERATED
        assert optimizer.ensure_thumbnail(second, second_thumb) is ThumbnailStatus.FRESH
        assert not is_stale(first, first_thumb)
        assert second_thumb.stat().st_mtime_ns == untouched

    def test_thumbnail_is_rotated_upright(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg", size=(80, 40), exif_tags={TAG_ORIENTATION: 6})
        thumb = tmp_path / "a.webp"

        AssetOptimizer().ensure_thumbnail(source, thumb)

        with Image.open(thumb) as img:
            assert img.size == (40, 80)

    def test_failure_keeps_previous_thumbnail(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg")
        thumb = make_photo(tmp_path / "a.webp", fmt="WEBP")
        age(thumb, 60)
        before = thumb.read_bytes()

        status = AssetOptimizer(codec=FailingCodec()).ensure_thumbnail(source, thumb)

        assert status is ThumbnailStatus.FAILED
        assert thumb.read_bytes() == before
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.jpg", "a.webp"]

    def test_undecodable_source(self, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"not an image")

        status = AssetOptimizer().ensure_thumbnail(source, tmp_path / "a.webp")

        assert status is ThumbnailStatus.FAILED
        assert not (tmp_path / "a.webp").exists()


class TestNormalizeSource:
    """Test in-place rotation and downscaling of sources."""

    def test_upright_small_source_untouched(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg", size=(100, 50))
        data = source.read_bytes()

        result = AssetOptimizer(max_dimension=200).normalize_source(source, data)

        assert not result.rewritten
        assert result.data == data
        assert source.read_bytes() == data
        assert (result.info.width, result.info.height) == (100, 50)

    def test_downscales_large_source(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg", size=(400, 200))

        result = AssetOptimizer(max_dimension=200).normalize_source(source, source.read_bytes())

        assert result.rewritten
        assert (result.info.width, result.info.height) == (200, 100)
        assert result.data == source.read_bytes()
        with Image.open(source) as img:
            assert img.size == (200, 100)
            assert img.format == "JPEG"

    def test_rotates_tagged_source(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg", size=(80, 40), exif_tags={TAG_ORIENTATION: 6})

        result = AssetOptimizer().normalize_source(source, source.read_bytes())

        assert result.rewritten
        with Image.open(source) as img:
            assert img.size == (40, 80)
            assert img.getexif().get(TAG_ORIENTATION, 1) == 1

    def test_failure_keeps_original(self, tmp_path):
        source = make_photo(tmp_path / "a.jpg", size=(400, 200))
        data = source.read_bytes()

        result = AssetOptimizer(codec=FailingCodec(), max_dimension=200).normalize_source(source, data)

        assert not result.rewritten
        assert result.error
        assert result.data == data
        assert source.read_bytes() == data

"""Image codec interface and its Pillow implementation."""

from .codec import ImageCodec, ImageInfo, PillowCodec

__all__ = ['ImageCodec', 'ImageInfo', 'PillowCodec']

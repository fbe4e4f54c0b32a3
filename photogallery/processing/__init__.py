"""
Per-photo processing: source normalization, thumbnails and batch scheduling.
"""

from .optimizer import AssetOptimizer, NormalizationPlan, ThumbnailStatus, is_stale
from .scheduler import BatchScheduler

__all__ = [
    'AssetOptimizer',
    'BatchScheduler',
    'NormalizationPlan',
    'ThumbnailStatus',
    'is_stale',
]

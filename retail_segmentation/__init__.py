"""
Retail Customer Segmentation Engine
===================================

Behavioral segmentation of retail customers:
- Min-max normalized RFM features
- K-Means clustering with K-Means++ seeding
- RFM heuristic segment naming
- Atomic replacement of the stored segmentation

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Retail Analytics Team"

from .common import Reporter
from .customer_segmentation import (
    CustomerAggregate,
    FeatureNormalizer,
    KMeansSegmenter,
    SegmentLabeler,
    SegmentAnalyzer,
    SegmentationOrchestrator,
)
from .storage import SegmentStore
from .exceptions import (
    SegmentationError,
    InsufficientDataError,
    DimensionMismatchError,
    EmptyClusterInputError,
)

__all__ = [
    "Reporter",
    "CustomerAggregate",
    "FeatureNormalizer",
    "KMeansSegmenter",
    "SegmentLabeler",
    "SegmentAnalyzer",
    "SegmentationOrchestrator",
    "SegmentStore",
    "SegmentationError",
    "InsufficientDataError",
    "DimensionMismatchError",
    "EmptyClusterInputError",
]

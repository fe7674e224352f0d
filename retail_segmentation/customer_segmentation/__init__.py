"""
Customer Segmentation Module
============================

K-Means++ clustering of normalized RFM features with heuristic
segment naming and atomic replacement of the stored segmentation.
"""

from .rfm_features import CustomerAggregate, SegmentAssignment, FeatureNormalizer, normalize_features
from .kmeans_clustering import KMeansSegmenter, KMeansPlusPlusInitializer, Cluster, run_lloyd, predict_cluster
from .segment_analysis import SegmentLabeler, SegmentAnalyzer
from .orchestrator import SegmentationOrchestrator, SegmentationResult, ClusterSummary

__all__ = [
    "CustomerAggregate",
    "SegmentAssignment",
    "FeatureNormalizer",
    "normalize_features",
    "KMeansSegmenter",
    "KMeansPlusPlusInitializer",
    "Cluster",
    "run_lloyd",
    "predict_cluster",
    "SegmentLabeler",
    "SegmentAnalyzer",
    "SegmentationOrchestrator",
    "SegmentationResult",
    "ClusterSummary",
]

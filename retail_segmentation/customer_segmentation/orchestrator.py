"""
Segmentation Orchestrator
=========================

Drives a full segmentation run: load eligible customers, normalize,
cluster, label, and atomically replace the stored segmentation.

Usage:
    from retail_segmentation.customer_segmentation import SegmentationOrchestrator

    orchestrator = SegmentationOrchestrator(store, random_state=42)
    result = orchestrator.run(num_clusters=4)
    for segment in result.segments:
        print(segment.segment_id, segment.segment_name, segment.customer_count)
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, List, Dict, Any, Sequence
import numpy as np
from loguru import logger

from ..exceptions import InsufficientDataError, SegmentationNotFoundError
from .distance import DEFAULT_EPSILON
from .kmeans_clustering import KMeansSegmenter, RandomSource, DEFAULT_MAX_ITERATIONS, predict_cluster
from .rfm_features import CustomerAggregate, FeatureNormalizer, SegmentAssignment
from .segment_analysis import SegmentLabeler

DEFAULT_NUM_CLUSTERS = 4


@dataclass
class ClusterSummary:
    segment_id: int
    segment_name: str
    customer_count: int
    centroid: List[float]


@dataclass
class SegmentationResult:
    """Outcome of one completed run."""

    segments: List[ClusterSummary]
    assignments: List[SegmentAssignment]
    iterations: int
    converged: bool
    inertia: float
    metrics: Dict[str, Any] = field(default_factory=dict)
    feature_ranges: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'segments': [asdict(s) for s in self.segments],
            'iterations': self.iterations,
            'converged': self.converged,
            'inertia': self.inertia,
            'metrics': self.metrics,
            'feature_ranges': self.feature_ranges,
        }


class SegmentationOrchestrator:
    """
    Runs the segmentation pipeline against a SegmentStore.

    Each run is independent: the only state it touches is the stored
    assignment table, which it replaces in a single transaction. Errors
    propagate to the caller and leave the previous assignments intact.

    Example:
        >>> orchestrator = SegmentationOrchestrator(store, random_state=42)
        >>> result = orchestrator.run(num_clusters=3)
    """

    def __init__(
        self,
        store,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        epsilon: float = DEFAULT_EPSILON,
        random_state: RandomSource = None,
        active_statuses: Sequence[str] = ('Active',),
        completed_statuses: Sequence[str] = ('completed',)
    ):
        """
        Initialize SegmentationOrchestrator.

        Args:
            store: Source of aggregates and sink for assignments
            max_iterations: Lloyd iteration cap
            epsilon: Convergence tolerance
            random_state: Seed or generator for K-Means++ seeding
            active_statuses: Customer statuses eligible for segmentation
            completed_statuses: Purchase statuses counted in the aggregates
        """
        self.store = store
        self.max_iterations = max_iterations
        self.epsilon = epsilon
        self.random_state = random_state
        self.active_statuses = list(active_statuses)
        self.completed_statuses = list(completed_statuses)
        self.labeler = SegmentLabeler()

        logger.info("SegmentationOrchestrator initialized")

    @classmethod
    def from_settings(cls, store, settings, random_state: RandomSource = None) -> 'SegmentationOrchestrator':
        return cls(
            store,
            max_iterations=settings.max_iterations,
            epsilon=settings.epsilon,
            random_state=settings.random_seed if random_state is None else random_state,
            active_statuses=settings.active_statuses,
            completed_statuses=settings.completed_purchase_statuses,
        )

    def run(
        self,
        num_clusters: int = DEFAULT_NUM_CLUSTERS,
        now: Optional[datetime] = None
    ) -> SegmentationResult:
        """
        Segment all eligible customers and replace the stored segmentation.

        Args:
            num_clusters: Number of segments to build
            now: Reference time for recency (default: current UTC time)

        Returns:
            SegmentationResult with one summary per segment

        Raises:
            ValueError: num_clusters < 1
            InsufficientDataError: Fewer eligible customers than clusters
        """
        if num_clusters < 1:
            raise ValueError(f"Number of clusters must be >= 1, got {num_clusters}")

        logger.info(f"Starting customer segmentation with {num_clusters} clusters")

        aggregates = self.store.load_eligible_aggregates(
            self.active_statuses, self.completed_statuses, now=now
        )

        if len(aggregates) < num_clusters:
            raise InsufficientDataError(required=num_clusters, available=len(aggregates))

        result = self.segment(aggregates, num_clusters)

        self.store.replace_assignments(result.assignments)

        logger.info(
            f"Segmentation complete: {len(aggregates)} customers in "
            f"{len(result.segments)} segments"
        )
        return result

    def segment(
        self,
        aggregates: Sequence[CustomerAggregate],
        num_clusters: int
    ) -> SegmentationResult:
        """Normalize, cluster and label a batch without touching the store."""
        normalizer = FeatureNormalizer()
        features = normalizer.fit_transform(aggregates)

        segmenter = KMeansSegmenter(
            n_clusters=num_clusters,
            max_iter=self.max_iterations,
            epsilon=self.epsilon,
            random_state=self.random_state
        )
        segmenter.fit(features)

        clusters = segmenter.clusters_
        names = self.labeler.label(clusters, aggregates)

        assignments = [
            SegmentAssignment(
                customer_id=aggregates[index].customer_id,
                segment_id=segment_id,
                segment_name=names[segment_id],
                features=aggregates[index].snapshot()
            )
            for segment_id, cluster in enumerate(clusters)
            for index in cluster.points
        ]

        segments = [
            ClusterSummary(
                segment_id=segment_id,
                segment_name=names[segment_id],
                customer_count=cluster.size,
                centroid=[float(v) for v in cluster.centroid]
            )
            for segment_id, cluster in enumerate(clusters)
        ]

        for segment in segments:
            logger.info(f"Segment {segment.segment_id} '{segment.segment_name}': {segment.customer_count} customers")

        return SegmentationResult(
            segments=segments,
            assignments=assignments,
            iterations=segmenter.n_iter_,
            converged=segmenter.converged_,
            inertia=segmenter.inertia_,
            metrics=segmenter.get_cluster_metrics(features),
            feature_ranges=normalizer.get_ranges()
        )

    def predict_segment(self, aggregate: CustomerAggregate) -> Dict[str, Any]:
        """
        Nearest stored segment for a customer outside the last run.

        The customer is scaled with the stored population's ranges and
        compared against centroids rebuilt from the stored snapshots.

        Raises:
            SegmentationNotFoundError: If no segmentation is stored
        """
        assignments = self.store.get_assignments()
        if not assignments:
            raise SegmentationNotFoundError("No customer segmentation has been run yet")

        population = [
            CustomerAggregate.from_metrics(
                a.customer_id,
                a.features.get('total_value', 0.0),
                a.features.get('purchase_count', 0),
                a.features.get('days_since_last_purchase', 0.0)
            )
            for a in assignments
        ]

        normalizer = FeatureNormalizer().fit(population)
        features = normalizer.transform(population)

        segment_ids = sorted({a.segment_id for a in assignments})
        names = {a.segment_id: a.segment_name for a in assignments}
        labels = np.array([a.segment_id for a in assignments])
        centroids = np.array([features[labels == sid].mean(axis=0) for sid in segment_ids])

        point = normalizer.transform([aggregate])[0]
        segment_id = segment_ids[predict_cluster(point, centroids)]

        return {
            'segment_id': segment_id,
            'segment_name': names[segment_id],
            'features': [float(v) for v in point],
        }

"""
K-Means Clustering Module
=========================

Implements K-Means with K-Means++ seeding and Lloyd's iteration for
customer segmentation on normalized RFM features.

Usage:
    from retail_segmentation.customer_segmentation import KMeansSegmenter

    segmenter = KMeansSegmenter(n_clusters=4, random_state=42)
    segmenter.fit(features)
    labels = segmenter.predict(new_features)
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union
from sklearn.metrics import silhouette_score, calinski_harabasz_score, davies_bouldin_score
from loguru import logger

from ..exceptions import InsufficientDataError
from .distance import centroid_of, centroids_converged, pairwise_distances, DEFAULT_EPSILON

DEFAULT_MAX_ITERATIONS = 100

RandomSource = Union[None, int, np.random.Generator, Any]


@dataclass
class Cluster:
    """A centroid plus the indices of the points assigned to it."""

    centroid: np.ndarray
    points: List[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.points)


@dataclass
class LloydResult:
    clusters: List[Cluster]
    iterations: int
    converged: bool
    inertia_history: List[float]

    @property
    def inertia(self) -> float:
        return self.inertia_history[-1] if self.inertia_history else 0.0


def resolve_random_state(random_state: RandomSource = None):
    """
    Turn a seed into a random source.

    Anything exposing ``integers(n)`` and ``random()`` (such as a
    ``numpy.random.Generator``) is used as-is; an int seeds a new
    generator; None gives an unseeded one.
    """
    if random_state is None or isinstance(random_state, (int, np.integer)):
        return np.random.default_rng(random_state)
    return random_state


def predict_cluster(point, centroids) -> int:
    """Index of the nearest centroid; ties go to the lowest index."""
    return int(np.argmin(pairwise_distances([point], centroids)[0]))


class KMeansPlusPlusInitializer:
    """
    K-Means++ seeding.

    The first centroid is a uniformly random point. Each following
    centroid is drawn with probability proportional to the squared
    distance from a point to its nearest already-chosen centroid, so
    points that are already centroids carry zero weight.

    Example:
        >>> init = KMeansPlusPlusInitializer(random_state=7)
        >>> centroids = init.initialize(features, k=3)
    """

    def __init__(self, random_state: RandomSource = None):
        self.rng = resolve_random_state(random_state)

    def initialize(self, features: np.ndarray, k: int) -> np.ndarray:
        """
        Choose k starting centroids.

        Args:
            features: Normalized features, shape (n, d)
            k: Number of centroids

        Returns:
            Array of shape (k, d)

        Raises:
            ValueError: If k < 1
            InsufficientDataError: If k exceeds the number of points
        """
        features = np.asarray(features, dtype=float)
        n = len(features)

        if k < 1:
            raise ValueError(f"Number of clusters must be >= 1, got {k}")
        if k > n:
            raise InsufficientDataError(required=k, available=n)

        first = int(self.rng.integers(n))
        centroids = [features[first].copy()]

        for _ in range(1, k):
            nearest = pairwise_distances(features, np.array(centroids)).min(axis=1)
            cumulative = np.cumsum(nearest ** 2)
            target = self.rng.random() * cumulative[-1]

            # First index whose running weight reaches the target
            chosen = int(np.searchsorted(cumulative, target, side='left'))
            chosen = min(chosen, n - 1)

            centroids.append(features[chosen].copy())

        return np.array(centroids)


def assign_points(features: np.ndarray, centroids: np.ndarray) -> List[Cluster]:
    """
    Assignment step: every point joins its nearest centroid.

    argmin returns the first minimum, so ties resolve to the lowest
    cluster index.
    """
    labels = np.argmin(pairwise_distances(features, centroids), axis=1)

    clusters = [Cluster(centroid=c.copy()) for c in centroids]
    for index, label in enumerate(labels):
        clusters[label].points.append(index)

    return clusters


def update_centroids(features: np.ndarray, clusters: List[Cluster]) -> np.ndarray:
    """Update step: mean of members; an empty cluster keeps its centroid."""
    new_centroids = []

    for i, cluster in enumerate(clusters):
        if not cluster.points:
            logger.warning(f"Cluster {i} is empty, keeping previous centroid")
            new_centroids.append(cluster.centroid.copy())
        else:
            new_centroids.append(centroid_of(features[cluster.points]))

    return np.array(new_centroids)


def within_cluster_sse(features: np.ndarray, clusters: List[Cluster]) -> float:
    """Total squared distance of every point to its cluster's centroid."""
    total = 0.0
    for cluster in clusters:
        if cluster.points:
            diff = features[cluster.points] - cluster.centroid
            total += float(np.sum(diff ** 2))
    return total


def run_lloyd(
    features: np.ndarray,
    initial_centroids: np.ndarray,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    epsilon: float = DEFAULT_EPSILON
) -> LloydResult:
    """
    Alternate assignment and update until the centroids settle.

    Args:
        features: Normalized features, shape (n, d)
        initial_centroids: Starting centroids, shape (k, d)
        max_iterations: Iteration cap
        epsilon: Per-component convergence tolerance

    Returns:
        LloydResult whose clusters partition every point index. Each
        cluster carries the centroid used in its final assignment step.
    """
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

    features = np.asarray(features, dtype=float)
    centroids = np.asarray(initial_centroids, dtype=float)

    clusters: List[Cluster] = []
    inertia_history: List[float] = []
    converged = False
    iteration = 0

    while not converged and iteration < max_iterations:
        clusters = assign_points(features, centroids)
        inertia_history.append(within_cluster_sse(features, clusters))

        new_centroids = update_centroids(features, clusters)
        converged = centroids_converged(centroids, new_centroids, epsilon)
        centroids = new_centroids
        iteration += 1

    if not converged:
        logger.warning(f"K-Means stopped at the iteration cap ({max_iterations}) before converging")

    return LloydResult(
        clusters=clusters,
        iterations=iteration,
        converged=converged,
        inertia_history=inertia_history
    )


class KMeansSegmenter:
    """
    K-Means++ clustering for customer segmentation.

    Features:
    - K-Means++ seeding with an injectable random source
    - Lloyd's iteration with frozen empty clusters
    - Per-iteration inertia for diagnostics
    - Clustering quality metrics

    Example:
        >>> segmenter = KMeansSegmenter(n_clusters=4, random_state=42)
        >>> segmenter.fit(features)
        >>> segmenter.labels_
        array([0, 0, 1, 1, 3, 2])
    """

    def __init__(
        self,
        n_clusters: int = 4,
        max_iter: int = DEFAULT_MAX_ITERATIONS,
        epsilon: float = DEFAULT_EPSILON,
        random_state: RandomSource = None
    ):
        """
        Initialize K-Means Segmenter.

        Args:
            n_clusters: Number of clusters
            max_iter: Maximum Lloyd iterations
            epsilon: Convergence tolerance per centroid component
            random_state: Seed, generator, or None for an unseeded run
        """
        self.n_clusters = n_clusters
        self.max_iter = max_iter
        self.epsilon = epsilon
        self.initializer = KMeansPlusPlusInitializer(random_state)

        self.clusters_ = None
        self.cluster_centers_ = None
        self.labels_ = None
        self.inertia_ = None
        self.inertia_history_ = []
        self.n_iter_ = 0
        self.converged_ = False

        logger.info("KMeansSegmenter initialized")

    def fit(self, features: np.ndarray) -> 'KMeansSegmenter':
        """
        Fit K-Means to normalized features.

        Args:
            features: Array of shape (n, d)

        Returns:
            Self for method chaining

        Raises:
            InsufficientDataError: If there are fewer points than clusters
        """
        features = np.asarray(features, dtype=float)

        initial = self.initializer.initialize(features, self.n_clusters)
        result = run_lloyd(features, initial, self.max_iter, self.epsilon)

        self.clusters_ = result.clusters
        self.cluster_centers_ = np.array([c.centroid for c in result.clusters])
        self.labels_ = np.empty(len(features), dtype=int)
        for cluster_id, cluster in enumerate(result.clusters):
            self.labels_[cluster.points] = cluster_id
        self.inertia_ = result.inertia
        self.inertia_history_ = result.inertia_history
        self.n_iter_ = result.iterations
        self.converged_ = result.converged

        logger.info(
            f"Fitted K-Means with {self.n_clusters} clusters in {self.n_iter_} iterations "
            f"(converged={self.converged_})"
        )
        logger.info(f"Inertia: {self.inertia_:.4f}")

        return self

    def predict(self, features: np.ndarray) -> np.ndarray:
        """Nearest fitted centroid for each row."""
        if self.cluster_centers_ is None:
            raise ValueError("Model not fitted. Call fit() first.")

        features = np.atleast_2d(np.asarray(features, dtype=float))
        return np.argmin(pairwise_distances(features, self.cluster_centers_), axis=1)

    def fit_predict(self, features: np.ndarray) -> np.ndarray:
        self.fit(features)
        return self.labels_

    def get_cluster_metrics(self, features: np.ndarray) -> Dict[str, Optional[float]]:
        """
        Calculate clustering quality metrics.

        Silhouette, Calinski-Harabasz and Davies-Bouldin are only defined
        when between 2 and n-1 distinct clusters are populated; otherwise
        they are None.

        Args:
            features: The features the model was fitted on

        Returns:
            Dictionary of clustering metrics
        """
        if self.labels_ is None:
            raise ValueError("Model not fitted. Call fit() first.")

        features = np.asarray(features, dtype=float)
        n_populated = len(set(self.labels_.tolist()))

        metrics = {
            'n_clusters': self.n_clusters,
            'n_populated_clusters': n_populated,
            'inertia': self.inertia_,
            'iterations': self.n_iter_,
            'silhouette_score': None,
            'calinski_harabasz': None,
            'davies_bouldin': None,
        }

        if 2 <= n_populated <= len(features) - 1:
            metrics['silhouette_score'] = float(silhouette_score(features, self.labels_))
            metrics['calinski_harabasz'] = float(calinski_harabasz_score(features, self.labels_))
            metrics['davies_bouldin'] = float(davies_bouldin_score(features, self.labels_))

        return metrics

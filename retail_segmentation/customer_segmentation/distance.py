"""
Distance and Centroid Utilities
===============================

Euclidean distance, mean-of-points centroids and the convergence test
shared by the K-Means++ initializer and Lloyd's iteration.

Usage:
    from retail_segmentation.customer_segmentation.distance import (
        euclidean_distance, centroid_of, centroids_converged
    )

    d = euclidean_distance(features[0], features[1])
    matrix = pairwise_distances(features, centroids)
    center = centroid_of(features[[0, 1, 2]])
"""

import numpy as np
from typing import Sequence

from ..exceptions import DimensionMismatchError, EmptyClusterInputError

DEFAULT_EPSILON = 1e-4


def pairwise_distances(points, centroids) -> np.ndarray:
    """
    Euclidean distance from every point (rows) to every centroid (columns).

    Args:
        points: Array-like of shape (n, d)
        centroids: Array-like of shape (k, d)

    Returns:
        Array of shape (n, k)

    Raises:
        DimensionMismatchError: If points and centroids differ in dimension
    """
    points = np.atleast_2d(np.asarray(points, dtype=float))
    centroids = np.atleast_2d(np.asarray(centroids, dtype=float))

    if points.shape[1] != centroids.shape[1]:
        raise DimensionMismatchError(points.shape[1], centroids.shape[1])

    diff = points[:, np.newaxis, :] - centroids[np.newaxis, :, :]
    return np.sqrt(np.sum(diff ** 2, axis=2))


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Euclidean distance between two equal-length vectors.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    return float(pairwise_distances([a], [b])[0, 0])


def centroid_of(points: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Per-dimension arithmetic mean of a non-empty set of points.

    Args:
        points: 2D array-like, one row per point

    Returns:
        Centroid vector

    Raises:
        EmptyClusterInputError: If no points are given
    """
    points = np.asarray(points, dtype=float)

    if len(points) == 0:
        raise EmptyClusterInputError()

    return points.mean(axis=0)


def centroids_converged(
    old: Sequence[Sequence[float]],
    new: Sequence[Sequence[float]],
    epsilon: float = DEFAULT_EPSILON
) -> bool:
    """True iff every component of every centroid moved by strictly less than epsilon."""
    old = np.asarray(old, dtype=float)
    new = np.asarray(new, dtype=float)

    if old.shape != new.shape:
        raise DimensionMismatchError(old.size, new.size)

    return bool(np.all(np.abs(old - new) < epsilon))

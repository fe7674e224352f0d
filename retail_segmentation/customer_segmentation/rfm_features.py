"""
RFM Feature Preparation Module
==============================

Holds the per-customer purchase aggregates consumed by the segmentation
engine and turns them into a bounded feature space via min-max scaling.

Usage:
    from retail_segmentation.customer_segmentation import (
        CustomerAggregate, FeatureNormalizer
    )

    aggregates = [CustomerAggregate.from_metrics(1, 900.0, 3, 12.5), ...]
    features = FeatureNormalizer().fit_transform(aggregates)
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Sequence, Union
from sklearn.preprocessing import MinMaxScaler
from loguru import logger

# Order matters: feature vectors are positional.
FEATURE_COLUMNS = [
    'total_value',
    'purchase_count',
    'avg_order_value',
    'days_since_last_purchase',
]


@dataclass(frozen=True)
class CustomerAggregate:
    """Raw purchase metrics for one customer."""

    customer_id: Union[int, str]
    total_value: float
    purchase_count: int
    avg_order_value: float
    days_since_last_purchase: float
    name: Optional[str] = None

    @classmethod
    def from_metrics(
        cls,
        customer_id: Union[int, str],
        total_value: float,
        purchase_count: int,
        days_since_last_purchase: float,
        name: Optional[str] = None
    ) -> 'CustomerAggregate':
        """Build an aggregate, deriving the average order value."""
        total_value = float(total_value or 0)
        purchase_count = int(purchase_count or 0)
        avg_order_value = total_value / purchase_count if purchase_count > 0 else 0.0

        return cls(
            customer_id=customer_id,
            total_value=total_value,
            purchase_count=purchase_count,
            avg_order_value=avg_order_value,
            days_since_last_purchase=max(float(days_since_last_purchase or 0), 0.0),
            name=name
        )

    def feature_values(self) -> List[float]:
        """Raw metrics in feature order."""
        return [float(getattr(self, col)) for col in FEATURE_COLUMNS]

    def snapshot(self) -> Dict[str, float]:
        """Raw metrics keyed by feature name, as stored with an assignment."""
        return dict(zip(FEATURE_COLUMNS, self.feature_values()))


@dataclass
class SegmentAssignment:
    """One customer's membership in the current segmentation, with a raw metric snapshot."""

    customer_id: Union[int, str]
    segment_id: int
    segment_name: str
    features: Dict[str, float] = field(default_factory=dict)


def aggregates_to_matrix(aggregates: Sequence[CustomerAggregate]) -> np.ndarray:
    """Stack raw metrics into an (n, 4) array."""
    if len(aggregates) == 0:
        return np.empty((0, len(FEATURE_COLUMNS)))
    return np.array([a.feature_values() for a in aggregates], dtype=float)


class FeatureNormalizer:
    """
    Per-dimension min-max scaling of customer aggregates into [0, 1].

    The minimum of each dimension maps to 0 and the maximum to 1. A
    dimension where every customer has the same value maps to 0.

    Example:
        >>> normalizer = FeatureNormalizer()
        >>> features = normalizer.fit_transform(aggregates)
        >>> features.shape
        (6, 4)
    """

    def __init__(self):
        self.scaler = None
        self.data_min_ = None
        self.data_max_ = None

    def fit(self, aggregates: Sequence[CustomerAggregate]) -> 'FeatureNormalizer':
        X = aggregates_to_matrix(aggregates)

        if len(X) == 0:
            self.scaler = None
            return self

        self.scaler = MinMaxScaler(feature_range=(0, 1))
        self.scaler.fit(X)
        self.data_min_ = self.scaler.data_min_
        self.data_max_ = self.scaler.data_max_

        return self

    def transform(self, aggregates: Sequence[CustomerAggregate]) -> np.ndarray:
        """
        Scale aggregates with the fitted ranges.

        Args:
            aggregates: Customers to scale

        Returns:
            Array of shape (n, 4)
        """
        X = aggregates_to_matrix(aggregates)

        if len(X) == 0:
            return X

        if self.scaler is None:
            raise ValueError("Normalizer not fitted. Call fit() first.")

        # Direct division keeps each fitted maximum at exactly 1.0
        data_range = self.scaler.data_range_
        constant = data_range == 0
        scaled = (X - self.data_min_) / np.where(constant, 1.0, data_range)
        scaled[:, constant] = 0.0

        return np.clip(scaled, 0.0, 1.0)

    def fit_transform(self, aggregates: Sequence[CustomerAggregate]) -> np.ndarray:
        features = self.fit(aggregates).transform(aggregates)
        logger.debug(f"Normalized {len(features)} customers")
        return features

    def get_ranges(self) -> Dict[str, Dict[str, Any]]:
        """Fitted min/max per feature."""
        if self.scaler is None:
            return {}

        return {
            col: {'min': float(lo), 'max': float(hi)}
            for col, lo, hi in zip(FEATURE_COLUMNS, self.data_min_, self.data_max_)
        }


def normalize_features(aggregates: Sequence[CustomerAggregate]) -> np.ndarray:
    """Min-max scale a batch of aggregates. Empty input yields an empty (0, 4) array."""
    return FeatureNormalizer().fit_transform(aggregates)

"""
Segment Analysis Module
=======================

Names clusters with an RFM decision list and profiles the resulting
segments for reporting.

Usage:
    from retail_segmentation.customer_segmentation import SegmentLabeler, SegmentAnalyzer

    names = SegmentLabeler().label(clusters, aggregates)
    profiles = SegmentAnalyzer().profile_segments(assignments_df)
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Any, Sequence
from scipy import stats
from loguru import logger

from .rfm_features import CustomerAggregate, FEATURE_COLUMNS
from .kmeans_clustering import Cluster

CHAMPIONS = 'Champions'
LOYAL_CUSTOMERS = 'Loyal Customers'
AT_RISK = 'At Risk'
NEW_CUSTOMERS = 'New Customers'
LOST_CUSTOMERS = 'Lost Customers'


def classify_segment(
    avg_value: float,
    avg_frequency: float,
    avg_recency: float,
    position: int
) -> str:
    """
    RFM decision list. Rules overlap; the first match wins.

    Args:
        avg_value: Mean total purchase value of the segment
        avg_frequency: Mean purchase count
        avg_recency: Mean days since last purchase
        position: 0-based cluster position, used for the fallback name

    Returns:
        Segment display name
    """
    if avg_value > 5000 and avg_frequency > 5 and avg_recency < 90:
        return CHAMPIONS
    elif avg_value > 3000 and avg_recency < 180:
        return LOYAL_CUSTOMERS
    elif avg_frequency > 3 and avg_recency > 180:
        return AT_RISK
    elif avg_recency < 90 and avg_frequency < 3:
        return NEW_CUSTOMERS
    elif avg_recency > 365:
        return LOST_CUSTOMERS
    else:
        return f'Segment {position + 1}'


class SegmentLabeler:
    """
    Assigns a display name to every cluster from its members' raw averages.

    Example:
        >>> labeler = SegmentLabeler()
        >>> labeler.label(clusters, aggregates)
        ['Champions', 'Segment 2']
    """

    def label(
        self,
        clusters: Sequence[Cluster],
        aggregates: Sequence[CustomerAggregate]
    ) -> List[str]:
        names = []

        for position, cluster in enumerate(clusters):
            members = [aggregates[i] for i in cluster.points]

            if not members:
                # No averages to compare against; every rule is false
                names.append(f'Segment {position + 1}')
                continue

            avg_value = np.mean([m.total_value for m in members])
            avg_frequency = np.mean([m.purchase_count for m in members])
            avg_recency = np.mean([m.days_since_last_purchase for m in members])

            names.append(classify_segment(avg_value, avg_frequency, avg_recency, position))

        logger.debug(f"Segment names: {names}")
        return names


class SegmentAnalyzer:
    """
    Profiling toolkit for stored or freshly computed segments.

    Works on a DataFrame with one row per customer holding
    ``segment_id``, ``segment_name`` and the raw feature columns.

    Example:
        >>> analyzer = SegmentAnalyzer()
        >>> profiles = analyzer.profile_segments(df)
        >>> tests = analyzer.test_feature_differences(df)
    """

    def __init__(self):
        """Initialize SegmentAnalyzer."""
        logger.info("SegmentAnalyzer initialized")

    def profile_segments(
        self,
        df: pd.DataFrame,
        segment_column: str = 'segment_id',
        value_columns: Optional[List[str]] = None
    ) -> pd.DataFrame:
        """
        Per-segment size, share and mean/median of each raw metric.

        Args:
            df: Customer-level DataFrame with segment assignments
            segment_column: Column containing segment ids
            value_columns: Metrics to profile (default: all features)

        Returns:
            DataFrame indexed by segment
        """
        value_columns = value_columns or FEATURE_COLUMNS

        if df.empty:
            return pd.DataFrame()

        grouped = df.groupby(segment_column)
        profile = grouped[value_columns].agg(['mean', 'median'])
        profile.columns = ['_'.join(col) for col in profile.columns.values]

        profile['customer_count'] = grouped.size()
        profile['customer_percentage'] = profile['customer_count'] / len(df) * 100

        if 'segment_name' in df.columns:
            profile['segment_name'] = grouped['segment_name'].first()

        return profile.sort_index()

    def test_feature_differences(
        self,
        df: pd.DataFrame,
        segment_column: str = 'segment_id',
        value_columns: Optional[List[str]] = None
    ) -> Dict[str, Dict[str, Any]]:
        """
        Kruskal-Wallis H-test per metric across segments.

        Metrics with fewer than two populated segments, or where the test
        is undefined (all values identical), are skipped.
        """
        value_columns = value_columns or FEATURE_COLUMNS
        results = {}

        for col in value_columns:
            if col not in df.columns:
                continue

            groups = [
                group[col].dropna().values
                for _, group in df.groupby(segment_column)
            ]
            groups = [g for g in groups if len(g) > 0]

            if len(groups) < 2:
                continue

            try:
                h_stat, p_value = stats.kruskal(*groups)
            except ValueError as e:
                logger.warning(f"Kruskal-Wallis test skipped for {col}: {e}")
                continue

            results[col] = {
                'kruskal_h_statistic': float(h_stat),
                'kruskal_p_value': float(p_value),
                'significant': bool(p_value < 0.05)
            }

        return results

    def generate_summary(
        self,
        df: pd.DataFrame,
        segment_column: str = 'segment_id'
    ) -> str:
        """Plain-text summary of the segment distribution."""
        n_customers = len(df)
        n_segments = df[segment_column].nunique() if n_customers else 0

        summary_parts = [
            "Segment Analysis Summary",
            "=" * 40,
            f"Total customers: {n_customers:,}",
            f"Number of segments: {n_segments}",
            ""
        ]

        if n_customers:
            summary_parts.append("Segment Distribution:")
            for (seg, name), count in df.groupby([segment_column, 'segment_name']).size().items():
                pct = count / n_customers * 100
                summary_parts.append(f"  {seg} {name}: {count:,} ({pct:.1f}%)")

        return "\n".join(summary_parts)

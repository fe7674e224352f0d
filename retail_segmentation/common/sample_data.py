"""
Sample Data Generator
=====================

Seeds a SegmentStore with synthetic customers and purchases so the
segmentation pipeline can be exercised end to end.

Usage:
    from retail_segmentation.common.sample_data import seed_sample_data

    seed_sample_data(store, n_customers=500, seed=42)
"""

import pandas as pd
import numpy as np
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from loguru import logger

# Purchase-rate tier -> (share of customers, mean purchases, mean days between visits)
FREQUENCY_TIERS = {
    'high': (0.2, 9, 30),
    'medium': (0.5, 4, 90),
    'low': (0.3, 1, 180),
}


def generate_customer_data(
    n_customers: int = 500,
    end_date: Optional[datetime] = None,
    max_history_days: int = 730,
    inactive_share: float = 0.05,
    seed: Optional[int] = 42
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Generate synthetic customers and their purchase history.

    Creates customers with varying:
    - Purchase frequency
    - Average order value
    - Recency patterns

    Args:
        n_customers: Number of customers
        end_date: Latest possible purchase date (default: now, naive UTC)
        max_history_days: How far back purchases may go
        inactive_share: Fraction of customers given the 'Inactive' status
        seed: Random seed for reproducibility

    Returns:
        Tuple of (customers DataFrame, purchases DataFrame)
    """
    rng = np.random.default_rng(seed)
    end = end_date or datetime.now(timezone.utc).replace(tzinfo=None)

    tiers = list(FREQUENCY_TIERS)
    tier_probs = [FREQUENCY_TIERS[t][0] for t in tiers]

    customer_records = []
    purchase_records = []

    for customer_id in range(1, n_customers + 1):
        tier = rng.choice(tiers, p=tier_probs)
        _, mean_purchases, mean_gap = FREQUENCY_TIERS[tier]

        avg_amount = rng.lognormal(5, 0.9)  # Skewed distribution
        status = 'Inactive' if rng.random() < inactive_share else 'Active'

        customer_records.append({
            'id': customer_id,
            'name': f'Customer {customer_id:05d}',
            'email': f'customer{customer_id}@example.com',
            'status': status,
            'created_at': end - timedelta(days=max_history_days),
        })

        n_purchases = int(rng.poisson(mean_purchases))
        days_ago = float(rng.exponential(mean_gap))

        for _ in range(n_purchases):
            days_ago = min(days_ago, max_history_days)
            amount = max(1.0, rng.normal(avg_amount, avg_amount * 0.3))

            purchase_records.append({
                'customer_id': customer_id,
                'total_amount': round(float(amount), 2),
                'status': 'completed' if rng.random() > 0.03 else 'refunded',
                'purchase_date': end - timedelta(days=days_ago),
            })

            days_ago += float(rng.exponential(mean_gap))

    customers_df = pd.DataFrame(customer_records)
    purchases_df = pd.DataFrame(
        purchase_records,
        columns=['customer_id', 'total_amount', 'status', 'purchase_date']
    )

    logger.info(f"Generated {len(customers_df)} customers with {len(purchases_df)} purchases")
    return customers_df, purchases_df


def seed_sample_data(store, n_customers: int = 500, seed: Optional[int] = 42, end_date: Optional[datetime] = None) -> Tuple[int, int]:
    """
    Create the schema (if needed) and insert a synthetic data set.

    Returns:
        Tuple of (customers inserted, purchases inserted)
    """
    customers_df, purchases_df = generate_customer_data(
        n_customers=n_customers, end_date=end_date, seed=seed
    )

    store.create_schema()
    store.bulk_insert(
        customers_df.to_dict('records'),
        purchases_df.to_dict('records')
    )

    return len(customers_df), len(purchases_df)

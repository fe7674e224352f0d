"""
Pytest Configuration and Fixtures

Shared fixtures for all tests:
- In-memory SQLite segment store
- The six-customer reference scenario
- Scripted random sources for K-Means++ seeding
"""

from datetime import datetime, timedelta
from typing import List, Sequence

import pytest

from retail_segmentation.customer_segmentation import CustomerAggregate
from retail_segmentation.storage import SegmentStore

REFERENCE_NOW = datetime(2025, 6, 1, 12, 0, 0)

# total_value, purchase_count, days_since_last_purchase
EXAMPLE_METRICS = [
    (100.0, 1, 10.0),
    (150.0, 2, 20.0),
    (9000.0, 8, 30.0),
    (8800.0, 9, 15.0),
    (200.0, 1, 400.0),
    (50.0, 1, 500.0),
]


class ScriptedRandom:
    """
    Stand-in random source with fixed draws.

    ``integers(n)`` always returns the configured first index and
    ``random()`` cycles through the configured draws.
    """

    def __init__(self, first_index: int = 0, draws: Sequence[float] = (0.5,)):
        self.first_index = first_index
        self.draws = list(draws)
        self.calls = 0

    def integers(self, n):
        if not 0 <= self.first_index < n:
            raise ValueError(f"Scripted first index {self.first_index} outside 0..{n - 1}")
        return self.first_index

    def random(self):
        value = self.draws[self.calls % len(self.draws)]
        self.calls += 1
        return value


@pytest.fixture
def scripted_random():
    return ScriptedRandom


@pytest.fixture
def example_aggregates() -> List[CustomerAggregate]:
    return [
        CustomerAggregate.from_metrics(i + 1, value, count, recency, name=f"Customer {i + 1}")
        for i, (value, count, recency) in enumerate(EXAMPLE_METRICS)
    ]


@pytest.fixture
def store():
    segment_store = SegmentStore("sqlite://")
    segment_store.create_schema()
    yield segment_store
    segment_store.dispose()


def add_customer_with_metrics(
    store: SegmentStore,
    name: str,
    total_value: float,
    purchase_count: int,
    days_since_last_purchase: float,
    status: str = 'Active',
    now: datetime = REFERENCE_NOW
) -> int:
    """Insert a customer whose completed purchases produce exactly the given metrics."""
    customer_id = store.add_customer(name, email=f"{name.lower().replace(' ', '.')}@example.com", status=status)

    last_purchase = now - timedelta(days=days_since_last_purchase)
    amount = total_value / purchase_count if purchase_count else 0.0

    for i in range(purchase_count):
        store.add_purchase(customer_id, amount, last_purchase - timedelta(days=7 * i))

    return customer_id


@pytest.fixture
def example_store(store):
    """Store holding the six reference customers (ids 1-6) plus ineligible noise."""
    for i, (value, count, recency) in enumerate(EXAMPLE_METRICS):
        add_customer_with_metrics(store, f"Customer {i + 1}", value, count, recency)

    # Not eligible: inactive, no purchases, only refunded purchases
    add_customer_with_metrics(store, "Dormant Account", 5000.0, 3, 5.0, status='Inactive')
    store.add_customer("Window Shopper")
    refunded = store.add_customer("Refund Only")
    store.add_purchase(refunded, 300.0, REFERENCE_NOW - timedelta(days=3), status='refunded')

    return store
